from __future__ import annotations

import asyncio

from langfuse import observe

from . import anki, errors
from .config import Settings
from .logging_utils import logs_handler
from .lookup import (
    BaseLookupClient,
    CambridgeDictionaryClient,
    FreeDictionaryClient,
    ImageSearchClient,
    TranslationClient,
)
from .model import (
    ImageReference,
    InputMode,
    LookupFailure,
    LookupResult,
    PhraseTranslation,
    SubmissionResult,
)

SOURCE_LANG = "en"
TARGET_LANG = "ja"

logger = logs_handler.get_logger()


def classify_input(text: str) -> InputMode:
    """Phrase if the text holds any whitespace, word otherwise."""
    if any(ch.isspace() for ch in text) or len(text.split()) > 1:
        return "phrase"
    return "word"


def image_query(text: str, mode: InputMode) -> str:
    # phrases search on their first token
    return text.split()[0] if mode == "phrase" else text


class AnkiPocketOrchestrator:
    """
    Runs one capture: lookup, image search, then note creation in Anki.

    Settings are passed in per call and never stored, so the caller decides which
    snapshot a submission uses.
    """

    dictionaries: dict[str, BaseLookupClient]
    translator: TranslationClient
    images: ImageSearchClient

    def __init__(
        self,
        dictionaries: dict[str, BaseLookupClient] | None = None,
        translator: TranslationClient | None = None,
        images: ImageSearchClient | None = None,
    ):
        self.dictionaries = dictionaries or {
            "free-dictionary": FreeDictionaryClient(),
            "cambridge": CambridgeDictionaryClient(),
        }
        self.translator = translator or TranslationClient()
        self.images = images or ImageSearchClient()

    async def close(self):
        for client in (*self.dictionaries.values(), self.translator, self.images):
            await client.close()

    async def lookup(self, text: str, mode: InputMode, settings: Settings) -> LookupResult:
        try:
            if mode == "phrase":
                return await self.translator.lookup(text, source=SOURCE_LANG, target=TARGET_LANG)
            dictionary = self.dictionaries[settings.dictionary_source]
            return await dictionary.lookup(text)
        except (errors.NotFoundError, errors.UpstreamUnavailableError) as e:
            logger.error("Lookup failed for '%s' (%s): %s", text, mode, e)
            return LookupFailure(reason=str(e), error=e)

    async def find_image(self, text: str, mode: InputMode) -> ImageReference | None:
        query = image_query(text, mode)
        try:
            image = await self.images.lookup(query)
        except errors.UpstreamUnavailableError as e:
            logger.warning("Image search failed for '%s'; continuing without image: %s", query, e)
            return None
        logger.debug("Image for '%s': %s (%s)", query, image.url, image.source)
        return image

    @observe()
    async def add_text_async(self, text: str, settings: Settings) -> SubmissionResult:
        text = (text or "").strip()
        if not text:
            raise errors.EmptyInputError()
        if not settings.deck_name.strip():
            raise errors.ValidationError("DeckName parameter is required")

        mode = classify_input(text)
        logger.info("Adding %s: '%s' to deck='%s'", mode, text, settings.deck_name)

        output = await self.lookup(text, mode, settings)
        if isinstance(output, LookupFailure):
            return SubmissionResult.from_error(output.error or errors.NotFoundError(output.reason), mode)

        image = await self.find_image(text, mode)

        try:
            # AnkiConnect calls block; keep them off the event loop
            note_id = await asyncio.to_thread(
                anki.submit_note, settings.deck_name, text, output, image
            )
        except (errors.AutomationEndpointError, errors.InvalidSchemaError) as e:
            logger.error("Flashcard not created for '%s': %s", text, e)
            return SubmissionResult.from_error(e, mode)

        if isinstance(output, PhraseTranslation):
            echo = {"original_text": text, "translated_text": output.translated_text}
        else:
            echo = {"word": text, "definition": output}
        return SubmissionResult(
            success=True,
            type=mode,
            image_url=image.url if image else None,
            anki_note_id=note_id,
            **echo,
        )
