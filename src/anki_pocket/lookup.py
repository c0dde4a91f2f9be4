"""Clients for the dictionary, translation and image search services."""

import os
import re
import time
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from . import errors
from .logging_utils import logs_handler
from .model import Definition, ImageReference, Meaning, PhraseTranslation, WordDefinition

FREE_DICTIONARY_URL = "https://api.dictionaryapi.dev/api/v2/entries/en/{word}"
CAMBRIDGE_URL = "https://dictionary.cambridge.org/ja/dictionary/english/{word}"
MYMEMORY_URL = "https://api.mymemory.translated.net/get"
UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"
PLACEHOLDER_IMAGE_URL = "https://picsum.photos/300/200?random={stamp}"

SUPPORTED_LANGUAGES = ("en", "ja")
TIMEOUT = 10.0
UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

_SPACES = re.compile(r"\s+")

logger = logs_handler.get_logger()


class BaseLookupClient(ABC):
    """
    Shared lifecycle for the lookup clients.

    An injected httpx.AsyncClient is left open on close(); one created here is closed.
    """

    def __init__(self, http: httpx.AsyncClient | None = None):
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=TIMEOUT, headers={"User-Agent": UA})

    @abstractmethod
    async def lookup(self, query: str, **kwargs) -> Any:
        pass

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        logger.debug("GET %s params=%s", url, kwargs.get("params"))
        try:
            return await self.http.get(url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %s", url, e)
            raise errors.UpstreamUnavailableError(f"Request to {url} failed: {e}") from e

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise errors.UpstreamUnavailableError(f"Invalid JSON from {resp.url}") from e

    async def close(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _first_phonetic(entry: dict) -> str | None:
    if entry.get("phonetic"):
        return entry["phonetic"]
    for item in entry.get("phonetics") or []:
        if item.get("text"):
            return item["text"]
    return None


def parse_entries(entries: list[dict], word: str) -> WordDefinition:
    """Normalize the first dictionaryapi.dev entry."""
    entry = entries[0]
    meanings = [
        Meaning(
            part_of_speech=m.get("partOfSpeech") or "",
            definitions=[
                Definition(definition=d.get("definition") or "", example=d.get("example"))
                for d in m.get("definitions") or []
            ],
        )
        for m in entry.get("meanings") or []
    ]
    return WordDefinition(
        word=entry.get("word") or word,
        phonetic=_first_phonetic(entry),
        meanings=meanings,
        source="free-dictionary",
    )


class FreeDictionaryClient(BaseLookupClient):
    async def fetch_entries(self, word: str) -> list[dict]:
        resp = await self._get(FREE_DICTIONARY_URL.format(word=quote(word)))
        if resp.status_code == 404:
            raise errors.NotFoundError("Word not found")
        if resp.status_code != 200:
            raise errors.UpstreamUnavailableError(f"Dictionary API error: {resp.status_code}")
        data = self._json(resp)
        if not isinstance(data, list) or not data:
            raise errors.NotFoundError("Word not found")
        if not isinstance(data[0], dict):
            raise errors.UpstreamUnavailableError("Unexpected dictionary response")
        return data

    async def lookup(self, query: str, **kwargs) -> WordDefinition:
        return parse_entries(await self.fetch_entries(query), query)


def _tag_text(tag) -> str:
    return _SPACES.sub(" ", tag.get_text()).strip()


def clean_cambridge_html(fragment: str) -> str:
    return _tag_text(BeautifulSoup(fragment, "html.parser"))


class CambridgeDictionaryClient(BaseLookupClient):
    """Scrapes the first definition off the Cambridge English-Japanese page."""

    async def fetch_definition(self, word: str) -> tuple[str, str | None]:
        resp = await self._get(CAMBRIDGE_URL.format(word=quote(word)))
        if resp.status_code != 200:
            raise errors.NotFoundError("Definition not found")
        soup = BeautifulSoup(resp.text, "html.parser")
        block = soup.select_one("div.def.ddef_d.db")
        definition = _tag_text(block) if block is not None else ""
        if not definition:
            raise errors.NotFoundError("Definition not found")
        pos = soup.select_one("span.pos.dpos")
        return definition, (_tag_text(pos) or None) if pos is not None else None

    async def lookup(self, query: str, **kwargs) -> WordDefinition:
        definition, pos = await self.fetch_definition(query)
        return WordDefinition(
            word=query,
            meanings=[
                Meaning(
                    part_of_speech=pos or "definition",
                    definitions=[Definition(definition=definition)],
                )
            ],
            source="cambridge",
        )


def check_language_pair(source: str, target: str):
    if source not in SUPPORTED_LANGUAGES or target not in SUPPORTED_LANGUAGES:
        raise errors.UnsupportedLanguagePairError()


class TranslationClient(BaseLookupClient):
    async def lookup(
        self, query: str, source: str = "en", target: str = "ja", **kwargs
    ) -> PhraseTranslation:
        check_language_pair(source, target)
        resp = await self._get(MYMEMORY_URL, params={"q": query, "langpair": f"{source}|{target}"})
        if resp.status_code != 200:
            raise errors.UpstreamUnavailableError(f"Translation API error: {resp.status_code}")
        data = self._json(resp)
        if not isinstance(data, dict):
            raise errors.UpstreamUnavailableError("Unexpected translation response")
        if data.get("responseStatus") != 200:
            details = data.get("responseDetails") or "Unknown error"
            raise errors.UpstreamUnavailableError(f"Translation failed: {details}")
        response_data = data.get("responseData")
        translated = response_data.get("translatedText") if isinstance(response_data, dict) else None
        if not isinstance(translated, str):
            raise errors.UpstreamUnavailableError("Translation response has no translated text")
        return PhraseTranslation(original_text=query, translated_text=translated)


def placeholder_image() -> ImageReference:
    url = PLACEHOLDER_IMAGE_URL.format(stamp=int(time.time() * 1000))
    return ImageReference(url=url, source="fallback-placeholder")


class ImageSearchClient(BaseLookupClient):
    """Unsplash search; anything short of a hit yields a placeholder picture."""

    def __init__(self, http: httpx.AsyncClient | None = None, access_key: str | None = None):
        super().__init__(http)
        if access_key is None:
            access_key = os.getenv("UNSPLASH_ACCESS_KEY", "")
        self.access_key = access_key

    async def lookup(self, query: str, **kwargs) -> ImageReference:
        if not self.access_key or len(self.access_key) <= 10:
            logger.info("Unsplash key missing or too short; using placeholder image")
            return placeholder_image()

        resp = await self._get(
            UNSPLASH_SEARCH_URL,
            params={"query": query, "per_page": 1, "client_id": self.access_key},
            headers={"Accept-Version": "v1"},
        )
        if resp.status_code != 200:
            logger.warning("Unsplash API error %s: %s", resp.status_code, resp.text[:200])
            return placeholder_image()
        data = self._json(resp)
        results = data.get("results") if isinstance(data, dict) else None
        if not results or not isinstance(results, list):
            logger.info("No Unsplash results for '%s'; using placeholder image", query)
            return placeholder_image()
        try:
            url = results[0]["urls"]["small"]
        except (KeyError, TypeError) as e:
            raise errors.UpstreamUnavailableError(f"Unexpected Unsplash result: {e}") from e
        return ImageReference(url=url, source="primary-source")
