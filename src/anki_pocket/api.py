"""HTTP endpoints for the capture UI."""

from typing import Any

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from . import anki, errors
from .config import Settings, load_settings, save_settings
from .logging_utils import logs_handler
from .lookup import (
    TIMEOUT,
    UA,
    CambridgeDictionaryClient,
    FreeDictionaryClient,
    ImageSearchClient,
    TranslationClient,
    placeholder_image,
)
from .model import UploadedImage
from .orchestrator import AnkiPocketOrchestrator

logger = logs_handler.get_logger()

app = FastAPI(title="Anki Pocket")


async def get_http_client():
    async with httpx.AsyncClient(timeout=TIMEOUT, headers={"User-Agent": UA}) as client:
        yield client


def get_settings() -> Settings:
    return load_settings()


def get_orchestrator(http: httpx.AsyncClient = Depends(get_http_client)) -> AnkiPocketOrchestrator:
    return AnkiPocketOrchestrator(
        dictionaries={
            "free-dictionary": FreeDictionaryClient(http),
            "cambridge": CambridgeDictionaryClient(http),
        },
        translator=TranslationClient(http),
        images=ImageSearchClient(http),
    )


def _error(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


async def _read_json(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/dictionary")
async def dictionary(word: str | None = None, http: httpx.AsyncClient = Depends(get_http_client)):
    if not word:
        return _error("Word parameter is required", 400)
    try:
        entries = await FreeDictionaryClient(http).fetch_entries(word)
    except errors.NotFoundError:
        return _error("Word not found", 404)
    except errors.UpstreamUnavailableError as e:
        logger.error("Dictionary API error: %s", e)
        return _error("Failed to fetch word definition", 500, details=str(e))
    return {"word": word, "definitions": entries, "success": True}


@app.get("/api/cambridge-dictionary")
async def cambridge_dictionary(
    word: str | None = None, http: httpx.AsyncClient = Depends(get_http_client)
):
    if not word:
        return _error("Word parameter is required", 400)
    try:
        definition, _ = await CambridgeDictionaryClient(http).fetch_definition(word)
    except errors.NotFoundError:
        return _error("Definition not found", 404)
    except errors.UpstreamUnavailableError as e:
        logger.error("Error fetching Cambridge Dictionary definition: %s", e)
        return _error("Failed to fetch definition", 500)
    return {"word": word, "definition": definition}


@app.get("/api/translate")
async def translate(
    text: str | None = None,
    source: str = Query("en", alias="from"),
    target: str = Query("ja", alias="to"),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    if not text:
        return _error("Text parameter is required", 400, success=False)
    try:
        result = await TranslationClient(http).lookup(text, source=source, target=target)
    except errors.UnsupportedLanguagePairError as e:
        return _error(str(e), 400, success=False)
    except errors.UpstreamUnavailableError as e:
        logger.error("Translation API error: %s", e)
        return _error("Failed to translate text", 500, details=str(e), success=False)
    return {
        "originalText": result.original_text,
        "translatedText": result.translated_text,
        "from": source,
        "to": target,
        "success": True,
    }


@app.get("/api/unsplash")
async def unsplash(query: str | None = None, http: httpx.AsyncClient = Depends(get_http_client)):
    if not query:
        return _error("Query parameter is required", 400)
    try:
        image = await ImageSearchClient(http).lookup(query)
    except errors.UpstreamUnavailableError as e:
        logger.error("Unsplash API error: %s", e)
        image = placeholder_image()
    return {"imageUrl": image.url, "source": image.source}


@app.post("/api/auto-anki")
async def auto_anki(
    request: Request,
    stored: Settings = Depends(get_settings),
    orchestrator: AnkiPocketOrchestrator = Depends(get_orchestrator),
):
    body = await _read_json(request)
    if body is None:
        return _error("Invalid request format", 400, success=False)
    if _blank(body.get("text")):
        return _error("Text parameter is required", 400, success=False)
    if _blank(body.get("deckName")):
        return _error("DeckName parameter is required", 400, success=False)

    try:
        settings = Settings(
            deck_name=body["deckName"].strip(),
            dictionary_source=body.get("dictionarySource") or stored.dictionary_source,
        )
    except PydanticValidationError:
        return _error("Unsupported dictionary source", 400, success=False)

    try:
        result = await orchestrator.add_text_async(body["text"], settings)
    except errors.ValidationError as e:
        return _error(str(e), 400, success=False)
    return JSONResponse(result.to_response(), status_code=result.status_code)


@app.post("/api/manual-anki")
async def manual_anki(request: Request):
    body = await _read_json(request)
    if body is None:
        return _error("Invalid request format", 400)
    if _blank(body.get("word")) or _blank(body.get("meaning")):
        return _error("Word and meaning are required", 400)

    image_file = None
    if isinstance(body.get("imageFile"), dict):
        try:
            image_file = UploadedImage(**body["imageFile"])
        except PydanticValidationError:
            return _error("Invalid image file", 400)

    try:
        note_id, image_added = await run_in_threadpool(
            anki.submit_manual_note,
            body.get("deckName") or "",
            body["word"],
            body["meaning"],
            image_file=image_file,
            image_url=body.get("imageUrlInput") or None,
        )
    except (errors.AutomationEndpointError, errors.InvalidSchemaError) as e:
        logger.error("Manual Anki API error: %s", e)
        return _error(str(e), e.status_code)
    return {"success": True, "noteId": note_id, "imageAdded": image_added}


@app.get("/api/settings")
def read_settings(stored: Settings = Depends(get_settings)):
    return {"deckName": stored.deck_name, "dictionarySource": stored.dictionary_source}


@app.put("/api/settings")
async def update_settings(request: Request, stored: Settings = Depends(get_settings)):
    body = await _read_json(request)
    if body is None:
        return _error("Invalid request format", 400)
    try:
        updated = Settings(
            deck_name=body.get("deckName", stored.deck_name),
            dictionary_source=body.get("dictionarySource", stored.dictionary_source),
        )
    except PydanticValidationError as e:
        return _error("Invalid settings", 400, details=str(e))
    save_settings(updated)
    return {"deckName": updated.deck_name, "dictionarySource": updated.dictionary_source}
