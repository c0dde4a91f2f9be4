import base64
import http.client
import json
import os
import re
import time
import urllib.error
import urllib.request
from typing import Any

from . import errors
from .fields import image_markup, map_fields, map_manual_fields
from .logging_utils import logs_handler
from .model import ImageReference, PhraseTranslation, UploadedImage, WordDefinition

DEFAULT_ANKI_CONNECT_URL = "http://127.0.0.1:8765"
API_VERSION = 6
DEFAULT_FIELDS = ["Front", "Back"]
AUTO_TAGS = ["vocabulary", "english", "auto-generated"]
MANUAL_TAGS = ["vocabulary", "manual", "anki-pocket"]
IMAGE_USER_AGENT = "Mozilla/5.0 (compatible; anki-pocket)"
IMAGE_TIMEOUT = 10.0

# Lowercase phrases from AnkiConnect error strings, checked in order
ERROR_PHRASES: list[tuple[str, type[errors.AutomationEndpointError]]] = [
    ("duplicate", errors.DuplicateNoteFailure),
    ("deck was not found", errors.DeckNotFoundFailure),
    ("model was not found", errors.NotetypeNotFoundFailure),
]

logger = logs_handler.get_logger()


# Read per call so a .env loaded after import still applies
def anki_connect_url() -> str:
    return os.getenv("ANKI_CONNECT_URL") or DEFAULT_ANKI_CONNECT_URL


def api_key() -> str | None:
    return os.getenv("ANKI_CONNECT_KEY") or None


def _payload(action: str, params: dict[str, Any] | None = None):
    body = {"action": action, "version": API_VERSION}
    if params:
        body["params"] = params

    key = api_key()
    if key is not None:
        # AnkiConnect accepts a top-level 'key' in the JSON body
        body["key"] = key
    return json.dumps(body).encode("utf-8")


def classify_error(message: str) -> errors.AutomationEndpointError:
    lowered = message.lower()
    for phrase, error_cls in ERROR_PHRASES:
        if phrase in lowered:
            return error_cls(message)
    return errors.OtherApiFailure(message)


def invoke(action: str, **params):
    logger.debug("Invoking AnkiConnect action=%s params=%s", action, list(params.keys()))
    url = anki_connect_url()
    req = urllib.request.Request(
        url,
        _payload(action, params),
        headers={"Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(req) as resp:
            response = json.load(resp)
    except (
        OSError,
        urllib.error.URLError,
        urllib.error.HTTPError,
        ConnectionError,
        TimeoutError,
        http.client.HTTPException,
    ) as e:
        logger.error(
            "Failed to reach AnkiConnect at %s for action=%s: %s",
            url,
            action,
            e,
        )
        raise errors.ConnectionFailure(
            f"Cannot connect to AnkiConnect at {url}. Is Anki running and AnkiConnect enabled?"
        ) from e
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON from AnkiConnect for action=%s: %s", action, e)
        raise errors.OtherApiFailure("Invalid JSON response from AnkiConnect") from e

    if not isinstance(response, dict) or "error" not in response or "result" not in response:
        logger.error("Invalid AnkiConnect response: %r", response)
        raise errors.OtherApiFailure("Invalid AnkiConnect response")
    if response["error"] is not None:
        logger.error("AnkiConnect error for action=%s: %s", action, response["error"])
        raise classify_error(str(response["error"]))
    logger.debug("AnkiConnect action=%s result=%s", action, response["result"])
    return response["result"]


def first_model_name() -> str:
    names = invoke("modelNames")
    if not names:
        raise errors.NotetypeNotFoundFailure("No available note types found")
    logger.info("Using note type: %s", names[0])
    return names[0]


def model_field_names(model_name: str) -> list[str]:
    names = invoke("modelFieldNames", modelName=model_name)
    return list(names) if names is not None else list(DEFAULT_FIELDS)


def store_media_file(filename: str, data: str) -> str:
    invoke("storeMediaFile", filename=filename, data=data)
    logger.info("Stored media file: %s", filename)
    return filename


def media_filename(text: str, image_url: str, timestamp: int | None = None) -> str:
    stamp = timestamp if timestamp is not None else int(time.time() * 1000)
    extension = "jpg" if ".jpg" in image_url or ".jpeg" in image_url else "png"
    stem = re.sub(r"\s+", "_", text)
    return f"{stem}_{stamp}.{extension}"


def download_image(url: str) -> bytes:
    req = urllib.request.Request(url, headers={"User-Agent": IMAGE_USER_AGENT})
    with urllib.request.urlopen(req, timeout=IMAGE_TIMEOUT) as resp:
        return resp.read()


def store_remote_image(text: str, image: ImageReference) -> str | None:
    """Copy a remote image into Anki's media folder.

    Returns the stored filename, or None when the image could not be fetched or
    stored; the note is then created without it.
    """
    try:
        data = base64.b64encode(download_image(image.url)).decode("ascii")
    except (OSError, ValueError, http.client.HTTPException) as e:
        logger.warning("Could not download image %s: %s", image.url, e)
        return None
    try:
        return store_media_file(media_filename(text, image.url), data)
    except errors.AutomationEndpointError as e:
        logger.warning("Image save error, continuing without image: %s", e)
        return None


def add_note(deck_name: str, model_name: str, fields: dict[str, str], tags=None) -> int:
    logger.debug(
        "Submitting note: deck=%s model=%s fields=%s tags=%s",
        deck_name,
        model_name,
        list(fields.keys()),
        (tags or []),
    )
    note = {
        "deckName": deck_name,
        "modelName": model_name,
        "fields": fields,
        "tags": tags or [],
    }
    note_id = invoke("addNote", note=note)  # returns note id on success
    if note_id is None:
        # AnkiConnect 6 answers null when the note could not be created
        raise errors.OtherApiFailure("AnkiConnect did not create the note")
    logger.info("Note created: id=%s", note_id)
    return note_id


def submit_note(
    deck_name: str,
    text: str,
    lookup: WordDefinition | PhraseTranslation,
    image: ImageReference | None = None,
    tags: list[str] = None,
) -> int:
    """Create one note for looked-up content in the first available note type."""
    model_name = first_model_name()
    schema = model_field_names(model_name)
    image_filename = store_remote_image(text, image) if image else None
    fields = map_fields(schema, lookup, text, image_filename)
    return add_note(deck_name, model_name, fields, tags=tags or list(AUTO_TAGS))


def submit_manual_note(
    deck_name: str,
    word: str,
    meaning: str,
    image_file: UploadedImage | None = None,
    image_url: str | None = None,
    tags: list[str] = None,
) -> tuple[int, bool]:
    """Create a note from hand-typed content. Returns (note id, image added)."""
    image_html = ""
    if image_file and image_file.data:
        try:
            image_html = image_markup(store_media_file(image_file.filename, image_file.data))
        except errors.AutomationEndpointError as e:
            logger.warning("Image save error, continuing without image: %s", e)
    elif image_url:
        image_html = image_markup(image_url)
        logger.info("Using remote image URL: %s", image_url)

    model_name = first_model_name()
    schema = model_field_names(model_name)
    fields = map_manual_fields(schema, word, meaning, image_html)
    note_id = add_note(deck_name or "Default", model_name, fields, tags=tags or list(MANUAL_TAGS))
    return note_id, bool(image_html)
