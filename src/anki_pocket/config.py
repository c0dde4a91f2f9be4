import json
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .logging_utils import logs_handler
from .model import DictionarySource

DEFAULT_SETTINGS_PATH = Path.home() / ".anki_pocket" / "settings.json"
DEFAULT_DECK_NAME = "English Vocabulary"

logger = logs_handler.get_logger()


class Settings(BaseModel):
    """Persisted user settings. Frozen so each action works on a snapshot."""

    model_config = ConfigDict(frozen=True)

    deck_name: str = DEFAULT_DECK_NAME
    dictionary_source: DictionarySource = "free-dictionary"


def settings_path() -> Path:
    override = os.getenv("ANKI_POCKET_SETTINGS")
    return Path(override) if override else DEFAULT_SETTINGS_PATH


def load_settings(path: Path | None = None) -> Settings:
    path = path or settings_path()
    if not path.is_file():
        logger.debug("No settings file at %s; using defaults", path)
        return Settings()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return Settings(**{**Settings().model_dump(), **raw})
    except (json.JSONDecodeError, TypeError, PydanticValidationError) as e:
        logger.warning("Ignoring unreadable settings at %s: %s", path, e)
        return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.model_dump(), indent=2), encoding="utf-8")
    logger.info("Saved settings to %s", path)
    return path
