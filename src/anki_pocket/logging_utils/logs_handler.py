import logging
import os

LOGGER_NAME = "anki_pocket"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s.%(module)s: %(message)s"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(level: str | None = None):
    """Attach one stream handler to the package logger.

    The level falls back to the LOG_LEVEL env variable, then to info. Calling this
    more than once only updates the level.
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "info").strip().lower()
    logger = get_logger()
    logger.setLevel(_LEVELS.get(level_name, logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
