import argparse
import asyncio
import json
import os

from dotenv import load_dotenv
from langfuse import get_client

from . import errors
from .config import Settings, load_settings, save_settings
from .logging_utils import logs_handler
from .orchestrator import AnkiPocketOrchestrator

DICTIONARY_SOURCES = ("free-dictionary", "cambridge")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="anki-pocket", description="Look up English words and phrases and send them to Anki."
    )
    parser.add_argument("--log-level", default=None, help="debug, info, warning or error")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3000)

    add = sub.add_parser("add", help="look up TEXT and create a note")
    add.add_argument("text")
    add.add_argument("--deck", help="deck name, defaults to the saved setting")
    add.add_argument("--source", choices=DICTIONARY_SOURCES)

    settings = sub.add_parser("settings", help="show or change the saved settings")
    settings.add_argument("--deck")
    settings.add_argument("--source", choices=DICTIONARY_SOURCES)
    return parser


def check_tracing(logger) -> None:
    if not os.getenv("LANGFUSE_PUBLIC_KEY"):
        logger.debug("Langfuse keys not set; tracing disabled")
        return
    if get_client().auth_check():
        logger.debug("Langfuse client authenticated and ready!")
    else:
        logger.error("Langfuse authentication failed")


async def add_text(text: str, settings: Settings) -> dict:
    orchestrator = AnkiPocketOrchestrator()
    try:
        result = await orchestrator.add_text_async(text, settings)
    finally:
        await orchestrator.close()
    return result.to_response()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logs_handler.setup_logging(level=args.log_level)
    logger = logs_handler.get_logger()

    if args.command == "serve":
        check_tracing(logger)
        import uvicorn

        from .api import app

        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    stored = load_settings()
    if args.command == "settings":
        if args.deck or args.source:
            stored = Settings(
                deck_name=args.deck or stored.deck_name,
                dictionary_source=args.source or stored.dictionary_source,
            )
            save_settings(stored)
        print(json.dumps(stored.model_dump(), indent=2, ensure_ascii=False))
        return 0

    snapshot = Settings(
        deck_name=args.deck or stored.deck_name,
        dictionary_source=args.source or stored.dictionary_source,
    )
    check_tracing(logger)
    try:
        response = asyncio.run(add_text(args.text, snapshot))
    except errors.ValidationError as e:
        logger.error("%s", e)
        return 2
    print(json.dumps(response, indent=2, ensure_ascii=False))
    return 0 if response["success"] else 1
