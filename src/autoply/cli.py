"""Summary: Command-line interface for Autoply.

Importance: Provides a local-first entry point for trying the workflow without Telegram.
Alternatives: Use the HTTP API or a Telegram test account.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from autoply.app import build_context
from autoply.config import AppConfig
from autoply.extract import DOC_MEDIA_TYPE, DOCX_MEDIA_TYPE, PDF_MEDIA_TYPE, DocumentTextExtractor
from autoply.oauth import build_google_auth_url
from autoply.orchestrator import CANCEL, CONFIRM
from autoply.text import format_timestamp

_SUFFIX_MEDIA_TYPES = {
    ".pdf": PDF_MEDIA_TYPE,
    ".doc": DOC_MEDIA_TYPE,
    ".docx": DOCX_MEDIA_TYPE,
}


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="Autoply CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Print the text extracted from a CV")
    extract.add_argument("path", type=str)
    extract.add_argument("--media-type", type=str, default=None)
    extract.add_argument("--strict", action="store_true")

    upload = subparsers.add_parser("upload-cv", help="Store a CV for a user")
    upload.add_argument("telegram_id", type=str)
    upload.add_argument("path", type=str)
    upload.add_argument("--media-type", type=str, default=None)

    chat = subparsers.add_parser("chat", help="Chat with the assistant as a user")
    chat.add_argument("telegram_id", type=str)

    history = subparsers.add_parser("history", help="Show recent conversation turns")
    history.add_argument("telegram_id", type=str)

    oauth_url = subparsers.add_parser("oauth-url", help="Print the Gmail OAuth URL for a user")
    oauth_url.add_argument("telegram_id", type=str)

    return parser


def guess_media_type(path: Path, override: str | None = None) -> str | None:
    if override:
        return override
    return _SUFFIX_MEDIA_TYPES.get(path.suffix.lower())


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Execute CLI commands based on arguments.

    Importance: Drives the workflow from a terminal.
    Alternatives: Invoke services via an HTTP API.
    """

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()

    if args.command == "extract":
        path = Path(args.path)
        text = DocumentTextExtractor(strict=args.strict).extract(
            path.read_bytes(), guess_media_type(path, args.media_type)
        )
        print(text)
        return

    if args.command == "oauth-url":
        print(build_google_auth_url(config, args.telegram_id))
        return

    context = build_context(config)
    user = context.store.get_user_by_telegram_id(args.telegram_id) or context.users.get_or_create(
        args.telegram_id, None, None
    )

    if args.command == "upload-cv":
        path = Path(args.path)
        key = context.users.save_cv(user.id, path.read_bytes(), guess_media_type(path, args.media_type))
        print(f"Stored CV {key} for user {args.telegram_id}.")
        return

    if args.command == "history":
        for message in context.history.load(str(user.id)):
            print(f"[{format_timestamp(message.timestamp)}] {message.role}: {message.content}")
        return

    if args.command == "chat":
        print("Type a message, or an empty line to quit.")
        while True:
            try:
                line = input("> ").strip()
            except EOFError:
                break
            if not line:
                break
            user = context.store.get_user(user.id) or user
            result = context.orchestrator.turn(
                str(user.id), line, context.users.load_cv_text(user)
            )
            print(result.response_text)
            if not result.confirmation_requested:
                continue
            answer = input("Send this email? [y/N] ").strip().lower()
            decision = CONFIRM if answer in {"y", "yes"} else CANCEL
            print(
                context.orchestrator.resolve(
                    str(user.id), decision, context.applications.dispatcher_for(user)
                )
            )
        return


if __name__ == "__main__":
    run_cli()
