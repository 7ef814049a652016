"""CLI entrypoint for mail-forwarder."""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Sequence

from dotenv import load_dotenv

from .auth import acquire_app_token
from .config import (
    DEFAULT_ARCHIVE_FOLDER,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STRATEGY,
    GRAPH_URL,
    ForwarderConfig,
)
from .errors import (
    AuthError,
    ConfigError,
    InputError,
    NotFoundError,
    ProcessingError,
    RemoteQueryError,
)
from .logging_utils import configure_logging, get_logger
from .models import SearchCriteria
from .pipeline import run_pipeline
from .strategy import STRATEGIES


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        description="Mail Forwarder - locate one message by metadata, forward it, archive the original."
    )
    parser.add_argument("--subject", help="Exact subject of the message.")
    parser.add_argument(
        "--recipients", help="Semicolon-delimited To addresses that must all be present."
    )
    parser.add_argument("--received-time", help="Exact ISO-8601 receive time.")
    parser.add_argument("--snippet", help="Text the message body must contain.")
    parser.add_argument("--item-id", help="Legacy (EWS) item id to translate.")
    parser.add_argument(
        "--fallback",
        action="store_true",
        help="Fall back to metadata search when --item-id cannot be translated.",
    )
    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        default=DEFAULT_STRATEGY,
        help="Which criteria are pushed into the remote filter.",
    )
    parser.add_argument("--mailbox", help="Target mailbox UPN (required for app-only auth).")
    parser.add_argument(
        "--archive-folder",
        default=DEFAULT_ARCHIVE_FOLDER,
        help="Folder id or well-known name the original is moved to.",
    )
    parser.add_argument("--graph-url", default=GRAPH_URL, help="Graph API base URL.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_REQUEST_TIMEOUT,
        help="Per-request timeout in seconds.",
    )
    parser.add_argument("--token", help="Graph access token (or set GRAPH_ACCESS_TOKEN).")
    parser.add_argument(
        "--resolve-only",
        action="store_true",
        help="Print the resolved message id without forwarding anything.",
    )
    parser.add_argument("--no-progress", action="store_true", help="Disable tqdm progress bars.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse and pre-validate CLI input."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not (args.subject or args.snippet or args.item_id):
        parser.error("Provide --subject, --snippet, or --item-id.")
    return args


def namespace_to_config(args: argparse.Namespace) -> ForwarderConfig:
    """Convert CLI args to validated ForwarderConfig."""
    return ForwarderConfig(
        graph_url=args.graph_url,
        mailbox=args.mailbox,
        strategy=args.strategy,
        archive_folder=args.archive_folder,
        request_timeout=args.timeout,
        show_progress=not args.no_progress,
    )


def namespace_to_criteria(args: argparse.Namespace) -> SearchCriteria:
    """Convert CLI args to SearchCriteria using the request payload rules."""
    return SearchCriteria.from_payload(
        {
            "subject": args.subject,
            "recipients": args.recipients,
            "receivedTime": args.received_time,
            "contentSnippet": args.snippet,
            "itemId": args.item_id,
            "fallbackToMetadataSearch": bool(args.fallback),
        }
    )


def resolve_token(args: argparse.Namespace, logger: logging.Logger) -> str:
    """Return an access token from the CLI, the environment, or client credentials."""
    token = args.token or os.getenv("GRAPH_ACCESS_TOKEN")
    if token:
        return token
    if not args.mailbox:
        raise AuthError(
            "No access token: pass --token, set GRAPH_ACCESS_TOKEN, "
            "or use --mailbox with TENANT_ID/CLIENT_ID/CLIENT_SECRET."
        )
    logger.info("No access token supplied; acquiring an app-only token.")
    return acquire_app_token(
        tenant_id=os.getenv("TENANT_ID", ""),
        client_id=os.getenv("CLIENT_ID", ""),
        client_secret=os.getenv("CLIENT_SECRET", ""),
    )


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    load_dotenv()
    args = parse_args(argv)
    configure_logging(args.verbose)
    logger = get_logger()
    try:
        config = namespace_to_config(args)
        criteria = namespace_to_criteria(args)
        token = resolve_token(args, logger)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    except (InputError, AuthError) as exc:
        logger.error("%s", exc)
        return 2

    try:
        outcome = run_pipeline(
            config, criteria, token=token, resolve_only=args.resolve_only, logger=logger
        )
    except InputError as exc:
        logger.error("Invalid search criteria: %s", exc)
        return 2
    except (NotFoundError, RemoteQueryError, ProcessingError) as exc:
        logger.error("%s", exc)
        return 1

    if args.resolve_only:
        print(outcome.message_id)
        return 0
    if outcome.result is not None:
        logger.info(
            "Forwarded %s as draft %s (%d attachment(s) copied, %d skipped, %d failed).",
            outcome.message_id,
            outcome.result.draft_id,
            outcome.result.attachments_copied,
            outcome.result.attachments_skipped,
            outcome.result.attachments_failed,
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
