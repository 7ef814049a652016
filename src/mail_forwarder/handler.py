"""Request handler: bearer header + JSON body in, status + JSON body out.

`handle_request` is the entry point a hosting HTTP function calls per request.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .auth import extract_bearer_token
from .config import DEFAULT_ARCHIVE_FOLDER, ForwarderConfig
from .errors import (
    AuthError,
    InputError,
    NotFoundError,
    ProcessingError,
    RemoteQueryError,
)
from .logging_utils import null_logger
from .models import SearchCriteria
from .pipeline import ClientFactory, build_graph_client, forward_by_criteria
from .strategy import get_strategy


@dataclass(frozen=True)
class HandlerResponse:
    """HTTP-style outcome returned to the caller."""

    status: int
    body: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(self.body)


def _failure(status: int, error: str, **extra: Any) -> HandlerResponse:
    return HandlerResponse(status=status, body={"success": False, "error": error, **extra})


def _success_message(archive_folder: str) -> str:
    if archive_folder == DEFAULT_ARCHIVE_FOLDER:
        return "Email forwarded and original moved to deleted items successfully."
    return f"Email forwarded and original moved to {archive_folder} successfully."


def handle_request(
    headers: Mapping[str, str] | None,
    body: Mapping[str, Any] | None,
    *,
    config: ForwarderConfig | None = None,
    client_factory: ClientFactory | None = None,
    logger: logging.Logger | None = None,
) -> HandlerResponse:
    """Authenticate, resolve, forward and archive; map every failure to a status code."""
    logger = logger or null_logger()
    config = config or ForwarderConfig()
    logger.info("Processing email forwarding request (strategy=%s).", config.strategy)

    try:
        token = extract_bearer_token(headers)
    except AuthError as exc:
        logger.error("Unauthorized: no authorization token provided.")
        return _failure(401, str(exc))

    try:
        criteria = SearchCriteria.from_payload(body)
        if client_factory is None:
            client = build_graph_client(token, config, logger=logger)
        else:
            client = client_factory(token, config)
        try:
            outcome = forward_by_criteria(
                criteria,
                client=client,
                strategy=get_strategy(config.strategy),
                archive_folder=config.archive_folder,
                show_progress=config.show_progress,
                logger=logger,
            )
        finally:
            close_fn = getattr(client, "close", None)
            if callable(close_fn):
                close_fn()
    except InputError as exc:
        logger.error("Invalid search criteria: %s", exc)
        return _failure(400, str(exc))
    except NotFoundError as exc:
        logger.error("%s (reason: %s)", exc, exc.reason)
        return _failure(404, str(exc))
    except RemoteQueryError as exc:
        logger.error("Error during metadata search: %s", exc)
        return _failure(500, str(exc))
    except ProcessingError as exc:
        logger.error(
            'Error during message processing for Graph REST ID "%s": %s', exc.message_id, exc
        )
        status = 404 if exc.status_code == 404 else 500
        return _failure(status, str(exc), messageIdUsed=exc.message_id)
    except Exception as exc:
        logger.exception("Unhandled error while forwarding email.")
        return _failure(500, f"Critical error in email forwarding process: {exc}")

    result = outcome.result
    logger.info("Email forwarding process completed successfully.")
    return HandlerResponse(
        status=200,
        body={
            "success": True,
            "message": _success_message(config.archive_folder),
            "messageId": outcome.message_id,
            "draftId": result.draft_id if result else None,
        },
    )
