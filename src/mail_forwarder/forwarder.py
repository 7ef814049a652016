"""Forward a resolved message as a fresh draft and archive the original."""

from __future__ import annotations

import logging
from typing import Any

from tqdm import tqdm

from .attachments import ODATA_TYPE, plan_attachment
from .config import DEFAULT_ARCHIVE_FOLDER
from .errors import AttachmentCopyError, GraphApiError, ProcessingError
from .logging_utils import null_logger
from .models import ForwardResult, MailClient

MESSAGE_FIELDS = (
    "subject",
    "body",
    "toRecipients",
    "ccRecipients",
    "bccRecipients",
    "from",
    "hasAttachments",
    "importance",
    "isRead",
)


def build_draft(message: dict[str, Any]) -> dict[str, Any]:
    """Copy subject, body, to/cc recipients and importance into a new draft payload."""
    body = message.get("body") or {}
    return {
        "subject": message.get("subject") or "",
        "body": {
            "contentType": body.get("contentType") or "text",
            "content": body.get("content") or "",
        },
        "toRecipients": message.get("toRecipients") or [],
        "ccRecipients": message.get("ccRecipients") or [],
        "importance": message.get("importance") or "normal",
    }


def _processing_error(exc: GraphApiError, message_id: str, step: str) -> ProcessingError:
    if exc.status_code and exc.code:
        text = f'Graph API Error ({exc.code}) for message ID "{message_id}": {exc}'
    else:
        text = f'Error processing message (ID: "{message_id}") while trying to {step}: {exc}'
    return ProcessingError(
        text, message_id=message_id, status_code=exc.status_code, code=exc.code
    )


def copy_attachment(
    client: MailClient,
    draft_id: str,
    attachment: dict[str, Any],
    *,
    logger: logging.Logger,
) -> bool:
    """Copy one attachment onto the draft. Returns False when it is skipped."""
    plan = plan_attachment(attachment)
    logger.info('Processing attachment "%s" (type %s).', plan.name, plan.odata_type)
    if plan.payload is None:
        logger.warning('Skipping attachment "%s": %s.', plan.name, plan.skip_reason)
        return False
    try:
        client.create_attachment(draft_id, plan.payload)
    except GraphApiError as exc:
        raise AttachmentCopyError(
            f'Error adding attachment "{plan.name}" to draft {draft_id}: {exc}. '
            f"Error Body: {exc.body if exc.body is not None else 'N/A'}"
        ) from exc
    logger.info('Added attachment "%s" to draft %s.', plan.name, draft_id)
    return True


def forward_message(
    client: MailClient,
    message_id: str,
    *,
    archive_folder: str = DEFAULT_ARCHIVE_FOLDER,
    show_progress: bool = False,
    logger: logging.Logger | None = None,
) -> ForwardResult:
    """Duplicate a message into a draft, copy attachments, send it, and archive the source.

    Steps run strictly in sequence. A draft that was already created is not
    removed if a later step fails.
    """
    logger = logger or null_logger()

    try:
        message = client.get_message(message_id, select=MESSAGE_FIELDS)
    except GraphApiError as exc:
        raise _processing_error(exc, message_id, "fetch the original message") from exc
    logger.info('Retrieved original message "%s" (ID %s).', message.get("subject"), message_id)

    attachments: list[dict[str, Any]] = []
    if message.get("hasAttachments"):
        try:
            attachments = client.list_attachments(message_id)
        except GraphApiError as exc:
            raise _processing_error(exc, message_id, "list attachments") from exc
        logger.info("Found %d attachment(s) on the original message.", len(attachments))

    try:
        draft = client.create_message(build_draft(message))
    except GraphApiError as exc:
        raise _processing_error(exc, message_id, "create the draft") from exc
    draft_id = str(draft.get("id") or "")
    if not draft_id:
        raise ProcessingError(
            f'Draft created for message ID "{message_id}" has no id.', message_id=message_id
        )
    logger.info("Created draft %s.", draft_id)

    copied = skipped = failed = 0
    iterator: Any = attachments
    if show_progress and attachments:
        iterator = tqdm(attachments, total=len(attachments), desc="copying attachments")
    for attachment in iterator:
        try:
            if copy_attachment(client, draft_id, attachment, logger=logger):
                copied += 1
            else:
                skipped += 1
        except AttachmentCopyError as exc:
            failed += 1
            logger.error(
                "%s (type %s)", exc, attachment.get(ODATA_TYPE) or "unknown"
            )

    try:
        client.send_draft(draft_id)
    except GraphApiError as exc:
        raise _processing_error(exc, message_id, "send the draft") from exc
    logger.info("Sent forwarded message (draft %s, original %s).", draft_id, message_id)

    try:
        client.move_message(message_id, archive_folder)
    except GraphApiError as exc:
        raise _processing_error(exc, message_id, "archive the original") from exc
    logger.info("Moved original message %s to %s.", message_id, archive_folder)

    return ForwardResult(
        source_id=message_id,
        draft_id=draft_id,
        archived_to=archive_folder,
        attachments_copied=copied,
        attachments_skipped=skipped,
        attachments_failed=failed,
    )
