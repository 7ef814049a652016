"""Attachment copy rules for forwarded drafts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

ODATA_TYPE = "@odata.type"
FILE_ATTACHMENT = "#microsoft.graph.fileAttachment"
ITEM_ATTACHMENT = "#microsoft.graph.itemAttachment"
REFERENCE_ATTACHMENT = "#microsoft.graph.referenceAttachment"


@dataclass(frozen=True)
class AttachmentKind:
    """Payload fields that must (and may) be copied for one attachment type."""

    odata_type: str
    required: tuple[str, ...]
    optional: tuple[str, ...] = ()


ATTACHMENT_KINDS: dict[str, AttachmentKind] = {
    kind.odata_type: kind
    for kind in (
        AttachmentKind(FILE_ATTACHMENT, required=("contentBytes",)),
        AttachmentKind(ITEM_ATTACHMENT, required=("item",)),
        AttachmentKind(
            REFERENCE_ATTACHMENT,
            required=("sourceUrl", "providerType"),
            optional=("permission", "isFolder"),
        ),
    )
}


@dataclass(frozen=True)
class AttachmentPlan:
    """Either a payload to post, or the reason the attachment is skipped."""

    name: str
    odata_type: str
    payload: dict[str, Any] | None
    skip_reason: str | None = None


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != {}


def plan_attachment(attachment: dict[str, Any]) -> AttachmentPlan:
    """Build the copy payload for a source attachment, or explain why it is skipped."""
    name = str(attachment.get("name") or "")
    odata_type = str(attachment.get(ODATA_TYPE) or "")
    kind = ATTACHMENT_KINDS.get(odata_type)
    if kind is None:
        return AttachmentPlan(
            name, odata_type, None, skip_reason=f"unsupported attachment type {odata_type!r}"
        )

    missing = [key for key in kind.required if not _present(attachment.get(key))]
    if missing:
        return AttachmentPlan(
            name,
            odata_type,
            None,
            skip_reason=f"missing required data: {', '.join(missing)}",
        )

    payload: dict[str, Any] = {
        ODATA_TYPE: odata_type,
        "name": attachment.get("name"),
        "contentType": attachment.get("contentType"),
    }
    for key in kind.required:
        payload[key] = attachment[key]
    for key in kind.optional:
        value = attachment.get(key)
        if key == "isFolder":
            if isinstance(value, bool):
                payload[key] = value
        elif _present(value):
            payload[key] = value
    return AttachmentPlan(name, odata_type, payload)
