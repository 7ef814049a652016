"""Protocols and lightweight model types."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from .errors import InputError
from .extraction import addresses_from_recipients, plain_text_body
from .validation import clean_text, parse_iso_instant


class MailClient(Protocol):
    """Contract for the mailbox backend."""

    def list_messages(
        self, filter_expression: str, *, select: Sequence[str], top: int
    ) -> list[dict[str, Any]]:
        """Return message summaries matching an OData filter."""

    def get_message(self, message_id: str, *, select: Sequence[str]) -> dict[str, Any]:
        """Return one message."""

    def list_attachments(self, message_id: str) -> list[dict[str, Any]]:
        """Return the attachments of a message."""

    def create_message(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a draft and return it."""

    def create_attachment(self, message_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Add an attachment to a draft."""

    def send_draft(self, message_id: str) -> None:
        """Send an existing draft."""

    def move_message(self, message_id: str, destination_id: str) -> dict[str, Any]:
        """Move a message to another folder."""

    def translate_legacy_id(self, legacy_id: str) -> str | None:
        """Translate a legacy item id into a native message id."""


@dataclass(frozen=True)
class SearchCriteria:
    """Caller-supplied description of the message to find."""

    subject: str | None = None
    recipients: str | None = None
    received_time: str | None = None
    content_snippet: str | None = None
    legacy_id: str | None = None
    allow_fallback: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> SearchCriteria:
        """Build criteria from a request body, normalising blanks to None."""
        payload = payload or {}
        recipients = payload.get("recipients")
        if isinstance(recipients, (list, tuple)):
            recipients = ";".join(str(item) for item in recipients)
        fallback = payload.get("fallbackToMetadataSearch")
        if fallback is None:
            fallback = False
        if not isinstance(fallback, bool):
            raise InputError("fallbackToMetadataSearch must be a boolean.")
        return cls(
            subject=clean_text(payload.get("subject"), "subject"),
            recipients=clean_text(recipients, "recipients"),
            received_time=clean_text(payload.get("receivedTime"), "receivedTime"),
            content_snippet=clean_text(payload.get("contentSnippet"), "contentSnippet"),
            legacy_id=clean_text(payload.get("itemId"), "itemId"),
            allow_fallback=fallback,
        )

    def describe(self) -> str:
        return (
            f'Subject="{self.subject}", Recipients="{self.recipients}", '
            f'ReceivedTime="{self.received_time}", Snippet="{self.content_snippet}", '
            f'ItemId="{self.legacy_id}"'
        )


@dataclass(frozen=True)
class MessageSummary:
    """A candidate message as returned by the coarse remote query."""

    id: str
    received_at: datetime | None
    subject: str
    recipients: frozenset[str] = field(default_factory=frozenset)
    body_text: str | None = None

    @classmethod
    def from_graph(cls, payload: Mapping[str, Any]) -> MessageSummary:
        received_raw = payload.get("receivedDateTime")
        received_at: datetime | None = None
        if isinstance(received_raw, str) and received_raw.strip():
            try:
                received_at = parse_iso_instant(received_raw)
            except InputError:
                received_at = None
        body = payload.get("body")
        return cls(
            id=str(payload.get("id") or ""),
            received_at=received_at,
            subject=str(payload.get("subject") or ""),
            recipients=addresses_from_recipients(payload.get("toRecipients")),
            body_text=plain_text_body(body) if body is not None else None,
        )


class ResolutionOutcome(str, Enum):
    """How a resolution call ended."""

    FOUND = "found"
    TRANSLATED = "translated"
    NO_CANDIDATES = "no_candidates"
    NO_VALIDATED_MATCH = "no_validated_match"


@dataclass(frozen=True)
class Resolution:
    """Result of resolving criteria to at most one message id."""

    message_id: str | None
    outcome: ResolutionOutcome
    candidate_count: int = 0
    filter_expression: str | None = None

    @property
    def found(self) -> bool:
        return self.message_id is not None


@dataclass(frozen=True)
class ForwardResult:
    """Summary of a completed forward."""

    source_id: str
    draft_id: str
    archived_to: str
    attachments_copied: int = 0
    attachments_skipped: int = 0
    attachments_failed: int = 0
