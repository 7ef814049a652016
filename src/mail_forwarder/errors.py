"""Custom exceptions for the mail forwarding domain."""

from __future__ import annotations

from typing import Any


class ForwarderError(Exception):
    """Base exception for this project."""


class ConfigError(ForwarderError):
    """Raised when runtime configuration is invalid."""


class InputError(ForwarderError):
    """Raised when search criteria are missing or malformed."""


class AuthError(ForwarderError):
    """Raised when a credential is missing or cannot be obtained."""


class GraphApiError(ForwarderError):
    """Raised when a Microsoft Graph call fails or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.body = body


class RemoteQueryError(ForwarderError):
    """Raised when the candidate query or id translation is rejected."""

    def __init__(self, message: str, *, too_complex: bool = False) -> None:
        super().__init__(message)
        self.too_complex = too_complex


class NotFoundError(ForwarderError):
    """Raised when no message satisfies the search criteria."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class ProcessingError(ForwarderError):
    """Raised when fetching, drafting, sending or archiving a resolved message fails."""

    def __init__(
        self,
        message: str,
        *,
        message_id: str,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message_id = message_id
        self.status_code = status_code
        self.code = code


class AttachmentCopyError(ForwarderError):
    """Raised when one attachment cannot be copied onto the draft."""
