"""Validation and runtime guardrails."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from urllib.parse import urlparse

from .errors import ConfigError, InputError
from .strategy import STRATEGIES

_FRACTION = re.compile(r"\.(\d+)")


def is_supported_url(url: str) -> bool:
    """Allow only absolute HTTP(S) URLs with a hostname."""
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def clean_text(value: object, field: str) -> str | None:
    """Return a trimmed string, None for blank input, or raise InputError for non-strings."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise InputError(f"{field} must be a string.")
    stripped = value.strip()
    return stripped or None


def parse_iso_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    text = (value or "").strip()
    if not text:
        raise InputError("receivedTime must be a non-empty ISO-8601 string.")
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InputError(f"receivedTime is not a valid ISO-8601 instant: {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_runtime_constraints(
    *,
    graph_url: str,
    mailbox: str | None,
    strategy: str,
    archive_folder: str,
    request_timeout: float,
) -> None:
    """Validate CLI/runtime configuration and raise ConfigError on invalid values."""
    if not is_supported_url(graph_url):
        raise ConfigError("--graph-url must be an absolute http(s) URL.")
    if mailbox is not None and "@" not in mailbox:
        raise ConfigError("--mailbox must be a user principal name such as user@contoso.com.")
    if strategy not in STRATEGIES:
        raise ConfigError(
            f"--strategy must be one of: {', '.join(sorted(STRATEGIES))}."
        )
    if not archive_folder.strip():
        raise ConfigError("--archive-folder cannot be empty.")
    if request_timeout <= 0:
        raise ConfigError("--timeout must be > 0.")
