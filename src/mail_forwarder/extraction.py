"""Pure helpers for pulling addresses and text out of Graph payloads."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from bs4 import BeautifulSoup

RECIPIENT_SEPARATOR = ";"


def parse_recipients(raw: str | None) -> frozenset[str]:
    """Split a ``;``-delimited recipient string into a set of lowercase addresses."""
    if not raw:
        return frozenset()
    return frozenset(
        entry.strip().lower() for entry in raw.split(RECIPIENT_SEPARATOR) if entry.strip()
    )


def address_of(recipient: Any) -> str | None:
    """Return the lowercase address of a Graph recipient object, if it has one."""
    if not isinstance(recipient, dict):
        return None
    email = recipient.get("emailAddress") or {}
    address = email.get("address") if isinstance(email, dict) else None
    if not isinstance(address, str) or not address.strip():
        return None
    return address.strip().lower()


def addresses_from_recipients(recipients: Iterable[Any] | None) -> frozenset[str]:
    """Collect addresses from a Graph ``toRecipients``-style list."""
    output: set[str] = set()
    for recipient in recipients or []:
        address = address_of(recipient)
        if address:
            output.add(address)
    return frozenset(output)


def plain_text_body(body: Any) -> str:
    """Return the plain text of a Graph ``body`` object, stripping HTML markup."""
    if not isinstance(body, dict):
        return ""
    content = body.get("content") or ""
    if not isinstance(content, str):
        return ""
    if str(body.get("contentType", "")).lower() == "html":
        soup = BeautifulSoup(content, "html.parser")
        return " ".join(soup.get_text(separator=" ").split())
    return " ".join(content.split())
