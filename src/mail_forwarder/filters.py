"""OData filter construction for the coarse candidate query."""

from __future__ import annotations

from datetime import datetime

from .errors import InputError
from .models import SearchCriteria
from .strategy import DISCRIMINATING_FIELDS, ResolutionStrategy, SearchField
from .validation import parse_iso_instant

_FIELD_LABELS = {
    SearchField.RECEIVED_TIME: "receivedTime",
    SearchField.SUBJECT: "subject",
    SearchField.SNIPPET: "contentSnippet",
}


def escape_odata(value: str | None) -> str:
    """Trim a value and double its single quotes for use inside an OData string literal."""
    if not value:
        return ""
    return value.strip().replace("'", "''")


def unescape_odata(literal: str) -> str:
    """Reverse ``escape_odata`` for the body of a quoted literal."""
    return literal.replace("''", "'")


def format_instant(value: datetime) -> str:
    """Render an aware datetime as a UTC OData DateTimeOffset literal."""
    return value.isoformat().replace("+00:00", "Z")


def format_received_time(value: str) -> str:
    """Parse an ISO-8601 instant and render it for an equality clause."""
    return format_instant(parse_iso_instant(value))


def _value_for(criteria: SearchCriteria, field: SearchField) -> str | None:
    value = getattr(criteria, field.value)
    if isinstance(value, str) and value.strip():
        return value
    return None


def check_required_fields(criteria: SearchCriteria, strategy: ResolutionStrategy) -> None:
    """Raise InputError for the first required field that is missing."""
    for field in strategy.required_fields:
        if _value_for(criteria, field) is None:
            label = _FIELD_LABELS[field]
            raise InputError(
                f"{label} is required for the '{strategy.name}' resolution strategy."
            )


def active_fields(criteria: SearchCriteria, strategy: ResolutionStrategy) -> list[SearchField]:
    """Return filterable fields that are both present and enabled, in clause order."""
    ordered = (SearchField.RECEIVED_TIME, SearchField.SUBJECT, SearchField.SNIPPET)
    return [
        field
        for field in ordered
        if strategy.uses(field) and _value_for(criteria, field) is not None
    ]


def build_filter(criteria: SearchCriteria, strategy: ResolutionStrategy) -> str:
    """Build a conjunctive OData filter from the active criteria.

    Recipients never reach the server; they are checked locally after the
    candidate page is fetched.
    """
    check_required_fields(criteria, strategy)
    fields = active_fields(criteria, strategy)
    if not DISCRIMINATING_FIELDS.intersection(fields):
        raise InputError(
            "insufficient search criteria: provide a subject or content snippet "
            "(or an itemId) to locate the message."
        )

    clauses: list[str] = []
    for field in fields:
        value = _value_for(criteria, field)
        if field is SearchField.RECEIVED_TIME:
            clauses.append(f"receivedDateTime eq {format_received_time(value or '')}")
        elif field is SearchField.SUBJECT:
            clauses.append(f"subject eq '{escape_odata(value)}'")
        elif field is SearchField.SNIPPET:
            clauses.append(f"contains(body/content,'{escape_odata(value)}')")
    return " and ".join(clauses)
