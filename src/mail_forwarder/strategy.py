"""Resolution strategies: which discriminating fields a lookup uses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SearchField(str, Enum):
    """Criteria fields that can be pushed into the remote filter."""

    RECEIVED_TIME = "received_time"
    SUBJECT = "subject"
    SNIPPET = "content_snippet"


DISCRIMINATING_FIELDS = frozenset({SearchField.SUBJECT, SearchField.SNIPPET})

DEFAULT_CANDIDATE_LIMIT = 10
EXACT_TIME_CANDIDATE_LIMIT = 5


@dataclass(frozen=True)
class ResolutionStrategy:
    """Policy value describing how criteria are turned into one message id.

    ``filter_fields`` are the fields sent to the server when present.
    ``required_fields`` are checked in order before any remote call.
    ``candidate_limit`` is the fixed page size for the coarse query.
    """

    name: str
    filter_fields: frozenset[SearchField]
    required_fields: tuple[SearchField, ...] = ()
    validate_subject: bool = True
    candidate_limit: int = DEFAULT_CANDIDATE_LIMIT

    def uses(self, field: SearchField) -> bool:
        return field in self.filter_fields


AUTO = ResolutionStrategy(
    name="auto",
    filter_fields=frozenset(
        {SearchField.RECEIVED_TIME, SearchField.SUBJECT, SearchField.SNIPPET}
    ),
)
SUBJECT_ONLY = ResolutionStrategy(
    name="subject",
    filter_fields=frozenset({SearchField.SUBJECT}),
    required_fields=(SearchField.SUBJECT,),
)
SUBJECT_AND_TIME = ResolutionStrategy(
    name="subject-time",
    filter_fields=frozenset({SearchField.RECEIVED_TIME, SearchField.SUBJECT}),
    required_fields=(SearchField.RECEIVED_TIME, SearchField.SUBJECT),
    candidate_limit=EXACT_TIME_CANDIDATE_LIMIT,
)
SUBJECT_AND_SNIPPET = ResolutionStrategy(
    name="subject-snippet",
    filter_fields=frozenset({SearchField.SUBJECT, SearchField.SNIPPET}),
    required_fields=(SearchField.SUBJECT, SearchField.SNIPPET),
)

STRATEGIES: dict[str, ResolutionStrategy] = {
    strategy.name: strategy
    for strategy in (AUTO, SUBJECT_ONLY, SUBJECT_AND_TIME, SUBJECT_AND_SNIPPET)
}


def get_strategy(name: str) -> ResolutionStrategy:
    """Look up a named strategy preset."""
    try:
        return STRATEGIES[name]
    except KeyError:
        raise KeyError(f"Unknown resolution strategy: {name}") from None
