"""Resolve loose search criteria to exactly one message id.

The remote filter is coarse: it may over-match and it never sorts. Every
candidate it returns is re-checked locally (subject, recipients, snippet)
and the newest survivor wins. Receive times are assumed to be unique per
mailbox; exact ties keep the order the API returned them in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from .errors import GraphApiError, NotFoundError, RemoteQueryError
from .extraction import parse_recipients
from .filters import build_filter
from .logging_utils import null_logger
from .models import (
    MailClient,
    MessageSummary,
    Resolution,
    ResolutionOutcome,
    SearchCriteria,
)
from .strategy import AUTO, ResolutionStrategy, SearchField

CANDIDATE_FIELDS = ("id", "receivedDateTime", "subject", "toRecipients")
TOO_COMPLEX_MARKER = "restriction or sort order is too complex"

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def candidate_fields(criteria: SearchCriteria, strategy: ResolutionStrategy) -> list[str]:
    """Fields to select for candidates; the body is only fetched when a snippet is checked."""
    fields = list(CANDIDATE_FIELDS)
    if strategy.uses(SearchField.SNIPPET) and criteria.content_snippet:
        fields.append("body")
    return fields


def fetch_candidates(
    client: MailClient,
    filter_expression: str,
    *,
    select: Sequence[str],
    top: int,
    logger: logging.Logger,
) -> tuple[MessageSummary, ...]:
    """Run the coarse query. Failures surface as RemoteQueryError and are never retried."""
    logger.info("Querying candidates with filter: %s", filter_expression)
    try:
        payloads = client.list_messages(filter_expression, select=select, top=top)
    except GraphApiError as exc:
        too_complex = TOO_COMPLEX_MARKER in str(exc).lower()
        logger.error("Candidate query failed (filter was %r): %s", filter_expression, exc)
        if too_complex:
            logger.error(
                "Graph rejected the filter as too complex; the subject or time values "
                "may be hitting a backend query limit."
            )
        raise RemoteQueryError(
            f"Error searching for message via metadata: {exc}", too_complex=too_complex
        ) from exc
    return tuple(MessageSummary.from_graph(item) for item in payloads if item.get("id"))


def subject_matches(candidate: MessageSummary, expected: str) -> bool:
    return candidate.subject.strip().lower() == expected.strip().lower()


def recipients_match(expected: frozenset[str], actual: frozenset[str]) -> bool:
    """Every expected address must be present; extra recipients are tolerated."""
    if not expected:
        return True
    if not actual:
        return False
    return expected <= actual


def snippet_matches(candidate: MessageSummary, snippet: str) -> bool:
    if candidate.body_text is None:
        return True
    wanted = " ".join(snippet.split()).lower()
    return wanted in candidate.body_text.lower()


def validate_candidates(
    candidates: Iterable[MessageSummary],
    criteria: SearchCriteria,
    strategy: ResolutionStrategy,
    *,
    logger: logging.Logger,
) -> list[MessageSummary]:
    """Keep only the candidates that pass every active local check."""
    expected_recipients = parse_recipients(criteria.recipients)
    check_subject = strategy.validate_subject and bool(criteria.subject)
    check_snippet = strategy.uses(SearchField.SNIPPET) and bool(criteria.content_snippet)

    validated: list[MessageSummary] = []
    for candidate in candidates:
        if check_subject and not subject_matches(candidate, criteria.subject or ""):
            logger.info(
                'Message %s: subject mismatch ("%s").', candidate.id, candidate.subject
            )
            continue
        if not recipients_match(expected_recipients, candidate.recipients):
            missing = sorted(expected_recipients - candidate.recipients)
            logger.info(
                "Message %s (received %s): recipient mismatch, missing [%s], found [%s].",
                candidate.id,
                candidate.received_at,
                ", ".join(missing),
                ", ".join(sorted(candidate.recipients)),
            )
            continue
        if check_snippet and not snippet_matches(candidate, criteria.content_snippet or ""):
            logger.info("Message %s: body does not contain the snippet.", candidate.id)
            continue
        validated.append(candidate)
    return validated


def select_latest(candidates: Sequence[MessageSummary]) -> MessageSummary | None:
    """Pick the most recently received candidate; undated candidates rank last."""
    if not candidates:
        return None
    ranked = sorted(
        candidates,
        key=lambda item: (item.received_at is not None, item.received_at or _OLDEST),
        reverse=True,
    )
    return ranked[0]


def resolve_by_metadata(
    criteria: SearchCriteria,
    client: MailClient,
    *,
    strategy: ResolutionStrategy,
    logger: logging.Logger,
) -> Resolution:
    """Filter remotely, validate locally, and select the newest match."""
    filter_expression = build_filter(criteria, strategy)
    candidates = fetch_candidates(
        client,
        filter_expression,
        select=candidate_fields(criteria, strategy),
        top=strategy.candidate_limit,
        logger=logger,
    )
    if not candidates:
        logger.info("Candidate query returned no messages. Filter used: %s", filter_expression)
        return Resolution(
            message_id=None,
            outcome=ResolutionOutcome.NO_CANDIDATES,
            filter_expression=filter_expression,
        )

    logger.info("Candidate query returned %d message(s); validating locally.", len(candidates))
    validated = validate_candidates(candidates, criteria, strategy, logger=logger)
    chosen = select_latest(validated)
    if chosen is None:
        logger.info("No candidate passed local validation.")
        return Resolution(
            message_id=None,
            outcome=ResolutionOutcome.NO_VALIDATED_MATCH,
            candidate_count=len(candidates),
            filter_expression=filter_expression,
        )

    logger.info(
        '%d message(s) matched; latest is %s (received %s, subject "%s").',
        len(validated),
        chosen.id,
        chosen.received_at,
        chosen.subject,
    )
    return Resolution(
        message_id=chosen.id,
        outcome=ResolutionOutcome.FOUND,
        candidate_count=len(candidates),
        filter_expression=filter_expression,
    )


def _translate(
    criteria: SearchCriteria, client: MailClient, *, logger: logging.Logger
) -> str | None:
    legacy_id = criteria.legacy_id or ""
    try:
        translated = client.translate_legacy_id(legacy_id)
    except GraphApiError as exc:
        if not criteria.allow_fallback:
            raise RemoteQueryError(f"Could not translate itemId {legacy_id!r}: {exc}") from exc
        logger.warning("itemId translation failed (%s); falling back to metadata search.", exc)
        return None
    if translated:
        return translated
    if not criteria.allow_fallback:
        raise NotFoundError(
            f"itemId {legacy_id!r} could not be translated to a message id.",
            reason="translation_empty",
        )
    logger.warning("itemId translation returned nothing; falling back to metadata search.")
    return None


def resolve(
    criteria: SearchCriteria,
    client: MailClient,
    *,
    strategy: ResolutionStrategy = AUTO,
    logger: logging.Logger | None = None,
) -> Resolution:
    """Resolve criteria to at most one message id without raising on not-found."""
    logger = logger or null_logger()
    if criteria.legacy_id:
        translated = _translate(criteria, client, logger=logger)
        if translated:
            logger.info("Translated itemId to message id %s.", translated)
            return Resolution(message_id=translated, outcome=ResolutionOutcome.TRANSLATED)
    return resolve_by_metadata(criteria, client, strategy=strategy, logger=logger)


def resolve_message_id(
    criteria: SearchCriteria,
    client: MailClient,
    *,
    strategy: ResolutionStrategy = AUTO,
    logger: logging.Logger | None = None,
) -> str:
    """Resolve criteria to one message id or raise NotFoundError."""
    resolution = resolve(criteria, client, strategy=strategy, logger=logger)
    if resolution.message_id is None:
        raise NotFoundError(
            f"No message found via metadata search matching criteria ({criteria.describe()})",
            reason=resolution.outcome.value,
        )
    return resolution.message_id
