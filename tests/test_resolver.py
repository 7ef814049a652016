import logging
from typing import Any

import pytest

from mail_forwarder.errors import GraphApiError, InputError, NotFoundError, RemoteQueryError
from mail_forwarder.models import MessageSummary, ResolutionOutcome, SearchCriteria
from mail_forwarder.resolver import (
    recipients_match,
    resolve,
    resolve_message_id,
    select_latest,
    validate_candidates,
)
from mail_forwarder.strategy import AUTO, SUBJECT_AND_SNIPPET, SUBJECT_AND_TIME


def _message(
    message_id: str, subject: str, recipients: list[str], received: str, body: str | None = None
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": message_id,
        "subject": subject,
        "receivedDateTime": received,
        "toRecipients": [{"emailAddress": {"address": address}} for address in recipients],
    }
    if body is not None:
        payload["body"] = {"contentType": "html", "content": body}
    return payload


class FakeMailClient:
    def __init__(
        self,
        messages: list[dict[str, Any]] | None = None,
        *,
        list_error: GraphApiError | None = None,
        translated: str | None = None,
        translate_error: GraphApiError | None = None,
    ) -> None:
        self._messages = messages or []
        self._list_error = list_error
        self._translated = translated
        self._translate_error = translate_error
        self.calls: list[tuple[str, Any]] = []

    def list_messages(self, filter_expression: str, *, select: Any, top: int) -> list[dict[str, Any]]:
        self.calls.append(("list_messages", (filter_expression, list(select), top)))
        if self._list_error is not None:
            raise self._list_error
        return list(self._messages)

    def translate_legacy_id(self, legacy_id: str) -> str | None:
        self.calls.append(("translate_legacy_id", legacy_id))
        if self._translate_error is not None:
            raise self._translate_error
        return self._translated


def _summary(message_id: str, received: str, recipients: list[str] | None = None) -> MessageSummary:
    return MessageSummary.from_graph(
        _message(message_id, "Subject", recipients or [], received)
    )


def test_no_discriminating_field_fails_before_any_remote_call() -> None:
    client = FakeMailClient([_message("1", "x", [], "2024-01-01T00:00:00Z")])
    criteria = SearchCriteria(recipients="a@x.com", received_time="2024-01-01T00:00:00Z")
    with pytest.raises(InputError):
        resolve(criteria, client)  # type: ignore[arg-type]
    assert client.calls == []


def test_time_variant_without_timestamp_fails_before_any_remote_call() -> None:
    client = FakeMailClient()
    with pytest.raises(InputError, match="receivedTime is required"):
        resolve(SearchCriteria(subject="Q3 Report"), client, strategy=SUBJECT_AND_TIME)  # type: ignore[arg-type]
    assert client.calls == []


def test_q3_report_scenario_prefers_full_recipient_match_over_later_message() -> None:
    client = FakeMailClient(
        [
            _message("1", "Q3 Report", ["a@x.com", "b@x.com", "c@x.com"], "2024-07-01T09:00:00Z"),
            _message("2", "Q3 Report", ["a@x.com"], "2024-07-02T09:00:00Z"),
        ]
    )
    criteria = SearchCriteria(subject="Q3 Report", recipients="a@x.com;b@x.com")
    assert resolve_message_id(criteria, client) == "1"  # type: ignore[arg-type]


def test_empty_expected_recipients_accept_every_candidate() -> None:
    candidates = [
        _summary("1", "2024-01-01T00:00:00Z", []),
        _summary("2", "2024-01-02T00:00:00Z", ["z@x.com"]),
    ]
    validated = validate_candidates(
        candidates, SearchCriteria(subject="Subject"), AUTO, logger=logging.getLogger("test")
    )
    assert [item.id for item in validated] == ["1", "2"]
    assert recipients_match(frozenset(), frozenset()) is True


def test_missing_expected_recipient_excludes_candidate() -> None:
    expected = frozenset({"a@x.com", "b@x.com"})
    assert recipients_match(expected, frozenset({"a@x.com", "b@x.com", "c@x.com"})) is True
    assert recipients_match(expected, frozenset({"a@x.com", "c@x.com"})) is False
    assert recipients_match(expected, frozenset()) is False


def test_recipient_validation_is_case_insensitive() -> None:
    client = FakeMailClient(
        [_message("1", "Hello", ["Alice@Example.COM"], "2024-01-01T00:00:00Z")]
    )
    criteria = SearchCriteria(subject="Hello", recipients=" alice@example.com ;")
    assert resolve_message_id(criteria, client) == "1"  # type: ignore[arg-type]


def test_select_latest_is_independent_of_input_order() -> None:
    older = _summary("old", "2024-01-01T00:00:00Z")
    newer = _summary("new", "2024-01-01T00:00:01Z")
    assert select_latest([older, newer]) is newer
    assert select_latest([newer, older]) is newer
    assert select_latest([]) is None


def test_select_latest_ranks_undated_last_and_keeps_api_order_on_ties() -> None:
    undated = MessageSummary(id="undated", received_at=None, subject="s")
    first = _summary("first", "2024-01-01T00:00:00Z")
    second = _summary("second", "2024-01-01T00:00:00Z")
    assert select_latest([undated, first, second]) is first


def test_subject_is_revalidated_locally() -> None:
    client = FakeMailClient(
        [
            _message("1", "Q3 Report (draft)", [], "2024-01-02T00:00:00Z"),
            _message("2", "  q3 report ", [], "2024-01-01T00:00:00Z"),
        ]
    )
    assert resolve_message_id(SearchCriteria(subject="Q3 Report"), client) == "2"  # type: ignore[arg-type]


def test_snippet_strategy_fetches_body_and_validates_text() -> None:
    client = FakeMailClient(
        [
            _message("1", "Hi", [], "2024-01-02T00:00:00Z", body="<p>nothing here</p>"),
            _message("2", "Hi", [], "2024-01-01T00:00:00Z", body="<p>Net <b>Revenue</b> grew</p>"),
        ]
    )
    criteria = SearchCriteria(subject="Hi", content_snippet="net revenue")
    assert resolve_message_id(criteria, client, strategy=SUBJECT_AND_SNIPPET) == "2"  # type: ignore[arg-type]
    _, (expression, select, top) = client.calls[0]
    assert "contains(body/content,'net revenue')" in expression
    assert "body" in select
    assert top == SUBJECT_AND_SNIPPET.candidate_limit


def test_candidate_query_uses_bounded_page_without_body() -> None:
    client = FakeMailClient([_message("1", "Hi", [], "2024-01-01T00:00:00Z")])
    criteria = SearchCriteria(subject="Hi", received_time="2024-01-01T00:00:00Z")
    resolve(criteria, client, strategy=SUBJECT_AND_TIME)  # type: ignore[arg-type]
    _, (expression, select, top) = client.calls[0]
    assert expression == "receivedDateTime eq 2024-01-01T00:00:00Z and subject eq 'Hi'"
    assert select == ["id", "receivedDateTime", "subject", "toRecipients"]
    assert top == 5


def test_not_found_outcomes_are_distinguishable_internally() -> None:
    empty = resolve(SearchCriteria(subject="Hi"), FakeMailClient([]))  # type: ignore[arg-type]
    assert empty.outcome is ResolutionOutcome.NO_CANDIDATES
    assert empty.message_id is None

    unmatched = resolve(
        SearchCriteria(subject="Hi", recipients="a@x.com"),
        FakeMailClient([_message("1", "Hi", ["b@x.com"], "2024-01-01T00:00:00Z")]),  # type: ignore[arg-type]
    )
    assert unmatched.outcome is ResolutionOutcome.NO_VALIDATED_MATCH
    assert unmatched.candidate_count == 1


def test_resolve_message_id_collapses_not_found_outcomes() -> None:
    with pytest.raises(NotFoundError) as excinfo:
        resolve_message_id(SearchCriteria(subject="Hi"), FakeMailClient([]))  # type: ignore[arg-type]
    assert excinfo.value.reason == "no_candidates"


def test_remote_failure_is_surfaced_without_retry() -> None:
    error = GraphApiError(
        "list messages failed (400): The restriction or sort order is too complex for this operation.",
        status_code=400,
        code="ErrorInvalidRestriction",
    )
    client = FakeMailClient(list_error=error)
    with pytest.raises(RemoteQueryError) as excinfo:
        resolve(SearchCriteria(subject="Hi"), client)  # type: ignore[arg-type]
    assert excinfo.value.too_complex is True
    assert len(client.calls) == 1


def test_translated_legacy_id_short_circuits_search() -> None:
    client = FakeMailClient(translated="AAMkNative=")
    resolution = resolve(SearchCriteria(legacy_id="legacy"), client)  # type: ignore[arg-type]
    assert resolution.message_id == "AAMkNative="
    assert resolution.outcome is ResolutionOutcome.TRANSLATED
    assert client.calls == [("translate_legacy_id", "legacy")]


def test_translation_failure_without_fallback_is_fatal() -> None:
    client = FakeMailClient(
        [_message("1", "Hi", [], "2024-01-01T00:00:00Z")],
        translate_error=GraphApiError("translate failed", status_code=400),
    )
    with pytest.raises(RemoteQueryError):
        resolve(SearchCriteria(legacy_id="legacy", subject="Hi"), client)  # type: ignore[arg-type]
    assert [name for name, _ in client.calls] == ["translate_legacy_id"]


def test_empty_translation_without_fallback_is_not_found() -> None:
    client = FakeMailClient(translated=None)
    with pytest.raises(NotFoundError):
        resolve(SearchCriteria(legacy_id="legacy", subject="Hi"), client)  # type: ignore[arg-type]


def test_translation_failure_with_fallback_uses_metadata_search() -> None:
    client = FakeMailClient(
        [_message("1", "Hi", [], "2024-01-01T00:00:00Z")],
        translate_error=GraphApiError("translate failed", status_code=400),
    )
    criteria = SearchCriteria(legacy_id="legacy", subject="Hi", allow_fallback=True)
    resolution = resolve(criteria, client)  # type: ignore[arg-type]
    assert resolution.message_id == "1"
    assert resolution.outcome is ResolutionOutcome.FOUND
    assert [name for name, _ in client.calls] == ["translate_legacy_id", "list_messages"]


def test_fallback_without_metadata_is_input_error() -> None:
    client = FakeMailClient(translated=None)
    with pytest.raises(InputError):
        resolve(SearchCriteria(legacy_id="legacy", allow_fallback=True), client)  # type: ignore[arg-type]


def test_resolution_without_logger_matches_with_logger() -> None:
    messages = [
        _message("1", "Hi", ["a@x.com"], "2024-01-01T00:00:00Z"),
        _message("2", "Hi", ["a@x.com"], "2024-01-03T00:00:00Z"),
    ]
    criteria = SearchCriteria(subject="Hi", recipients="a@x.com")
    silent = resolve(criteria, FakeMailClient(messages))  # type: ignore[arg-type]
    logged = resolve(criteria, FakeMailClient(messages), logger=logging.getLogger("test"))  # type: ignore[arg-type]
    assert silent == logged
    assert silent.message_id == "2"


def test_multiline_snippet_matches_multiline_plain_text_body() -> None:
    message = _message("1", "Hi", [], "2024-01-01T00:00:00Z")
    message["body"] = {"contentType": "text", "content": "Dear team,\nplease find\nthe report"}
    client = FakeMailClient([message])
    criteria = SearchCriteria(subject="Hi", content_snippet="please  find\nthe report")
    resolution = resolve(criteria, client, strategy=SUBJECT_AND_SNIPPET)  # type: ignore[arg-type]
    assert resolution.message_id == "1"
    assert resolution.outcome is ResolutionOutcome.FOUND
