"""Tests for the candidate selector and the triage query."""

from unittest.mock import MagicMock

import pytest

from src.mail.gateway import GatewayError
from src.mail.types import MailMessage
from src.sweep.selector import (
    CANDIDATE_HEADERS,
    MAX_RESULTS_CEILING,
    CandidateFetchFailed,
    CandidateSelector,
    build_triage_query,
    clamp_max_results,
    to_candidate,
)


class TestClampMaxResults:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(0, 1), (-5, 1), (1, 1), (10, 10), (25, 25), (26, 25), (1000, 25)],
    )
    def test_clamps_into_range(self, raw: int, expected: int) -> None:
        assert clamp_max_results(raw) == expected

    def test_numeric_string_is_parsed(self) -> None:
        assert clamp_max_results("7") == 7
        assert clamp_max_results("99") == MAX_RESULTS_CEILING

    def test_garbage_falls_back_to_default(self) -> None:
        assert clamp_max_results("lots") == 10
        assert clamp_max_results(None) == 10

    def test_garbage_falls_back_to_given_default(self) -> None:
        assert clamp_max_results("lots", default=7) == 7
        assert clamp_max_results("", default=3) == 3

    def test_leading_integer_is_used(self) -> None:
        assert clamp_max_results("2.5") == 2
        assert clamp_max_results(" 12abc") == 12
        assert clamp_max_results("-4") == 1


class TestBuildTriageQuery:
    def test_exact_default_query(self) -> None:
        assert build_triage_query() == (
            "is:unread category:primary -label:AI-Drafted -from:noreply -from:no-reply "
            "-subject:(receipt OR invoice OR confirmation OR unsubscribe)"
        )

    def test_custom_marker_label(self) -> None:
        assert "-label:Handled" in build_triage_query("Handled")


class TestToCandidate:
    def test_maps_headers_case_insensitively(self) -> None:
        message = MailMessage(
            id="m1",
            thread_id="t1",
            snippet="hi",
            headers=[
                ("from", "Alice <alice@example.com>"),
                ("SUBJECT", "Hello"),
                ("Date", "Mon, 2 Mar 2026 09:00:00 +0000"),
                ("Message-Id", "<x@mail>"),
                ("reply-to", "desk@example.com"),
            ],
        )
        candidate = to_candidate(message)
        assert candidate.from_address == "Alice <alice@example.com>"
        assert candidate.subject == "Hello"
        assert candidate.message_id_header == "<x@mail>"
        assert candidate.reply_to == "desk@example.com"
        assert candidate.references_header == ""

    def test_missing_headers_are_empty_strings(self) -> None:
        candidate = to_candidate(MailMessage(id="m1", thread_id="t1"))
        assert candidate.subject == ""
        assert candidate.from_address == ""
        assert candidate.date_received == ""


class TestSelectCandidates:
    async def test_one_search_and_one_fetch_per_id(self, gateway_mock: MagicMock) -> None:
        gateway_mock.search.return_value = ["b", "a"]
        gateway_mock.get_metadata.side_effect = [
            MailMessage(id="b", thread_id="tb", headers=[("Subject", "B")]),
            MailMessage(id="a", thread_id="ta", headers=[("Subject", "A")]),
        ]
        selector = CandidateSelector(gateway_mock)

        candidates = await selector.select_candidates(5)

        assert [c.id for c in candidates] == ["b", "a"]
        gateway_mock.search.assert_awaited_once_with(selector.query, max_results=5)
        assert gateway_mock.get_metadata.await_count == 2
        assert gateway_mock.get_metadata.call_args.args == ("a", CANDIDATE_HEADERS)

    async def test_search_limit_is_clamped(self, gateway_mock: MagicMock) -> None:
        await CandidateSelector(gateway_mock).select_candidates(500)
        assert gateway_mock.search.call_args.kwargs["max_results"] == 25

    async def test_no_hits_returns_empty_list(self, gateway_mock: MagicMock) -> None:
        assert await CandidateSelector(gateway_mock).select_candidates(10) == []
        gateway_mock.get_metadata.assert_not_called()

    async def test_metadata_failure_raises_candidate_fetch_failed(
        self, gateway_mock: MagicMock
    ) -> None:
        gateway_mock.search.return_value = ["a"]
        gateway_mock.get_metadata.side_effect = GatewayError("404")
        with pytest.raises(CandidateFetchFailed):
            await CandidateSelector(gateway_mock).select_candidates(10)

    async def test_full_mode_fetches_full_messages(self, gateway_mock: MagicMock) -> None:
        gateway_mock.search.return_value = ["a"]
        gateway_mock.get_full.return_value = MailMessage(
            id="a", thread_id="ta", headers=[("Subject", "A")], body="Body text"
        )

        candidates = await CandidateSelector(gateway_mock, full=True).select_candidates(5)

        assert [c.subject for c in candidates] == ["A"]
        gateway_mock.get_full.assert_awaited_once_with("a")
        gateway_mock.get_metadata.assert_not_called()

    async def test_full_fetch_failure_raises_candidate_fetch_failed(
        self, gateway_mock: MagicMock
    ) -> None:
        gateway_mock.search.return_value = ["a"]
        gateway_mock.get_full.side_effect = GatewayError("500")
        with pytest.raises(CandidateFetchFailed):
            await CandidateSelector(gateway_mock, full=True).select_candidates(10)
