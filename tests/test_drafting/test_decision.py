"""Tests for the reply decision engine and its prompt."""

from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest
from anthropic.types import TextBlock, ToolUseBlock

from src.drafting.decision import (
    DecisionError,
    NoReplyNeeded,
    ReplyDecisionEngine,
    ReplyText,
    parse_decision,
)
from src.drafting.prompts import NO_REPLY_SENTINEL, build_prompt
from tests.fakes import make_candidate


# ── build_prompt ────────────────────────────────────────────────────────────────


class TestBuildPrompt:
    def test_embeds_sender_subject_and_snippet(self) -> None:
        prompt = build_prompt(
            make_candidate(from_address="bob@example.com", subject="Lunch?", snippet="Free Friday?"),
            "Nathan",
        )
        assert "From: bob@example.com" in prompt
        assert "Subject: Lunch?" in prompt
        assert "Snippet: Free Friday?" in prompt

    def test_states_sentinel_verbatim(self) -> None:
        prompt = build_prompt(make_candidate(), "Nathan")
        assert f"output exactly: {NO_REPLY_SENTINEL}" in prompt

    def test_rules_and_signature(self) -> None:
        prompt = build_prompt(make_candidate(), "Dana")
        assert "Dana's email assistant" in prompt
        assert "ask 1 clarifying question" in prompt
        assert "Never mention AI." in prompt
        assert "Do not promise anything untrue." in prompt
        assert '"— Dana"' in prompt


# ── parse_decision ──────────────────────────────────────────────────────────────


class TestParseDecision:
    @pytest.mark.parametrize("raw", ["", "   ", "\n\t", None, "NO_REPLY", "  NO_REPLY\n"])
    def test_no_reply(self, raw: str | None) -> None:
        assert parse_decision(raw) == NoReplyNeeded()

    def test_reply_text_is_trimmed(self) -> None:
        assert parse_decision("  Sounds good. — Nathan \n") == ReplyText("Sounds good. — Nathan")

    @pytest.mark.parametrize("raw", ["no_reply", "NO_REPLY.", "NO_REPLY needed", "`NO_REPLY`"])
    def test_near_sentinels_are_replies(self, raw: str) -> None:
        assert isinstance(parse_decision(raw), ReplyText)

    def test_reply_text_rejects_empty(self) -> None:
        with pytest.raises(ValueError):
            ReplyText("")


# ── ReplyDecisionEngine ─────────────────────────────────────────────────────────


class TestReplyDecisionEngine:
    @pytest.fixture
    def engine(self) -> ReplyDecisionEngine:
        return ReplyDecisionEngine(api_key="test-key", owner_name="Nathan")

    def _mock_response(self, *blocks: object) -> MagicMock:
        r = MagicMock()
        r.content = list(blocks)
        r.stop_reason = "end_turn"
        return r

    async def test_reply_text_returned(self, engine: ReplyDecisionEngine) -> None:
        engine._client.messages.create = AsyncMock(
            return_value=self._mock_response(TextBlock(type="text", text="Happy to help. — Nathan"))
        )
        assert await engine.decide(make_candidate()) == ReplyText("Happy to help. — Nathan")

    async def test_sentinel_means_no_reply(self, engine: ReplyDecisionEngine) -> None:
        engine._client.messages.create = AsyncMock(
            return_value=self._mock_response(TextBlock(type="text", text="NO_REPLY"))
        )
        assert await engine.decide(make_candidate()) == NoReplyNeeded()

    async def test_text_blocks_are_concatenated(self, engine: ReplyDecisionEngine) -> None:
        engine._client.messages.create = AsyncMock(
            return_value=self._mock_response(
                TextBlock(type="text", text="Hi Alice, "),
                TextBlock(type="text", text="sure. — Nathan"),
            )
        )
        assert await engine.complete("prompt") == "Hi Alice, sure. — Nathan"

    async def test_prompt_is_sent_as_single_user_message(self, engine: ReplyDecisionEngine) -> None:
        engine._client.messages.create = AsyncMock(
            return_value=self._mock_response(TextBlock(type="text", text="NO_REPLY"))
        )
        await engine.decide(make_candidate(subject="Budget"))
        messages = engine._client.messages.create.call_args.kwargs["messages"]
        assert len(messages) == 1
        assert messages[0]["role"] == "user"
        assert "Subject: Budget" in messages[0]["content"]

    async def test_no_text_blocks_raises_from_complete(self, engine: ReplyDecisionEngine) -> None:
        tool = ToolUseBlock(type="tool_use", id="toolu_1", name="x", input={})
        engine._client.messages.create = AsyncMock(return_value=self._mock_response(tool))
        with pytest.raises(DecisionError):
            await engine.complete("prompt")

    async def test_malformed_response_is_no_reply(self, engine: ReplyDecisionEngine) -> None:
        engine._client.messages.create = AsyncMock(return_value=self._mock_response())
        assert await engine.decide(make_candidate()) == NoReplyNeeded()

    async def test_api_error_is_no_reply(self, engine: ReplyDecisionEngine) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        engine._client.messages.create = AsyncMock(
            side_effect=anthropic.APIConnectionError(request=request)
        )
        assert await engine.decide(make_candidate()) == NoReplyNeeded()

    async def test_api_error_raises_decision_error_from_complete(
        self, engine: ReplyDecisionEngine
    ) -> None:
        engine._client.messages.create = AsyncMock(side_effect=RuntimeError("socket closed"))
        with pytest.raises(DecisionError):
            await engine.complete("prompt")
