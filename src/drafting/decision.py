"""Reply decision — asks Claude whether a candidate deserves a reply."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from src.drafting.prompts import NO_REPLY_SENTINEL, build_prompt
from src.sweep.types import CandidateMessage

logger = logging.getLogger(__name__)

# Sonnet: drafting replies is a synthesis task, worth more than Haiku.
_MODEL = "claude-sonnet-4-6"
_MAX_TOKENS = 1024


class DecisionError(Exception):
    """Raised when the completion call fails or returns no usable text."""


@dataclass(frozen=True)
class NoReplyNeeded:
    """The model signalled (or we decided) that no reply should be drafted."""


@dataclass(frozen=True)
class ReplyText:
    text: str

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("ReplyText requires non-empty text")


DecisionResult = Union[NoReplyNeeded, ReplyText]


def parse_decision(raw: str | None) -> DecisionResult:
    """Map raw model output to a DecisionResult.

    Whitespace is trimmed; an empty string or the exact sentinel means no reply.
    """
    text = (raw or "").strip()
    if not text or text == NO_REPLY_SENTINEL:
        return NoReplyNeeded()
    return ReplyText(text)


class ReplyDecisionEngine:
    """Sends one candidate summary to Claude and returns a DecisionResult.

    A failed or malformed completion never propagates out of `decide()`;
    it is logged and treated as NoReplyNeeded so one bad call cannot abort
    a sweep.

    Usage::

        engine = ReplyDecisionEngine(api_key=config.require_decision_key())
        decision = await engine.decide(candidate)
    """

    def __init__(
        self,
        api_key: str,
        owner_name: str = "Nathan",
        model: str = _MODEL,
        max_tokens: int = _MAX_TOKENS,
    ) -> None:
        self._client = AsyncAnthropic(api_key=api_key)
        self._owner_name = owner_name
        self._model = model
        self._max_tokens = max_tokens

    async def complete(self, prompt: str) -> str:
        """Run a single completion and return its concatenated text.

        Raises:
            DecisionError: on any API failure or a response with no text blocks.
        """
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as exc:  # noqa: BLE001
            raise DecisionError(f"Completion call failed: {exc}") from exc

        texts = [block.text for block in response.content if isinstance(block, TextBlock)]
        if not texts:
            raise DecisionError(
                f"Completion returned no text (stop_reason={response.stop_reason!r})"
            )
        return "".join(texts)

    async def decide(self, candidate: CandidateMessage) -> DecisionResult:
        """Decide whether `candidate` needs a reply. Never raises."""
        prompt = build_prompt(candidate, self._owner_name)
        try:
            raw = await self.complete(prompt)
        except DecisionError as exc:
            logger.error("Decision failed for message %s: %s", candidate.id, exc)
            return NoReplyNeeded()
        return parse_decision(raw)
