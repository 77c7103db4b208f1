"""Candidate selection — the fixed triage query and metadata snapshots."""

from __future__ import annotations

import logging
import re

from src.mail.gateway import GatewayError, GmailGateway
from src.mail.types import MailMessage
from src.sweep.tracker import PROCESSED_LABEL
from src.sweep.types import CandidateMessage

logger = logging.getLogger(__name__)

MAX_RESULTS_CEILING = 25
DEFAULT_MAX_RESULTS = 10

#: Headers fetched for every candidate; the threading ones feed the composer.
CANDIDATE_HEADERS: list[str] = [
    "From",
    "To",
    "Reply-To",
    "Subject",
    "Date",
    "Message-ID",
    "References",
]

_NO_REPLY_SENDERS = ("noreply", "no-reply")
_JUNK_SUBJECT_WORDS = ("receipt", "invoice", "confirmation", "unsubscribe")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class CandidateFetchFailed(Exception):
    """Raised when the candidate list cannot be obtained from Gmail."""


def clamp_max_results(value: object, default: int = DEFAULT_MAX_RESULTS) -> int:
    """Clamp a caller-supplied limit to [1, MAX_RESULTS_CEILING].

    Values above the ceiling are capped, not rejected.  Strings are read up
    to their leading integer, so "2.5" means 2.  Anything with no leading
    integer falls back to `default`.
    """
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        limit = int(match.group(1)) if match else default
    else:
        try:
            limit = int(value)  # type: ignore[call-overload]
        except (TypeError, ValueError):
            limit = default
    return max(1, min(limit, MAX_RESULTS_CEILING))


def build_triage_query(marker_label: str = PROCESSED_LABEL) -> str:
    """Return the Gmail search query for unread, primary, unprocessed mail."""
    terms = [
        "is:unread",
        "category:primary",
        f"-label:{marker_label}",
        *(f"-from:{sender}" for sender in _NO_REPLY_SENDERS),
        f"-subject:({' OR '.join(_JUNK_SUBJECT_WORDS)})",
    ]
    return " ".join(terms)


def to_candidate(message: MailMessage) -> CandidateMessage:
    return CandidateMessage(
        id=message.id,
        thread_id=message.thread_id,
        snippet=message.snippet,
        from_address=message.header("From"),
        subject=message.header("Subject"),
        date_received=message.header("Date"),
        reply_to=message.header("Reply-To"),
        message_id_header=message.header("Message-ID"),
        references_header=message.header("References"),
    )


class CandidateSelector:
    """Turns the triage search into an ordered list of candidate snapshots."""

    def __init__(
        self,
        gateway: GmailGateway,
        marker_label: str = PROCESSED_LABEL,
        full: bool = False,
    ) -> None:
        self._gateway = gateway
        self._query = build_triage_query(marker_label)
        self._full = full

    @property
    def query(self) -> str:
        return self._query

    async def _fetch(self, message_id: str) -> MailMessage:
        if self._full:
            return await self._gateway.get_full(message_id)
        return await self._gateway.get_metadata(message_id, CANDIDATE_HEADERS)

    async def select_candidates(self, max_results: int) -> list[CandidateMessage]:
        """Run one search plus one fetch per hit, keeping provider order.

        With `full=True` each hit is fetched in full format (the sweep's
        path); otherwise only CANDIDATE_HEADERS are requested.

        Raises:
            CandidateFetchFailed: if the search or any fetch fails.
        """
        limit = clamp_max_results(max_results)
        try:
            ids = await self._gateway.search(self._query, max_results=limit)
            if not ids:
                logger.info("No candidates matched %r", self._query)
                return []

            candidates: list[CandidateMessage] = []
            for message_id in ids:
                message = await self._fetch(message_id)
                candidates.append(to_candidate(message))
        except GatewayError as exc:
            raise CandidateFetchFailed(f"Could not fetch candidates: {exc}") from exc

        logger.info("Selected %d candidate(s) (limit=%d)", len(candidates), limit)
        return candidates
