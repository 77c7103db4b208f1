"""Sweep orchestrator — select, decide, draft, mark; one candidate at a time."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from src.auth.credentials import CredentialStore
from src.config import SweeperConfig
from src.drafting.composer import OutgoingMessage, compose, encode_raw, render, render_new
from src.drafting.decision import NoReplyNeeded, ReplyDecisionEngine
from src.mail.gateway import GatewayError, GmailGateway
from src.mail.types import DraftRef
from src.sweep.selector import CANDIDATE_HEADERS, CandidateSelector, to_candidate
from src.sweep.tracker import PROCESSED_LABEL, ProcessedStateTracker
from src.sweep.types import (
    CandidateMessage,
    CandidateResult,
    CandidateState,
    DraftedMessage,
    SweepOutcome,
)

logger = logging.getLogger(__name__)

#: Builds a gateway from the credential store.  Called once per operation so
#: every sweep works against the store's current credentials.
GatewayFactory = Callable[[CredentialStore], GmailGateway]


class SweepError(Exception):
    """Base class for failures that abort a whole sweep."""


class MarkerLabelFailed(SweepError):
    """Raised when the processed-marker label cannot be listed or created."""


class SweepOrchestrator:
    """Runs the triage sweep and the single-shot drafting operations.

    Candidates are handled strictly sequentially in the order Gmail returned
    them.  A failure on one candidate is logged and that candidate is left
    unmarked, so the next sweep picks it up again; the rest of the batch
    carries on.

    Only Unauthenticated, ConfigurationMissing, CandidateFetchFailed and
    MarkerLabelFailed escape `run_sweep()`.

    Two sweeps started in the same process (scheduler and HTTP trigger, say)
    are serialised by an asyncio.Lock.  Sweeps running in separate processes
    against the same mailbox are not coordinated.

    Usage::

        orchestrator = SweepOrchestrator(config, store)
        outcome = await orchestrator.run_sweep(max_results=10)
    """

    def __init__(
        self,
        config: SweeperConfig,
        store: CredentialStore,
        gateway_factory: GatewayFactory = GmailGateway.from_store,
        engine: ReplyDecisionEngine | None = None,
        label_name: str = PROCESSED_LABEL,
    ) -> None:
        self._config = config
        self._store = store
        self._gateway_factory = gateway_factory
        self._engine = engine
        self._label_name = label_name
        self._lock = asyncio.Lock()

    @property
    def config(self) -> SweeperConfig:
        return self._config

    @property
    def store(self) -> CredentialStore:
        return self._store

    # ── Sweep ──────────────────────────────────────────────────────────────────

    async def run_sweep(self, max_results: int) -> SweepOutcome:
        """Draft replies for up to `max_results` candidates and mark them processed.

        Raises:
            Unauthenticated: no refresh credential is configured.
            ConfigurationMissing: no decision-engine API key.
            MarkerLabelFailed: the processed-marker label could not be resolved.
            CandidateFetchFailed: the candidate search or metadata fetch failed.
        """
        async with self._lock:
            self._store.ensure_valid_credential()
            engine = self._get_engine()
            gateway = await self._open_gateway()

            tracker = ProcessedStateTracker(gateway, self._label_name)
            try:
                label_id = await tracker.ensure_marker_label()
            except GatewayError as exc:
                raise MarkerLabelFailed(
                    f"Could not resolve label {self._label_name!r}: {exc}"
                ) from exc

            selector = CandidateSelector(gateway, self._label_name, full=True)
            candidates = await selector.select_candidates(max_results)

            outcome = SweepOutcome()
            for candidate in candidates:
                result = await self.process_candidate(
                    candidate, engine, gateway, tracker, label_id
                )
                if result.state is CandidateState.MARKED and result.draft_id:
                    outcome.drafted.append(
                        DraftedMessage(message_id=candidate.id, draft_id=result.draft_id)
                    )
                else:
                    outcome.skipped += 1

            logger.info(
                "Sweep finished: %d drafted, %d skipped (of %d candidates)",
                outcome.drafted_count,
                outcome.skipped,
                len(candidates),
            )
            return outcome

    async def process_candidate(
        self,
        candidate: CandidateMessage,
        engine: ReplyDecisionEngine,
        gateway: GmailGateway,
        tracker: ProcessedStateTracker,
        label_id: str,
    ) -> CandidateResult:
        """Walk one candidate through decide → compose → draft → mark. Never raises."""
        state = CandidateState.SELECTED
        draft: DraftRef | None = None
        try:
            decision = await engine.decide(candidate)
            if isinstance(decision, NoReplyNeeded):
                logger.info("No reply needed for message %s", candidate.id)
                return CandidateResult(candidate.id, CandidateState.DECIDED_NO_REPLY)
            state = CandidateState.DECIDED_HAS_REPLY

            reply = compose(candidate, decision.text)
            raw = encode_raw(render(reply))
            state = CandidateState.COMPOSED

            draft = await gateway.create_draft(raw, thread_id=reply.thread_id)
            state = CandidateState.DRAFTED

            await tracker.mark_processed(candidate.id, label_id)
            state = CandidateState.MARKED
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Abandoning message %s after state %s: %s",
                candidate.id,
                state.value,
                exc,
                exc_info=True,
            )
            # A draft without its marker will be drafted again next sweep.
            return CandidateResult(
                candidate.id,
                CandidateState.ABANDONED,
                draft.draft_id if draft is not None else None,
            )

        logger.info(
            "Drafted reply %s for message %s (thread %s)",
            draft.draft_id,
            candidate.id,
            candidate.thread_id,
        )
        return CandidateResult(candidate.id, state, draft.draft_id)

    # ── Single-shot operations ─────────────────────────────────────────────────

    async def list_candidates(self, max_results: int) -> tuple[str, list[CandidateMessage]]:
        """Return (query, candidates) without deciding or drafting anything."""
        self._store.ensure_valid_credential()
        selector = CandidateSelector(await self._open_gateway(), self._label_name)
        return selector.query, await selector.select_candidates(max_results)

    async def draft_reply(self, message_id: str, body: str) -> tuple[DraftRef, str]:
        """Draft `body` as an in-thread reply to `message_id`. Does not mark it.

        Returns the draft and the thread it was filed in.
        """
        self._store.ensure_valid_credential()
        gateway = await self._open_gateway()
        original = to_candidate(await gateway.get_metadata(message_id, CANDIDATE_HEADERS))
        reply = compose(original, body)
        draft = await gateway.create_draft(encode_raw(render(reply)), thread_id=reply.thread_id)
        logger.info("Drafted reply %s for message %s", draft.draft_id, message_id)
        return draft, reply.thread_id

    async def draft_new(self, message: OutgoingMessage) -> DraftRef:
        """Draft a stand-alone message in a new thread."""
        self._store.ensure_valid_credential()
        gateway = await self._open_gateway()
        draft = await gateway.create_draft(encode_raw(render_new(message)))
        logger.info("Drafted new message %s to %s", draft.draft_id, message.to)
        return draft

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _open_gateway(self) -> GmailGateway:
        # Building the discovery client is blocking I/O.
        return await asyncio.to_thread(self._gateway_factory, self._store)

    def _get_engine(self) -> ReplyDecisionEngine:
        """Return the decision engine, building it from config on first use.

        Raises ConfigurationMissing if no API key is configured.
        """
        if self._engine is None:
            self._engine = ReplyDecisionEngine(
                api_key=self._config.require_decision_key(),
                owner_name=self._config.owner_name,
            )
        return self._engine
