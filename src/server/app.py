"""HTTP trigger surface — health, OAuth consent, manual drafts, and /run-sweep."""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from src.auth.credentials import CredentialStore, Unauthenticated
from src.auth.oauth import AuthorizationFlow
from src.config import ConfigurationMissing, SweeperConfig
from src.drafting.composer import OutgoingMessage
from src.mail.gateway import GatewayError
from src.sweep.orchestrator import SweepError, SweepOrchestrator
from src.sweep.scheduler import create_sweep_scheduler
from src.sweep.selector import CandidateFetchFailed, clamp_max_results

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


class SweepUnauthorized(Exception):
    """Raised when /run-sweep is called without the shared secret."""


# ── Request bodies ─────────────────────────────────────────────────────────────


class DraftRequest(BaseModel):
    to: str | None = None
    subject: str | None = None
    body: str | None = None
    cc: str | None = None
    bcc: str | None = None


class ReplyDraftRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: str | None = Field(default=None, alias="messageId")
    body: str | None = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ── App factory ────────────────────────────────────────────────────────────────


def create_app(
    config: SweeperConfig,
    store: CredentialStore | None = None,
    orchestrator: SweepOrchestrator | None = None,
    auth_flow: AuthorizationFlow | None = None,
    schedule: bool = False,
) -> FastAPI:
    """Build the FastAPI app around one credential store and orchestrator.

    With `schedule=True` the app also runs periodic sweeps for as long as it
    is serving.
    """
    store = store or (orchestrator.store if orchestrator else CredentialStore.from_config(config))
    orchestrator = orchestrator or SweepOrchestrator(config, store)
    auth_flow = auth_flow or AuthorizationFlow(config, store)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if not schedule:
            yield
            return
        scheduler = create_sweep_scheduler(orchestrator, config)
        scheduler.start()
        try:
            yield
        finally:
            scheduler.shutdown(wait=False)

    app = FastAPI(title="Inbox Sweeper", lifespan=lifespan)

    # ── Error mapping ──────────────────────────────────────────────────────

    @app.exception_handler(Unauthenticated)
    async def unauthenticated_handler(_request: Request, exc: Unauthenticated) -> JSONResponse:
        return _error(401, str(exc))

    @app.exception_handler(SweepUnauthorized)
    async def sweep_unauthorized_handler(_request: Request, _exc: SweepUnauthorized) -> JSONResponse:
        return _error(401, "Unauthorized")

    @app.exception_handler(ConfigurationMissing)
    async def configuration_handler(_request: Request, exc: ConfigurationMissing) -> JSONResponse:
        logger.error("Configuration missing: %s", exc)
        return _error(500, str(exc))

    @app.exception_handler(CandidateFetchFailed)
    @app.exception_handler(SweepError)
    @app.exception_handler(GatewayError)
    async def gateway_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _error(500, "Mail provider request failed. Check logs.")

    # ── Dependencies ───────────────────────────────────────────────────────

    def require_authed() -> CredentialStore:
        store.ensure_valid_credential()
        return store

    def require_sweep_secret(
        credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer)],
    ) -> None:
        expected = config.sweep_secret
        if not expected or credentials is None:
            raise SweepUnauthorized()
        if not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
            raise SweepUnauthorized()

    # ── Routes ─────────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True, "authed": store.is_authenticated}

    @app.get("/oauth/authorize")
    async def oauth_authorize() -> RedirectResponse:
        return RedirectResponse(auth_flow.authorization_url())

    @app.get("/oauth/callback", response_model=None)
    async def oauth_callback(code: str | None = None) -> PlainTextResponse:
        if not code:
            return PlainTextResponse("Missing ?code=", status_code=400)
        try:
            await asyncio.to_thread(auth_flow.exchange_code, code)
        except Exception as exc:  # noqa: BLE001
            logger.error("OAuth callback failed: %s", exc, exc_info=True)
            return PlainTextResponse("OAuth callback failed. Check server logs.", status_code=500)
        return PlainTextResponse("OAuth success. Tokens saved. Check /health (authed=true).")

    @app.post("/draft", dependencies=[Depends(require_authed)], response_model=None)
    async def create_draft(payload: DraftRequest | None = None) -> JSONResponse | dict[str, object]:
        payload = payload or DraftRequest()
        if not payload.to or not payload.subject or not payload.body:
            return _error(400, "Missing required fields: to, subject, body")
        draft = await orchestrator.draft_new(
            OutgoingMessage(
                to=payload.to,
                subject=payload.subject,
                body=payload.body,
                cc=payload.cc,
                bcc=payload.bcc,
            )
        )
        return {"ok": True, "draftId": draft.draft_id, "messageId": draft.message_id}

    @app.get("/unread-primary", dependencies=[Depends(require_authed)])
    async def unread_primary(
        max_results: Annotated[str | None, Query(alias="max")] = None,
    ) -> dict[str, object]:
        limit = clamp_max_results(max_results, default=config.default_max_results)
        query, candidates = await orchestrator.list_candidates(limit)
        return {
            "ok": True,
            "query": query,
            "messages": [
                {
                    "id": c.id,
                    "threadId": c.thread_id,
                    "snippet": c.snippet,
                    "from": c.from_address,
                    "subject": c.subject,
                    "date": c.date_received,
                }
                for c in candidates
            ],
        }

    @app.post("/reply-draft", dependencies=[Depends(require_authed)], response_model=None)
    async def reply_draft(payload: ReplyDraftRequest | None = None) -> JSONResponse | dict[str, object]:
        payload = payload or ReplyDraftRequest()
        if not payload.message_id or not payload.body:
            return _error(400, "Missing required fields: messageId, body")
        draft, thread_id = await orchestrator.draft_reply(payload.message_id, payload.body)
        return {
            "ok": True,
            "draftId": draft.draft_id,
            "threadId": thread_id,
            "repliedToMessageId": payload.message_id,
        }

    @app.post("/run-sweep", dependencies=[Depends(require_sweep_secret)])
    async def run_sweep(
        max_results: Annotated[str | None, Query(alias="max")] = None,
    ) -> dict[str, object]:
        limit = clamp_max_results(max_results, default=config.default_max_results)
        outcome = await orchestrator.run_sweep(limit)
        return outcome.to_dict()

    return app
