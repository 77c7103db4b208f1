"""Gmail gateway — wraps the Gmail REST API behind a typed async surface."""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from src.auth.credentials import CredentialStore
from src.mail.types import DraftRef, Label, MailMessage

logger = logging.getLogger(__name__)

_USER_ID = "me"


class GatewayError(Exception):
    """Raised when a Gmail API call fails for any reason."""


class GmailGateway:
    """Thin async wrapper around the Gmail v1 API.

    The google-api-python-client is blocking, so every request is executed in
    a worker thread.  The caller still awaits each call before issuing the
    next one; nothing here fans out.

    Access-token renewal is handled by google-auth inside the HTTP transport,
    using the refresh token held by the CredentialStore.

    Usage::

        gateway = GmailGateway.from_store(store)
        ids = await gateway.search("is:unread", max_results=10)
    """

    def __init__(self, service: Any) -> None:
        self._service = service

    @classmethod
    def from_store(cls, store: CredentialStore) -> GmailGateway:
        """Build a gateway authenticated with the store's live credentials.

        Raises:
            Unauthenticated: if the store holds no refresh token.
        """
        service = build(
            "gmail", "v1", credentials=store.google_credentials(), cache_discovery=False
        )
        return cls(service)

    # ── Public API ─────────────────────────────────────────────────────────────

    async def search(self, query: str, max_results: int) -> list[str]:
        """Return message IDs matching a Gmail search query, in provider order."""
        response = await self._execute(
            "messages.list",
            self._messages().list(userId=_USER_ID, q=query, maxResults=max_results),
        )
        return [str(m["id"]) for m in response.get("messages", []) if m.get("id")]

    async def get_metadata(self, message_id: str, header_names: list[str]) -> MailMessage:
        """Fetch headers and snippet only (format=metadata)."""
        response = await self._execute(
            "messages.get",
            self._messages().get(
                userId=_USER_ID,
                id=message_id,
                format="metadata",
                metadataHeaders=header_names,
            ),
        )
        return _parse_message(response)

    async def get_full(self, message_id: str) -> MailMessage:
        """Fetch a message including its decoded text/plain body (format=full).

        The sweep reads candidates this way; listing uses get_metadata.
        """
        response = await self._execute(
            "messages.get",
            self._messages().get(userId=_USER_ID, id=message_id, format="full"),
        )
        return _parse_message(response, include_body=True)

    async def create_draft(self, raw: str, thread_id: str | None = None) -> DraftRef:
        """Create a draft from a base64url-encoded RFC 822 message.

        When `thread_id` is given Gmail files the draft in that conversation.
        """
        message: dict[str, str] = {"raw": raw}
        if thread_id:
            message["threadId"] = thread_id
        response = await self._execute(
            "drafts.create",
            self._service.users().drafts().create(
                userId=_USER_ID, body={"message": message}
            ),
        )
        draft_message = response.get("message") or {}
        return DraftRef(
            draft_id=str(response["id"]),
            message_id=draft_message.get("id"),
            thread_id=draft_message.get("threadId"),
        )

    async def list_labels(self) -> list[Label]:
        response = await self._execute(
            "labels.list", self._service.users().labels().list(userId=_USER_ID)
        )
        return [
            Label(id=str(lbl["id"]), name=str(lbl["name"]))
            for lbl in response.get("labels", [])
            if "id" in lbl and "name" in lbl
        ]

    async def create_label(self, name: str) -> str:
        """Create a user label visible in the label list and message list."""
        response = await self._execute(
            "labels.create",
            self._service.users().labels().create(
                userId=_USER_ID,
                body={
                    "name": name,
                    "labelListVisibility": "labelShow",
                    "messageListVisibility": "show",
                },
            ),
        )
        label_id = str(response["id"])
        logger.info("Created Gmail label: %s (id=%s)", name, label_id)
        return label_id

    async def apply_label(self, message_id: str, label_id: str) -> None:
        await self._execute(
            "messages.modify",
            self._messages().modify(
                userId=_USER_ID, id=message_id, body={"addLabelIds": [label_id]}
            ),
        )
        logger.debug("Applied label %s to message %s", label_id, message_id)

    # ── Internal helpers ───────────────────────────────────────────────────────

    def _messages(self) -> Any:
        return self._service.users().messages()

    async def _execute(self, operation: str, request: Any) -> dict[str, Any]:
        """Run a prepared API request in a worker thread.

        Raises GatewayError on any failure (HTTP error, token refresh failure,
        transport error).
        """
        logger.debug("Gmail → %s", operation)
        try:
            response = await asyncio.to_thread(request.execute)
        except HttpError as exc:
            raise GatewayError(
                f"Gmail {operation} failed with HTTP {exc.resp.status}: {exc}"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise GatewayError(f"Gmail {operation} failed: {exc}") from exc
        return response or {}


def _parse_message(data: dict[str, Any], include_body: bool = False) -> MailMessage:
    """Map a messages.get response to a MailMessage."""
    payload = data.get("payload") or {}
    headers = [
        (str(h.get("name", "")), str(h.get("value", "")))
        for h in payload.get("headers", [])
    ]
    return MailMessage(
        id=str(data.get("id", "")),
        thread_id=str(data.get("threadId", "")),
        snippet=str(data.get("snippet", "")),
        headers=headers,
        label_ids=list(data.get("labelIds", [])),
        body=_extract_plain_body(payload) if include_body else None,
    )


def _extract_plain_body(payload: dict[str, Any]) -> str | None:
    """Return the first text/plain part of a message payload, decoded."""
    if payload.get("mimeType") == "text/plain":
        data = (payload.get("body") or {}).get("data")
        if data:
            padded = data + "=" * (-len(data) % 4)
            return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    for part in payload.get("parts", []):
        text = _extract_plain_body(part)
        if text is not None:
            return text
    return None
