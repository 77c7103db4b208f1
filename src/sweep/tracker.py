"""Processed-state tracking via a Gmail label."""

from __future__ import annotations

import logging

from src.mail.gateway import GmailGateway

logger = logging.getLogger(__name__)

#: Label applied to every message a draft was created for.  The triage
#: query excludes it, so the label alone is the idempotency record.
PROCESSED_LABEL = "AI-Drafted"


class ProcessedStateTracker:
    """Resolves the processed-marker label and applies it to messages.

    Create one tracker per sweep: the label is looked up (and created if
    missing) on the first `ensure_marker_label()` call, and the resolved ID
    is reused for every message in that sweep.
    """

    def __init__(self, gateway: GmailGateway, label_name: str = PROCESSED_LABEL) -> None:
        self._gateway = gateway
        self._label_name = label_name
        self._label_id: str | None = None

    @property
    def label_name(self) -> str:
        return self._label_name

    async def ensure_marker_label(self) -> str:
        """Return the marker label ID, creating the label in Gmail if absent."""
        if self._label_id is not None:
            return self._label_id

        labels = await self._gateway.list_labels()
        existing = next((lbl for lbl in labels if lbl.name == self._label_name), None)
        if existing is not None:
            logger.debug("Marker label already exists: %s (id=%s)", existing.name, existing.id)
            self._label_id = existing.id
        else:
            self._label_id = await self._gateway.create_label(self._label_name)
        return self._label_id

    async def mark_processed(self, message_id: str, label_id: str) -> None:
        await self._gateway.apply_label(message_id, label_id)
        logger.debug("Marked message %s as processed", message_id)
