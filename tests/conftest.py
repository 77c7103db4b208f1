"""Shared pytest fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.mail.types import DraftRef
from src.sweep.types import CandidateMessage
from tests.fakes import make_candidate


@pytest.fixture
def candidate() -> CandidateMessage:
    return make_candidate()


@pytest.fixture
def gateway_mock() -> MagicMock:
    """GmailGateway mock with every remote operation as an AsyncMock."""
    gateway = MagicMock()
    gateway.search = AsyncMock(return_value=[])
    gateway.get_metadata = AsyncMock()
    gateway.get_full = AsyncMock()
    gateway.create_draft = AsyncMock(return_value=DraftRef(draft_id="draft_1", message_id="m_1"))
    gateway.list_labels = AsyncMock(return_value=[])
    gateway.create_label = AsyncMock(return_value="Label_1")
    gateway.apply_label = AsyncMock()
    return gateway
