"""Tests for create_sweep_scheduler and scheduled_sweep."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.auth.credentials import Unauthenticated
from src.config import SweeperConfig
from src.sweep.selector import CandidateFetchFailed
from src.sweep.types import DraftedMessage, SweepOutcome


class TestScheduledSweep:
    async def test_runs_sweep_with_limit(self) -> None:
        from src.sweep.scheduler import scheduled_sweep

        orchestrator = MagicMock()
        orchestrator.run_sweep = AsyncMock(
            return_value=SweepOutcome(drafted=[DraftedMessage("a", "d1")])
        )
        await scheduled_sweep(orchestrator, 7)
        orchestrator.run_sweep.assert_awaited_once_with(7)

    @pytest.mark.parametrize("error", [Unauthenticated("no token"), CandidateFetchFailed("503")])
    async def test_fatal_errors_are_logged_not_raised(
        self, error: Exception, caplog: pytest.LogCaptureFixture
    ) -> None:
        from src.sweep.scheduler import scheduled_sweep

        orchestrator = MagicMock()
        orchestrator.run_sweep = AsyncMock(side_effect=error)
        await scheduled_sweep(orchestrator, 10)
        assert "Scheduled sweep failed" in caplog.text


class TestCreateSweepScheduler:
    def test_one_interval_job(self) -> None:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from src.sweep.scheduler import create_sweep_scheduler

        scheduler = create_sweep_scheduler(
            MagicMock(), SweeperConfig(sweep_interval_minutes=30, default_max_results=40)
        )
        assert isinstance(scheduler, AsyncIOScheduler)
        jobs = scheduler.get_jobs()
        assert len(jobs) == 1
        assert jobs[0].trigger.interval.total_seconds() == 30 * 60
        assert jobs[0].args[1] == 25
        assert jobs[0].max_instances == 1

    def test_interval_never_below_one_minute(self) -> None:
        from src.sweep.scheduler import create_sweep_scheduler

        scheduler = create_sweep_scheduler(MagicMock(), SweeperConfig(sweep_interval_minutes=0))
        assert scheduler.get_jobs()[0].trigger.interval.total_seconds() == 60
