"""APScheduler setup for unattended sweeps."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.auth.credentials import Unauthenticated
from src.config import ConfigurationMissing
from src.sweep.orchestrator import SweepError
from src.sweep.selector import CandidateFetchFailed, clamp_max_results

if TYPE_CHECKING:
    from src.config import SweeperConfig
    from src.sweep.orchestrator import SweepOrchestrator

logger = logging.getLogger(__name__)


async def scheduled_sweep(orchestrator: SweepOrchestrator, max_results: int) -> None:
    """Run one sweep from the scheduler; fatal sweep errors are logged, not raised."""
    try:
        outcome = await orchestrator.run_sweep(max_results)
    except (Unauthenticated, ConfigurationMissing, CandidateFetchFailed, SweepError) as exc:
        logger.error("Scheduled sweep failed: %s", exc)
        return
    logger.info("Scheduled sweep drafted %d reply(ies)", outcome.drafted_count)


def create_sweep_scheduler(
    orchestrator: SweepOrchestrator,
    config: SweeperConfig,
) -> AsyncIOScheduler:
    """Return an AsyncIOScheduler that runs a sweep every `sweep_interval_minutes`.

    At most one scheduled sweep runs at a time; missed runs are coalesced.
    The caller is responsible for calling scheduler.start() and scheduler.shutdown().
    """
    scheduler = AsyncIOScheduler()
    interval = max(1, config.sweep_interval_minutes)
    scheduler.add_job(
        scheduled_sweep,
        "interval",
        minutes=interval,
        args=[orchestrator, clamp_max_results(config.default_max_results)],
        max_instances=1,
        coalesce=True,
    )
    logger.info("Sweep scheduled every %d minute(s)", interval)
    return scheduler
