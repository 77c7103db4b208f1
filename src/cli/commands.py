"""CLI command implementations — all commands delegate to SweepOrchestrator."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING, NoReturn

import click
from rich import box
from rich.console import Console
from rich.table import Table

from src.auth.credentials import Unauthenticated
from src.config import ConfigurationMissing
from src.mail.gateway import GatewayError
from src.sweep.orchestrator import SweepError
from src.sweep.selector import CandidateFetchFailed, clamp_max_results

if TYPE_CHECKING:
    from src.sweep.orchestrator import SweepOrchestrator

logger = logging.getLogger(__name__)
console = Console(width=200)

_FATAL_ERRORS = (
    Unauthenticated,
    ConfigurationMissing,
    CandidateFetchFailed,
    SweepError,
    GatewayError,
)

_max_option = click.option(
    "--max",
    "max_results",
    type=int,
    default=None,
    help="Candidates to consider (clamped to 1–25). Defaults to SWEEP_MAX_RESULTS.",
)


def _limit(orchestrator: SweepOrchestrator, max_results: int | None) -> int:
    if max_results is None:
        max_results = orchestrator.config.default_max_results
    return clamp_max_results(max_results)


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    raise SystemExit(1)


# ── sweep ────────────────────────────────────────────────────────────────────────


@click.command()
@_max_option
@click.pass_obj
def sweep(orchestrator: SweepOrchestrator, max_results: int | None) -> None:
    """Run one sweep: draft replies and mark the drafted messages."""
    limit = _limit(orchestrator, max_results)
    try:
        outcome = asyncio.run(orchestrator.run_sweep(limit))
    except _FATAL_ERRORS as exc:
        _fail(f"Sweep failed: {exc}")

    if not outcome.drafted:
        console.print(
            f"[yellow]No drafts created[/yellow] [dim]({outcome.skipped} skipped)[/dim]"
        )
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Message ID")
    table.add_column("Draft ID")
    for i, drafted in enumerate(outcome.drafted, start=1):
        table.add_row(str(i), drafted.message_id, drafted.draft_id)

    console.print(
        f"\n[green]Drafted {outcome.drafted_count} reply(ies)[/green]"
        + (f" [dim]({outcome.skipped} skipped)[/dim]" if outcome.skipped else "")
        + "\n"
    )
    console.print(table)


# ── candidates ───────────────────────────────────────────────────────────────────


@click.command()
@_max_option
@click.pass_obj
def candidates(orchestrator: SweepOrchestrator, max_results: int | None) -> None:
    """List the messages the next sweep would consider, without drafting."""
    limit = _limit(orchestrator, max_results)
    try:
        query, found = asyncio.run(orchestrator.list_candidates(limit))
    except _FATAL_ERRORS as exc:
        _fail(f"Could not list candidates: {exc}")

    console.print(f"Query: [dim]{query}[/dim]")
    if not found:
        console.print("[yellow]No candidates.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Subject", max_width=40)
    table.add_column("From", max_width=30)
    table.add_column("Date", max_width=32)
    table.add_column("Snippet", max_width=60)
    for i, c in enumerate(found, start=1):
        table.add_row(str(i), c.subject, c.from_address, c.date_received, c.snippet)
    console.print(table)


# ── authorize ────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def authorize(orchestrator: SweepOrchestrator) -> None:
    """Run the one-time Google consent flow and print the refresh token."""
    from src.auth.oauth import run_local_authorization

    try:
        credential = run_local_authorization(orchestrator.config, orchestrator.store)
    except (ConfigurationMissing, Unauthenticated) as exc:
        _fail(f"Authorization failed: {exc}")

    console.print("[green]Authorized.[/green] Persist this refresh token as GOOGLE_REFRESH_TOKEN:")
    console.print(credential.refresh_token, soft_wrap=True)


# ── serve ────────────────────────────────────────────────────────────────────────


@click.command()
@click.option("--host", default=None, help="Bind address. Defaults to HOST.")
@click.option("--port", type=int, default=None, help="Port. Defaults to PORT.")
@click.option(
    "--with-scheduler",
    is_flag=True,
    help="Also run sweeps every SWEEP_INTERVAL_MINUTES while serving.",
)
@click.pass_obj
def serve(
    orchestrator: SweepOrchestrator,
    host: str | None,
    port: int | None,
    with_scheduler: bool,
) -> None:
    """Serve the HTTP trigger (/health, /oauth/*, /draft, /reply-draft, /run-sweep)."""
    import uvicorn

    from src.server.app import create_app

    config = orchestrator.config
    logging.getLogger().setLevel(logging.INFO)
    app = create_app(config, orchestrator=orchestrator, schedule=with_scheduler)
    uvicorn.run(app, host=host or config.host, port=port or config.port)


# ── schedule ─────────────────────────────────────────────────────────────────────


@click.command()
@click.option("--now/--no-now", default=True, show_default=True, help="Sweep once at startup.")
@click.pass_obj
def schedule(orchestrator: SweepOrchestrator, now: bool) -> None:
    """Run sweeps every SWEEP_INTERVAL_MINUTES until interrupted."""
    logging.getLogger().setLevel(logging.INFO)
    try:
        asyncio.run(_schedule_async(orchestrator, now))
    except KeyboardInterrupt:
        # Ctrl+C on Windows (no add_signal_handler) arrives here
        logger.info("Interrupted — goodbye")


async def _schedule_async(orchestrator: SweepOrchestrator, now: bool) -> None:
    from src.sweep.scheduler import create_sweep_scheduler, scheduled_sweep

    config = orchestrator.config
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
    except (NotImplementedError, AttributeError):
        pass

    scheduler = create_sweep_scheduler(orchestrator, config)
    scheduler.start()
    try:
        if now:
            await scheduled_sweep(orchestrator, clamp_max_results(config.default_max_results))
        await stop.wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
