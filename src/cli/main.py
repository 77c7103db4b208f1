"""CLI entry point for the inbox sweeper."""

import logging

import click
from dotenv import load_dotenv

from src.auth.credentials import CredentialStore
from src.config import SweeperConfig
from src.sweep.orchestrator import SweepOrchestrator

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log at INFO level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Inbox sweeper — draft threaded replies to unread primary mail."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    config = SweeperConfig.from_env()
    store = CredentialStore.from_config(config)
    ctx.obj = SweepOrchestrator(config, store)


# Import and register commands after cli is defined to avoid circular imports.
from src.cli.commands import authorize, candidates, schedule, serve, sweep  # noqa: E402

cli.add_command(sweep)
cli.add_command(candidates)
cli.add_command(authorize)
cli.add_command(serve)
cli.add_command(schedule)
