"""finsync CLI application using Typer.

Operational commands: schema setup, one-off and scheduled syncs, provider
health and the API server.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from finsync.domain.sync import SyncJob, SyncJobState
from finsync.infrastructure.container import ServiceContainer, build_container
from finsync.infrastructure.persistence.sqlalchemy.init_db import create_tables
from finsync.presentation.api.app import configure_logging
from finsync_config.settings import get_settings

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="finsync",
    help="finsync - multi-provider bank data ingestion CLI",
    no_args_is_help=True,
)
console = Console()

providers_app = typer.Typer(
    name="providers",
    help="Banking provider utilities",
    no_args_is_help=True,
)
app.add_typer(providers_app)


@app.callback()
def main() -> None:
    configure_logging()


@app.command("init-db")
def init_db() -> None:
    """Create missing database tables on the primary."""

    async def _run() -> None:
        container = build_container(get_settings())
        try:
            await create_tables(container.database.primary_engine)
        finally:
            await container.shutdown()

    asyncio.run(_run())
    console.print("[green]Database schema is up to date.[/green]")


@app.command("sync-all")
def sync_all() -> None:
    """Sync every active connection once and wait for the results."""
    jobs = asyncio.run(_sync_all_once())
    _print_jobs(jobs)
    if any(job.state != SyncJobState.SUCCEEDED for job in jobs):
        raise typer.Exit(code=1)


@app.command("scheduler")
def scheduler(
    interval_hours: Optional[float] = typer.Option(
        None,
        "--interval-hours",
        help="Hours between ticks (default: SCHEDULE_INTERVAL_HOURS)",
    ),
) -> None:
    """Run the periodic sync tick until interrupted."""
    settings = get_settings()
    hours = interval_hours or settings.schedule_interval_hours
    console.print(f"[bold]Scheduler started[/bold] (every {hours:g}h, Ctrl+C to stop)")
    try:
        asyncio.run(_scheduler_loop(hours * 3600))
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped.[/yellow]")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default: API_HOST)"),
    port: Optional[int] = typer.Option(None, help="Port (default: API_PORT)"),
) -> None:
    """Run the HTTP API."""
    settings = get_settings()
    uvicorn.run(
        "finsync.presentation.api.app:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
    )


@providers_app.command("health")
def providers_health() -> None:
    """Probe every enabled provider."""

    async def _run():
        container = build_container(get_settings())
        try:
            return await container.providers.healthcheck()
        finally:
            await container.shutdown()

    results = asyncio.run(_run())
    if not results:
        console.print("[yellow]No providers enabled.[/yellow]")
        return

    table = Table(title="Provider health")
    table.add_column("Provider", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")
    for result in results:
        status = "[green]healthy[/green]" if result.healthy else "[red]unhealthy[/red]"
        table.add_row(result.provider.value, status, result.detail or "")
    console.print(table)
    if not all(r.healthy for r in results):
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _tick(container: ServiceContainer) -> list[SyncJob]:
    jobs = await container.triggers.scheduled_tick()
    await container.dispatcher.drain()
    return jobs


async def _sync_all_once() -> list[SyncJob]:
    container = build_container(get_settings())
    try:
        await container.startup()
        return await _tick(container)
    finally:
        await container.shutdown()


async def _scheduler_loop(interval_seconds: float) -> None:
    container = build_container(get_settings())
    try:
        await container.startup()
        while True:
            jobs = await _tick(container)
            failed = sum(1 for j in jobs if j.state != SyncJobState.SUCCEEDED)
            logger.info("Tick finished: %d job(s), %d not succeeded", len(jobs), failed)
            await asyncio.sleep(interval_seconds)
    finally:
        await container.shutdown()


def _print_jobs(jobs: list[SyncJob]) -> None:
    if not jobs:
        console.print("[yellow]No active connections.[/yellow]")
        return
    table = Table(title="Sync results")
    table.add_column("Connection", style="cyan")
    table.add_column("State")
    table.add_column("New", justify="right")
    table.add_column("Upserted", justify="right")
    table.add_column("Accounts ok/failed", justify="right")
    table.add_column("Error", style="dim")
    for job in jobs:
        color = "green" if job.state == SyncJobState.SUCCEEDED else "red"
        table.add_row(
            str(job.connection_id),
            f"[{color}]{job.state.value}[/{color}]",
            str(job.transactions_new),
            str(job.transactions_upserted),
            f"{job.accounts_succeeded}/{job.accounts_failed}",
            job.last_error or "",
        )
    console.print(table)


def cli() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    cli()
