"""One-shot reporting commands: zones, status, paths, ddos."""

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

import typer

from zonewatch.cli._console import console, dim, error_panel, nl, setup_logging
from zonewatch.cli._display import blocks_table, dashboard, ddos_table, zones_table
from zonewatch.config import get_settings
from zonewatch.engine.scheduler import RefreshScheduler, build_scheduler
from zonewatch.errors import GatewayError
from zonewatch.models import Zone


def find_zone(zones: Sequence[Zone], ref: str) -> Zone:
    """Look a zone up by id or name."""
    for zone in zones:
        if ref in (zone.id, zone.name):
            return zone
    raise typer.BadParameter(f"Unknown zone '{ref}'")


@asynccontextmanager
async def authenticated_scheduler() -> AsyncIterator[RefreshScheduler]:
    """Build a scheduler, verify credentials and load zones; exit 1 when that fails."""
    scheduler = build_scheduler()
    try:
        if not await scheduler.check_authentication():
            error_panel(
                scheduler.state.error_message
                or "No API token found. Run `zonewatch token set <token>`.",
                title="Not authenticated",
            )
            raise typer.Exit(1)
        yield scheduler
    finally:
        await scheduler.close()


def zones_cmd(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List every zone the token can see."""
    setup_logging(verbose=verbose)

    async def _run() -> None:
        async with authenticated_scheduler() as scheduler:
            zones = scheduler.state.zones
            if not zones:
                dim("No zones found")
                return
            console.print(zones_table(zones))

    asyncio.run(_run())


def status(
    zone: str | None = typer.Argument(None, help="Zone name or id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Run one aggregation cycle and print the dashboard."""
    setup_logging(verbose=verbose)

    async def _run() -> None:
        async with authenticated_scheduler() as scheduler:
            selected = find_zone(scheduler.state.zones, zone) if zone else None
            scheduler.select_zone(selected.id if selected else None)
            await scheduler.wait_idle()

            state = scheduler.state
            console.print(dashboard(state))
            if state.error_message:
                raise typer.Exit(1)

    asyncio.run(_run())


def paths(
    zone: str = typer.Argument(..., help="Zone name or id"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of paths to show"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show the most blocked paths for a zone over the configured lookback window."""
    setup_logging(verbose=verbose)

    async def _run() -> None:
        async with authenticated_scheduler() as scheduler:
            selected = find_zone(scheduler.state.zones, zone)
            try:
                top = await scheduler.aggregator.top_paths(selected, limit)
            except GatewayError as e:
                error_panel(str(e), title="Failed to load paths")
                raise typer.Exit(1)
            console.print(blocks_table(top, title=f"Top paths · {selected.name}"))

    asyncio.run(_run())


def ddos(
    zone: str = typer.Argument(..., help="Zone name or id"),
    days: int | None = typer.Option(
        None, "--days", "-d", help="Lookback window in days (default: configured DDoS lookback)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show detected DDoS attack windows for a zone."""
    setup_logging(verbose=verbose)
    days = days or get_settings().ddos_lookback_days

    async def _run() -> None:
        async with authenticated_scheduler() as scheduler:
            selected = find_zone(scheduler.state.zones, zone)
            record = scheduler.credentials
            try:
                events = await scheduler.classifier.detect(
                    selected,
                    account_id=record.account_id if record else None,
                    days=days,
                )
            except GatewayError as e:
                error_panel(str(e), title="DDoS detection failed")
                raise typer.Exit(1)

            nl()
            if not events:
                dim(f"No DDoS attacks detected for {selected.name} in the last {days} days")
                nl()
                return
            console.print(ddos_table(events))

    asyncio.run(_run())
