"""Live dashboard command."""

import asyncio

import typer
from rich.live import Live

from zonewatch.cli._console import console, nl, setup_logging
from zonewatch.cli._display import dashboard
from zonewatch.cli.status import find_zone
from zonewatch.engine.scheduler import build_scheduler


def watch(
    zone: str | None = typer.Argument(None, help="Zone name or id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """
    Keep a live dashboard open, refreshing on the configured interval.

    Examples:
        zonewatch watch                  # Zone list only
        zonewatch watch example.com      # Full dashboard for one zone
    """
    setup_logging(verbose=verbose)

    async def _run() -> None:
        scheduler = build_scheduler()
        with Live(console=console, auto_refresh=False) as live:
            scheduler.subscribe(lambda state: live.update(dashboard(state), refresh=True))
            try:
                await scheduler.start()
                if zone:
                    scheduler.select_zone(find_zone(scheduler.state.zones, zone).id)
                else:
                    scheduler.refresh()
                await asyncio.Event().wait()
            finally:
                await scheduler.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass  # Clean exit on Ctrl+C
    finally:
        nl()
