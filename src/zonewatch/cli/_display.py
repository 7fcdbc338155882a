"""Shared display utilities for CLI commands."""

from collections.abc import Sequence

from rich.box import ROUNDED
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from zonewatch.config import get_settings
from zonewatch.engine.state import DashboardState
from zonewatch.models import DDOSEvent, IPHit, TopBlock, Zone


def _table(title: str, *columns: str) -> Table:
    table = Table(title=title, title_justify="left", box=ROUNDED, border_style="dim")
    for column in columns:
        justify = "right" if column in ("Count", "Requests", "Peak RPS", "Total") else "left"
        table.add_column(column, justify=justify)
    return table


def zones_table(zones: Sequence[Zone]) -> Table:
    table = _table("Zones", "Name", "ID", "Status", "Plan")
    for zone in zones:
        status_style = "green" if zone.is_active else "yellow"
        table.add_row(
            zone.name,
            Text(zone.id, style="dim"),
            Text(zone.status, style=status_style),
            zone.plan_name or "-",
        )
    return table


def blocks_table(blocks: Sequence[TopBlock], *, title: str = "Top blocked paths") -> Table:
    table = _table(title, "Host", "Path", "IP", "Action", "Count")
    for block in blocks:
        table.add_row(
            block.zone_name,
            block.display_path,
            block.ip_address,
            block.action,
            f"{block.count:,}",
        )
    return table


def ip_hits_table(hits: Sequence[IPHit]) -> Table:
    table = _table("Top offending IPs", "IP", "Country", "Requests")
    for hit in hits:
        table.add_row(hit.ip_address, hit.country or "-", f"{hit.request_count:,}")
    return table


def ddos_table(events: Sequence[DDOSEvent]) -> Table:
    table = _table("DDoS events", "Started", "Ended", "Type", "Peak RPS", "Total")
    for event in events:
        table.add_row(
            event.start_time.strftime("%Y-%m-%d %H:%M"),
            event.end_time.strftime("%Y-%m-%d %H:%M") if event.end_time else "-",
            event.attack_type,
            f"{event.peak_rps:,}",
            f"{event.total_requests:,}",
        )
    return table


def dashboard(state: DashboardState, *, lookback_days: int | None = None) -> RenderableType:
    """Render a full dashboard snapshot."""
    lookback_days = lookback_days or get_settings().lookback_days
    header = Text()
    zone = state.selected_zone
    header.append(zone.name if zone else "no zone selected", style="cyan bold")
    header.append(" · ", style="dim")
    header.append(f"{state.blocked_count:,} blocked ({lookback_days}d)", style="dim")
    if state.is_loading:
        header.append(" · refreshing…", style="yellow")
    if state.last_refreshed_at:
        header.append(
            f" · updated {state.last_refreshed_at.strftime('%H:%M:%S')}", style="dim"
        )

    parts: list[RenderableType] = [header]
    if state.error_message:
        parts.append(Text(state.error_message, style="red"))
    if not state.is_authenticated:
        parts.append(Text("Not authenticated. Run `zonewatch token set`.", style="red"))
    if zone is not None:
        parts.extend(
            [
                blocks_table(state.top_blocks),
                ip_hits_table(state.ip_hits),
                ddos_table(state.ddos_events)
                if state.ddos_events
                else Text("No DDoS events detected", style="green"),
            ]
        )

    return Panel(
        Group(*parts),
        title="[bold]zonewatch[/bold]",
        title_align="left",
        border_style="dim",
        box=ROUNDED,
        padding=(0, 1),
    )
