"""Published dashboard snapshot."""

from dataclasses import dataclass, field, replace
from datetime import datetime

from zonewatch.models import AggregationResult, DDOSEvent, IPHit, TopBlock, Zone


@dataclass(frozen=True)
class DashboardState:
    """Everything a front-end renders. Replaced wholesale, never mutated."""

    zones: tuple[Zone, ...] = ()
    selected_zone_id: str | None = None
    top_blocks: tuple[TopBlock, ...] = ()
    ip_hits: tuple[IPHit, ...] = ()
    ddos_events: tuple[DDOSEvent, ...] = ()
    blocked_count: int = 0
    is_authenticated: bool = False
    is_loading: bool = False
    error_message: str | None = None
    last_refreshed_at: datetime | None = field(default=None, compare=False)

    @property
    def selected_zone(self) -> Zone | None:
        if self.selected_zone_id is None:
            return None
        return next((z for z in self.zones if z.id == self.selected_zone_id), None)

    def with_result(self, result: AggregationResult) -> "DashboardState":
        return replace(
            self,
            top_blocks=tuple(result.top_blocks),
            ip_hits=tuple(result.ip_hits),
            ddos_events=tuple(result.ddos_events),
            blocked_count=result.blocked_count,
        )

    def cleared(self) -> "DashboardState":
        """Drop every zone-scoped collection."""
        return self.with_result(AggregationResult())
