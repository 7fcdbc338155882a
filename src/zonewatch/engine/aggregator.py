"""Time-windowed firewall event aggregation.

Each view issues one zone-scoped ``firewallEventsAdaptiveGroups`` query over
a rolling window and shapes the returned groups into domain records. The
API only exposes pre-aggregated counts, so "last seen" is the query time.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from zonewatch.contracts import FirewallEventGroup, firewall_groups, first_zone
from zonewatch.engine import queries
from zonewatch.engine.gateway import ApiGateway
from zonewatch.engine.ranking import rank
from zonewatch.models import IPHit, TopBlock, Zone
from zonewatch.time_utils import format_api_time, utc_now, window

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 7


class EventAggregator:
    """Fetches and shapes security event groups for one zone at a time."""

    def __init__(
        self,
        gateway: ApiGateway,
        *,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._gateway = gateway
        self._lookback_days = lookback_days
        self._clock = clock

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    async def fetch_zones(self) -> list[Zone]:
        """All zones visible to the token, across every page."""
        return await self._gateway.list_all("/zones", Zone)

    async def fetch_groups(
        self,
        zone_id: str,
        *,
        actions: Sequence[str],
        limit: int,
        dimensions: Sequence[str] = (),
        days: int | None = None,
        until: datetime | None = None,
        name: str = "GetSecurityEvents",
    ) -> list[FirewallEventGroup]:
        """Run one firewall events query; missing wrappers mean zero groups."""
        since, until = window(
            days if days is not None else self._lookback_days,
            until=until or self._clock(),
        )
        query = queries.firewall_events_query(
            actions=actions, limit=limit, dimensions=dimensions, name=name
        )
        envelope = await self._gateway.graphql(
            query,
            {
                "zoneTag": zone_id,
                "since": format_api_time(since),
                "until": format_api_time(until),
            },
        )
        groups = firewall_groups(first_zone(envelope.data))
        logger.debug("Zone %s: %d firewall event groups", zone_id, len(groups))
        return groups

    async def top_blocks(self, zone: Zone, limit: int = 10) -> list[TopBlock]:
        groups = await self.fetch_groups(
            zone.id,
            actions=queries.BLOCK_AND_CHALLENGE,
            limit=limit * 2,
            dimensions=queries.BLOCK_DIMENSIONS,
        )
        seen_at = self._clock()
        blocks = []
        for group in groups:
            dims = group.dimensions
            host = (dims and dims.client_request_host) or zone.name
            path = (dims and dims.client_request_path) or "/"
            ip = (dims and dims.client_ip) or "unknown"
            blocks.append(
                TopBlock(
                    id=f"{zone.id}-{host}-{path}-{ip}",
                    zone_name=host,
                    path=path,
                    ip_address=ip,
                    action=(dims and dims.action) or "block",
                    count=group.count,
                    last_seen=seen_at,
                )
            )
        return rank(blocks, limit)

    async def top_paths(self, zone: Zone, limit: int = 10) -> list[TopBlock]:
        """Most-blocked paths, keyed by path and client IP only."""
        groups = await self.fetch_groups(
            zone.id,
            actions=queries.BLOCK_AND_CHALLENGE,
            limit=limit * 2,
            dimensions=queries.PATH_DIMENSIONS,
        )
        seen_at = self._clock()
        paths = []
        for group in groups:
            dims = group.dimensions
            host = (dims and dims.client_request_host) or zone.name
            path = (dims and dims.client_request_path) or "/"
            ip = (dims and dims.client_ip) or "unknown"
            paths.append(
                TopBlock(
                    id=f"{zone.id}-{path}-{ip}",
                    zone_name=host,
                    path=path,
                    ip_address=ip,
                    action="block",
                    count=group.count,
                    last_seen=seen_at,
                )
            )
        return rank(paths, limit)

    async def ip_hits(self, zone: Zone, limit: int = 10) -> list[IPHit]:
        groups = await self.fetch_groups(
            zone.id,
            actions=queries.BLOCK_AND_CHALLENGE,
            limit=limit * 2,
            dimensions=queries.IP_DIMENSIONS,
        )
        seen_at = self._clock()
        hits = []
        for group in groups:
            dims = group.dimensions
            if dims is None or not dims.client_ip:
                continue
            hits.append(
                IPHit(
                    id=f"{zone.id}-{dims.client_ip}",
                    ip_address=dims.client_ip,
                    zone_name=zone.name,
                    request_count=group.count,
                    blocked_count=group.count,
                    country=dims.client_country,
                    last_seen=seen_at,
                )
            )
        return rank(hits, limit, key=lambda hit: hit.request_count)

    async def blocked_count(self, zone: Zone) -> int:
        """Total blocked/challenged requests in the window."""
        groups = await self.fetch_groups(
            zone.id,
            actions=queries.BLOCK_AND_CHALLENGE,
            limit=queries.FULL_WINDOW_LIMIT,
        )
        return sum(group.count for group in groups)
