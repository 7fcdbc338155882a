"""Tiered DDoS detection.

Detection walks a fixed chain of tiers and stops at the first one that
yields events:

1. ``ACCOUNT`` - the attack analytics dataset scoped to the account (only
   when an account id is known).
2. ``ZONE`` - the same dataset scoped to the zone.
3. ``HEURISTIC`` - blocked firewall events bucketed by hour and promoted
   when volume or source spread crosses fixed thresholds.

Gateway failures in the dedicated tiers only move the chain along. The
heuristic has nothing behind it, so its failures propagate.

Example:
    classifier = DDoSClassifier(gateway, aggregator)
    events = await classifier.detect(zone, account_id=record.account_id)
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from uuid import uuid4

from zonewatch.contracts import (
    DosAttackGroup,
    FirewallEventGroup,
    attack_groups,
    first_account,
    first_zone,
)
from zonewatch.engine import queries
from zonewatch.engine.aggregator import EventAggregator
from zonewatch.engine.gateway import ApiGateway
from zonewatch.errors import GatewayError
from zonewatch.models import DDOSEvent, Zone
from zonewatch.time_utils import (
    format_api_time,
    parse_api_time,
    truncate_to_hour,
    window,
)

logger = logging.getLogger(__name__)

DEFAULT_DDOS_DAYS = 30
ASSUMED_PACKET_BYTES = 1500
BUCKET_WIDTH = timedelta(hours=1)

# Heuristic promotion thresholds, per hourly bucket
HIGH_VOLUME_COUNT = 1000
DISTRIBUTED_MIN_COUNT = 500
DISTRIBUTED_MIN_IPS = 50


class DetectionTier(StrEnum):
    ACCOUNT = "account"
    ZONE = "zone"
    HEURISTIC = "heuristic"


def _event_id(zone_id: str, key: str) -> str:
    return f"{zone_id}-{key}-{uuid4().hex[:8]}"


def estimate_peak_rps(
    group: DosAttackGroup, start: datetime, end: datetime
) -> int:
    """Peak requests/s from packets, else bits at 1500-byte packets, else the average."""
    if group.peak_packets_per_second and group.peak_packets_per_second > 0:
        rps = int(group.peak_packets_per_second)
    elif group.peak_bits_per_second and group.peak_bits_per_second > 0:
        rps = int(group.peak_bits_per_second / 8 / ASSUMED_PACKET_BYTES)
    else:
        total = group.total_packets or 0
        duration = (end - start).total_seconds()
        rps = int(total / duration) if duration > 0 else total
    return max(1, rps)


def describe_attack(group: DosAttackGroup) -> str:
    """Attack type, then ``(action)``, then ``[vectors]`` when known."""
    label = group.attack_type or "DDoS Attack"
    if group.action:
        label += f" ({group.action})"

    vectors = []
    for vector in group.attack_vectors or []:
        desc = vector.protocol or ""
        if vector.source_port is not None:
            desc += f" src:{vector.source_port}"
        if vector.destination_port is not None:
            desc += f" dst:{vector.destination_port}"
        if desc:
            vectors.append(desc)
    if vectors:
        label += f" [{', '.join(vectors)}]"
    return label


def events_from_attacks(
    groups: Iterable[DosAttackGroup], zone: Zone
) -> list[DDOSEvent]:
    """Convert dedicated-tier attack groups; groups without a usable start are skipped."""
    events = []
    for group in groups:
        start = parse_api_time(group.start_datetime)
        if start is None:
            logger.debug("Skipping attack with invalid startDatetime %r", group.start_datetime)
            continue
        end = parse_api_time(group.end_datetime) or start + BUCKET_WIDTH
        end = max(end, start)

        events.append(
            DDOSEvent(
                id=_event_id(zone.id, str(start.timestamp())),
                zone_id=zone.id,
                zone_name=zone.name,
                attack_type=describe_attack(group),
                start_time=start,
                end_time=end,
                peak_rps=estimate_peak_rps(group, start, end),
                total_requests=group.total_packets or 0,
            )
        )
    return sorted(events, key=lambda e: e.start_time, reverse=True)


@dataclass
class Bucket:
    """Cumulative counts for one hourly interval."""

    start: datetime | None
    count: int = 0
    ips: set[str] = field(default_factory=set)

    @property
    def unique_ips(self) -> int:
        return len(self.ips)

    @property
    def is_high_volume(self) -> bool:
        return self.count > HIGH_VOLUME_COUNT

    @property
    def is_distributed(self) -> bool:
        return self.unique_ips > DISTRIBUTED_MIN_IPS

    @property
    def is_attack(self) -> bool:
        return self.is_high_volume or (
            self.count > DISTRIBUTED_MIN_COUNT and self.is_distributed
        )

    @property
    def label(self) -> str:
        kind = "Distributed" if self.is_distributed else "Volumetric"
        return f"L7 DDoS Attack - {kind} ({self.unique_ips} unique IPs)"


def bucket_hourly(groups: Iterable[FirewallEventGroup]) -> dict[str, Bucket]:
    """Group blocked events by UTC hour.

    Unparsable timestamps are bucketed by their raw text; groups with no
    timestamp each get a bucket of their own.
    """
    buckets: dict[str, Bucket] = {}
    for group in groups:
        dims = group.dimensions
        raw = dims.datetime if dims else None
        parsed = parse_api_time(raw)

        if parsed is not None:
            start: datetime | None = truncate_to_hour(parsed)
            key = start.isoformat()
        elif raw:
            start = None
            key = raw[:13]
        else:
            start = None
            key = f"unknown-{uuid4().hex[:8]}"

        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = Bucket(start=start)
        bucket.count += group.count
        bucket.ips.add((dims and dims.client_ip) or "unknown")
    return buckets


def classify_buckets(
    buckets: dict[str, Bucket], zone: Zone, *, until: datetime
) -> list[DDOSEvent]:
    """Promote buckets over the volume/spread thresholds to events.

    Buckets that could not be placed in time are reported one hour before
    ``until``.
    """
    fallback_start = until - BUCKET_WIDTH
    window_seconds = int(BUCKET_WIDTH.total_seconds())
    events = []
    for key, bucket in buckets.items():
        if not bucket.is_attack:
            continue
        start = bucket.start or fallback_start
        events.append(
            DDOSEvent(
                id=_event_id(zone.id, key),
                zone_id=zone.id,
                zone_name=zone.name,
                attack_type=bucket.label,
                start_time=start,
                end_time=start + BUCKET_WIDTH,
                peak_rps=max(1, bucket.count // window_seconds),
                total_requests=bucket.count,
            )
        )
    return sorted(events, key=lambda e: e.start_time, reverse=True)


class DDoSClassifier:
    """Runs the detection tiers for a zone."""

    def __init__(
        self,
        gateway: ApiGateway,
        aggregator: EventAggregator,
        *,
        days: int = DEFAULT_DDOS_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._gateway = gateway
        self._aggregator = aggregator
        self._days = days
        self._clock = clock or aggregator.clock

    async def detect(
        self,
        zone: Zone,
        *,
        account_id: str | None = None,
        days: int | None = None,
    ) -> list[DDOSEvent]:
        days = days or self._days
        since, until = window(days, until=self._clock())

        tiers = [DetectionTier.ZONE]
        if account_id:
            tiers.insert(0, DetectionTier.ACCOUNT)

        for tier in tiers:
            try:
                groups = await self._fetch_attacks(tier, zone, account_id, since, until)
            except GatewayError as e:
                logger.info(
                    "DDoS %s tier unavailable for %s, falling back: %s",
                    tier,
                    zone.name,
                    e,
                )
                continue
            events = events_from_attacks(groups, zone)
            if events:
                logger.debug(
                    "DDoS %s tier found %d attacks for %s", tier, len(events), zone.name
                )
                return events
            logger.debug("DDoS %s tier returned no attacks for %s", tier, zone.name)

        return await self._detect_heuristic(zone, days=days, until=until)

    async def _fetch_attacks(
        self,
        tier: DetectionTier,
        zone: Zone,
        account_id: str | None,
        since: datetime,
        until: datetime,
    ) -> list[DosAttackGroup]:
        variables = {"since": format_api_time(since), "until": format_api_time(until)}
        if tier == DetectionTier.ACCOUNT:
            envelope = await self._gateway.graphql(
                queries.account_attacks_query(), {"accountTag": account_id, **variables}
            )
            return attack_groups(first_account(envelope.data))

        envelope = await self._gateway.graphql(
            queries.zone_attacks_query(), {"zoneTag": zone.id, **variables}
        )
        return attack_groups(first_zone(envelope.data))

    async def _detect_heuristic(
        self, zone: Zone, *, days: int, until: datetime
    ) -> list[DDOSEvent]:
        groups = await self._aggregator.fetch_groups(
            zone.id,
            actions=queries.BLOCK_ONLY,
            limit=queries.FULL_WINDOW_LIMIT,
            dimensions=queries.TIMELINE_DIMENSIONS,
            days=days,
            until=until,
            name="GetDDoSFromFirewallEvents",
        )
        events = classify_buckets(bucket_hourly(groups), zone, until=until)
        logger.debug(
            "DDoS %s tier detected %d events for %s",
            DetectionTier.HEURISTIC,
            len(events),
            zone.name,
        )
        return events
