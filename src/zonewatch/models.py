"""Domain records published by the aggregation engine.

Derived records are frozen: each aggregation cycle builds new ones and the
dashboard state swaps whole lists, nothing is patched in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ZonePlan(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str


class Zone(BaseModel):
    """A managed domain as returned by ``GET /zones``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    status: str
    plan: ZonePlan | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def plan_name(self) -> str | None:
        return self.plan.name if self.plan else None


@dataclass(frozen=True)
class CredentialRecord:
    """A resolved bearer token and the source it came from."""

    token: str
    account_id: str | None = None
    source: str = "override"


@dataclass(frozen=True)
class TopBlock:
    id: str
    zone_name: str
    path: str
    ip_address: str
    action: str
    count: int
    last_seen: datetime
    rule_id: str | None = None

    @property
    def display_path(self) -> str:
        return self.path or "/"


@dataclass(frozen=True)
class IPHit:
    id: str
    ip_address: str
    zone_name: str
    request_count: int
    blocked_count: int
    last_seen: datetime
    country: str | None = None


@dataclass(frozen=True)
class DDOSEvent:
    """An inferred or reported attack window for one zone."""

    id: str
    zone_id: str
    zone_name: str
    attack_type: str
    start_time: datetime
    peak_rps: int
    total_requests: int
    end_time: datetime | None = None
    mitigated: bool = True

    def __post_init__(self) -> None:
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not precede start_time")
        if self.peak_rps < 1:
            raise ValueError("peak_rps must be at least 1")

    @property
    def duration_seconds(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()


@dataclass(frozen=True)
class AggregationResult:
    """Everything one cycle produced for one zone, applied as a unit."""

    top_blocks: list[TopBlock] = field(default_factory=list)
    ip_hits: list[IPHit] = field(default_factory=list)
    ddos_events: list[DDOSEvent] = field(default_factory=list)
    blocked_count: int = 0
