"""Wire payloads for the Cloudflare REST and GraphQL APIs.

The GraphQL analytics schema has been seen omitting intermediate wrappers
(``viewer``, ``zones``, group lists, ``dimensions``), so every level is
optional and the accessor helpers at the bottom collapse a missing level to
an empty list.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# REST


class ApiErrorDetail(_Wire):
    code: int | None = None
    message: str


class ApiErrorEnvelope(_Wire):
    """Structured error body returned with non-2xx REST responses."""

    success: bool = False
    errors: list[ApiErrorDetail]


class ApiEnvelope(_Wire, Generic[T]):
    """Standard ``{success, result, errors, messages}`` REST envelope."""

    success: bool
    result: T | None = None
    errors: list[ApiErrorDetail] | None = None
    messages: list[Any] | None = None


# GraphQL


class GraphQLErrorLocation(_Wire):
    line: int
    column: int


class GraphQLError(_Wire):
    message: str
    locations: list[GraphQLErrorLocation] | None = None
    path: list[str | int] | None = None


class GraphQLEnvelope(_Wire, Generic[T]):
    data: T | None = None
    errors: list[GraphQLError] | None = None


class FirewallEventDimensions(_Wire):
    client_request_path: str | None = Field(default=None, alias="clientRequestPath")
    client_request_host: str | None = Field(
        default=None, alias="clientRequestHTTPHost"
    )
    client_ip: str | None = Field(default=None, alias="clientIP")
    client_country: str | None = Field(default=None, alias="clientCountryName")
    action: str | None = None
    datetime: str | None = None


class FirewallEventGroup(_Wire):
    """One pre-aggregated firewall event bucket."""

    count: int = 0
    dimensions: FirewallEventDimensions | None = None


class AttackVector(_Wire):
    protocol: str | None = None
    source_port: int | None = Field(default=None, alias="sourcePort")
    destination_port: int | None = Field(default=None, alias="destinationPort")


class DosAttackGroup(_Wire):
    """One group from the dedicated DDoS attack analytics dataset."""

    start_datetime: str | None = Field(default=None, alias="startDatetime")
    end_datetime: str | None = Field(default=None, alias="endDatetime")
    attack_type: str | None = Field(default=None, alias="attackType")
    action: str | None = None
    peak_bits_per_second: float | None = Field(default=None, alias="peakBitsPerSecond")
    peak_packets_per_second: float | None = Field(
        default=None, alias="peakPacketsPerSecond"
    )
    total_bits: int | None = Field(default=None, alias="totalBits")
    total_packets: int | None = Field(default=None, alias="totalPackets")
    attack_vectors: list[AttackVector] | None = Field(
        default=None, alias="attackVectors"
    )


class AnalyticsScope(_Wire):
    """A ``zones`` or ``accounts`` node; only the requested datasets are present."""

    firewall_events: list[FirewallEventGroup] | None = Field(
        default=None, alias="firewallEventsAdaptiveGroups"
    )
    dosd_attacks: list[DosAttackGroup] | None = Field(
        default=None, alias="dosdAttackAnalyticsGroups"
    )


class Viewer(_Wire):
    zones: list[AnalyticsScope] | None = None
    accounts: list[AnalyticsScope] | None = None


class AnalyticsData(_Wire):
    viewer: Viewer | None = None


def first_zone(data: AnalyticsData | None) -> AnalyticsScope | None:
    if data is None or data.viewer is None or not data.viewer.zones:
        return None
    return data.viewer.zones[0]


def first_account(data: AnalyticsData | None) -> AnalyticsScope | None:
    if data is None or data.viewer is None or not data.viewer.accounts:
        return None
    return data.viewer.accounts[0]


def firewall_groups(scope: AnalyticsScope | None) -> list[FirewallEventGroup]:
    if scope is None or scope.firewall_events is None:
        return []
    return scope.firewall_events


def attack_groups(scope: AnalyticsScope | None) -> list[DosAttackGroup]:
    if scope is None or scope.dosd_attacks is None:
        return []
    return scope.dosd_attacks
