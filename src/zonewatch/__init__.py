"""zonewatch - security event aggregation and DDoS classification for Cloudflare zones."""

from zonewatch._version import __version__
from zonewatch.credentials import CredentialResolver
from zonewatch.engine import (
    ApiGateway,
    DashboardState,
    DDoSClassifier,
    EventAggregator,
    RefreshScheduler,
    build_scheduler,
    rank,
)
from zonewatch.errors import (
    ApiError,
    DecodeError,
    GatewayError,
    HttpStatusError,
    InvalidEndpointError,
    InvalidResponseError,
    NotAuthenticatedError,
)
from zonewatch.models import (
    AggregationResult,
    CredentialRecord,
    DDOSEvent,
    IPHit,
    TopBlock,
    Zone,
)

__all__ = [
    "__version__",
    "ApiGateway",
    "CredentialResolver",
    "DashboardState",
    "DDoSClassifier",
    "EventAggregator",
    "RefreshScheduler",
    "build_scheduler",
    "rank",
    # Errors
    "ApiError",
    "DecodeError",
    "GatewayError",
    "HttpStatusError",
    "InvalidEndpointError",
    "InvalidResponseError",
    "NotAuthenticatedError",
    # Models
    "AggregationResult",
    "CredentialRecord",
    "DDOSEvent",
    "IPHit",
    "TopBlock",
    "Zone",
]
