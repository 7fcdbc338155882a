"""zonewatch engine - transport, aggregation, detection and scheduling."""

from zonewatch.engine.aggregator import EventAggregator
from zonewatch.engine.ddos import DDoSClassifier, DetectionTier
from zonewatch.engine.gateway import ApiGateway
from zonewatch.engine.ranking import rank
from zonewatch.engine.scheduler import RefreshScheduler, build_scheduler
from zonewatch.engine.state import DashboardState

__all__ = [
    # Transport
    "ApiGateway",
    # Aggregation
    "EventAggregator",
    "rank",
    # Detection
    "DDoSClassifier",
    "DetectionTier",
    # Scheduling
    "DashboardState",
    "RefreshScheduler",
    "build_scheduler",
]
