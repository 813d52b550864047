"""Queue tracking application layer: ports and services."""

from .ports import ExternalResponse, IRosterFetcher, RosterSnapshot
from .services import PollerState, QueuePoller, QueueSnapshot, QueueSubscription, QueueTrackingService

__all__ = [
    "ExternalResponse",
    "IRosterFetcher",
    "RosterSnapshot",
    "PollerState",
    "QueuePoller",
    "QueueSnapshot",
    "QueueSubscription",
    "QueueTrackingService",
]
