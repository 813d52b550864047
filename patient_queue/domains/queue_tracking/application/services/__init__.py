"""Queue tracking application services."""

from .queue_poller import PollerState, QueuePoller, QueueSnapshot
from .queue_tracking_service import QueueSubscription, QueueTrackingService

__all__ = [
    "PollerState",
    "QueuePoller",
    "QueueSnapshot",
    "QueueSubscription",
    "QueueTrackingService",
]
