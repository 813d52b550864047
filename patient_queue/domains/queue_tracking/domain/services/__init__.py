"""Queue tracking domain services."""

from .queue_estimator import (
    DEFAULT_CONFIG,
    DEFAULT_SLOT_MINUTES,
    PLANNED_WAIT_MINUTES,
    EstimatorConfig,
    eligible_appointments,
    estimate,
    is_trackable,
    round_minutes,
    slot_minutes,
)
from .queue_messages import format_wait_time, queue_status_message

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_SLOT_MINUTES",
    "PLANNED_WAIT_MINUTES",
    "EstimatorConfig",
    "eligible_appointments",
    "estimate",
    "is_trackable",
    "round_minutes",
    "slot_minutes",
    "format_wait_time",
    "queue_status_message",
]
