"""Queue tracking domain layer: entities, value objects and the pure estimator."""

from .entities import AppointmentRef, EncounterRef, QueueStatus
from .exceptions import FetchError, MalformedDataError
from .services import EstimatorConfig, estimate
from .value_objects import AppointmentStatus, EncounterStatus, QueueStage

__all__ = [
    "AppointmentRef",
    "EncounterRef",
    "QueueStatus",
    "AppointmentStatus",
    "EncounterStatus",
    "QueueStage",
    "EstimatorConfig",
    "estimate",
    "FetchError",
    "MalformedDataError",
]
