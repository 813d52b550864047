"""Queue tracking entities."""

from .appointment import AppointmentRef, to_local
from .encounter import EncounterRef
from .queue_status import QueueStatus

__all__ = [
    "AppointmentRef",
    "EncounterRef",
    "QueueStatus",
    "to_local",
]
