"""Queue tracking value objects."""

from .appointment_status import AppointmentStatus
from .encounter_status import EncounterStatus
from .queue_stage import QueueStage

__all__ = [
    "AppointmentStatus",
    "EncounterStatus",
    "QueueStage",
]
