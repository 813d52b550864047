"""Queue status value produced on every poll tick."""

from dataclasses import dataclass
from typing import Any

from ..value_objects.queue_stage import QueueStage


@dataclass(frozen=True)
class QueueStatus:
    """Derived queue view for one target appointment.

    Instances are never mutated; each tick replaces the previous value wholesale.

    Attributes:
        position: Number of patients ahead of the target patient.
        estimated_wait_minutes: Best-effort wait estimate in whole minutes.
        stage: Where the patient is in the visit.
    """

    position: int
    estimated_wait_minutes: int
    stage: QueueStage

    def __post_init__(self) -> None:
        if self.position < 0:
            raise ValueError("position must be non-negative")
        if self.estimated_wait_minutes < 0:
            raise ValueError("estimated_wait_minutes must be non-negative")

    @classmethod
    def not_applicable(cls) -> "QueueStatus":
        return cls(position=0, estimated_wait_minutes=0, stage=QueueStage.NOT_APPLICABLE)

    @property
    def is_applicable(self) -> bool:
        return self.stage is not QueueStage.NOT_APPLICABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "estimated_wait_minutes": self.estimated_wait_minutes,
            "stage": self.stage.value,
        }
