"""Queue Stage Value Object."""

from enum import Enum


class QueueStage(str, Enum):
    """Where the tracked patient is in their visit."""

    NOT_APPLICABLE = "not_applicable"  # Not today, or not arrived yet
    WAITING = "waiting"
    ENCOUNTER_PLANNED = "encounter_planned"  # Staff are about to call the patient
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"

    def is_terminal(self) -> bool:
        return self is QueueStage.FINISHED
