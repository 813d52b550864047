"""
Queue API Schemas

Pydantic models for queue tracking responses.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from patient_queue.domains.queue_tracking.application.services import QueueSnapshot
from patient_queue.domains.queue_tracking.domain.services import format_wait_time, queue_status_message


class QueueSnapshotResponse(BaseModel):
    """Current queue view of one tracked appointment."""

    appointment_id: str
    position: int = Field(ge=0, description="Patients ahead of this one")
    estimated_wait_minutes: int = Field(ge=0, description="Estimated wait in whole minutes")
    stage: str = Field(description="not_applicable, waiting, encounter_planned, in_progress or finished")
    message: str = Field(description="Patient-facing sentence for the current stage")
    wait_time_display: str = Field(description="Wait shown as a range or in hours")
    poller_state: str = Field(description="idle, active or stopped")
    updated_at: datetime | None = Field(default=None, description="Time of the last successful refresh")
    stale: bool = Field(default=False, description="True when the last refresh failed")

    model_config = {
        "json_schema_extra": {
            "example": {
                "appointment_id": "apt-123",
                "position": 2,
                "estimated_wait_minutes": 30,
                "stage": "waiting",
                "message": "You're third in the queue",
                "wait_time_display": "25-35 minutes",
                "poller_state": "active",
                "updated_at": "2026-10-19T09:30:05+10:00",
                "stale": False,
            }
        }
    }

    @classmethod
    def from_snapshot(cls, snapshot: QueueSnapshot) -> "QueueSnapshotResponse":
        status = snapshot.status
        return cls(
            appointment_id=snapshot.appointment_id,
            position=status.position,
            estimated_wait_minutes=status.estimated_wait_minutes,
            stage=status.stage.value,
            message=queue_status_message(status),
            wait_time_display=format_wait_time(status.estimated_wait_minutes) if status.is_applicable else "",
            poller_state=snapshot.poller_state.value,
            updated_at=snapshot.updated_at,
            stale=snapshot.stale,
        )


class TrackingStoppedResponse(BaseModel):
    """Returned when an HTTP client stops tracking an appointment."""

    appointment_id: str
    tracking: bool = False
