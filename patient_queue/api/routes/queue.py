"""
Queue tracking endpoints.

An HTTP client opens a subscription for an appointment, then polls the
snapshot endpoint; the server-side poller keeps the snapshot current.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from patient_queue.api.dependencies import get_lifecycle, get_tracking_service
from patient_queue.api.schemas import QueueSnapshotResponse, TrackingStoppedResponse
from patient_queue.core.domain.exceptions import EntityNotFoundException
from patient_queue.core.lifecycle import LifecycleManager
from patient_queue.domains.queue_tracking.application.services import QueueSnapshot, QueueTrackingService

router = APIRouter(prefix="/queue", tags=["queue"])

AppointmentId = Annotated[str, Path(pattern=r"^[A-Za-z0-9\-.]{1,64}$", description="FHIR Appointment id")]


def _require(snapshot: QueueSnapshot | None, appointment_id: str) -> QueueSnapshot:
    if snapshot is None:
        raise EntityNotFoundException("TrackedAppointment", appointment_id, f"Appointment {appointment_id} is not being tracked")
    return snapshot


@router.post("/{appointment_id}/subscription", response_model=QueueSnapshotResponse)
async def start_tracking(
    appointment_id: AppointmentId,
    lifecycle: LifecycleManager = Depends(get_lifecycle),  # noqa: B008
):
    """
    Start tracking an appointment's queue position.

    Idempotent: a second call for the same appointment returns the current snapshot.
    """
    await lifecycle.open_subscription(appointment_id)
    return QueueSnapshotResponse.from_snapshot(_require(lifecycle.service.get_status(appointment_id), appointment_id))


@router.get("/{appointment_id}", response_model=QueueSnapshotResponse)
async def get_queue_status(
    appointment_id: AppointmentId,
    service: QueueTrackingService = Depends(get_tracking_service),  # noqa: B008
):
    """Return the latest queue snapshot of a tracked appointment."""
    return QueueSnapshotResponse.from_snapshot(_require(service.get_status(appointment_id), appointment_id))


@router.post("/{appointment_id}/refresh", response_model=QueueSnapshotResponse)
async def refresh_target(
    appointment_id: AppointmentId,
    service: QueueTrackingService = Depends(get_tracking_service),  # noqa: B008
):
    """Re-read the appointment so status or start-time changes take effect now."""
    snapshot = await service.refresh_target(appointment_id)
    return QueueSnapshotResponse.from_snapshot(_require(snapshot, appointment_id))


@router.delete("/{appointment_id}/subscription", response_model=TrackingStoppedResponse)
async def stop_tracking(
    appointment_id: AppointmentId,
    lifecycle: LifecycleManager = Depends(get_lifecycle),  # noqa: B008
):
    """Stop tracking an appointment."""
    if not await lifecycle.close_subscription(appointment_id):
        raise EntityNotFoundException("TrackedAppointment", appointment_id, f"Appointment {appointment_id} is not being tracked")

    return TrackingStoppedResponse(appointment_id=appointment_id)
