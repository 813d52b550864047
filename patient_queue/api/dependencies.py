# ============================================================================
# SCOPE: GLOBAL
# Description: FastAPI dependencies for the queue tracking routes.
# ============================================================================
import logging

from fastapi import Depends, HTTPException, Request, status

from patient_queue.core.lifecycle import LifecycleManager
from patient_queue.domains.queue_tracking.application.services import QueueTrackingService

logger = logging.getLogger(__name__)


def get_lifecycle(request: Request) -> LifecycleManager:
    """Return the lifecycle manager attached to the running app."""
    lifecycle: LifecycleManager | None = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None or not lifecycle.is_running:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Queue tracking is not running")
    return lifecycle


def get_tracking_service(
    lifecycle: LifecycleManager = Depends(get_lifecycle),  # noqa: B008
) -> QueueTrackingService:
    return lifecycle.service
