"""
Application lifecycle management using the FastAPI lifespan pattern.

Startup configures logging and builds the queue tracking service; shutdown
stops every poller and closes the FHIR connection pool.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from patient_queue.config.settings import Settings, get_settings
from patient_queue.core.container import QueueTrackingContainer
from patient_queue.core.shared.logger import configure_logging
from patient_queue.domains.queue_tracking.application.services import QueueSubscription, QueueTrackingService

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[Settings], QueueTrackingService]


def default_service_factory(settings: Settings) -> QueueTrackingService:
    return QueueTrackingContainer(settings).create_tracking_service()


class LifecycleManager:
    """
    Manages application lifecycle events.

    Owns the QueueTrackingService for the lifetime of the app and the
    subscriptions opened on behalf of HTTP clients.
    """

    def __init__(self, settings: Settings | None = None, service_factory: ServiceFactory | None = None) -> None:
        self._settings = settings or get_settings()
        self._service_factory = service_factory or default_service_factory
        self._service: QueueTrackingService | None = None
        self.subscriptions: dict[str, QueueSubscription] = {}
        self._subscriptions_lock = asyncio.Lock()

    @property
    def service(self) -> QueueTrackingService:
        if self._service is None:
            raise RuntimeError("Queue tracking service is not running")
        return self._service

    @property
    def is_running(self) -> bool:
        return self._service is not None

    async def startup(self) -> None:
        """Execute startup tasks."""
        if self._service is not None:
            logger.warning("Lifecycle already initialized, skipping startup")
            return

        configure_logging(
            level=self._settings.LOG_LEVEL,
            format_type=self._settings.LOG_FORMAT,
            log_file=self._settings.LOG_FILE,
        )
        logger.info("Starting application lifecycle...")

        self._verify_configurations()
        self._service = self._service_factory(self._settings)

        logger.info("Application lifecycle startup completed")

    async def shutdown(self) -> None:
        """Execute shutdown tasks."""
        if self._service is None:
            logger.warning("Lifecycle not initialized, skipping shutdown")
            return

        logger.info("Stopping application lifecycle...")
        service, self._service = self._service, None
        self.subscriptions.clear()
        await service.shutdown()
        logger.info("Application lifecycle shutdown completed")

    async def open_subscription(self, appointment_id: str) -> QueueSubscription:
        """Subscribe on behalf of HTTP clients. Repeated calls share one subscription."""
        async with self._subscriptions_lock:
            subscription = self.subscriptions.get(appointment_id)
            if subscription is None:
                subscription = await self.service.subscribe(appointment_id)
                self.subscriptions[appointment_id] = subscription
                logger.info(f"HTTP tracking started for appointment {appointment_id}")
            return subscription

    async def close_subscription(self, appointment_id: str) -> bool:
        """Release the HTTP subscription of an appointment. Returns False if there was none."""
        async with self._subscriptions_lock:
            subscription = self.subscriptions.pop(appointment_id, None)
        if subscription is None:
            return False

        await subscription.unsubscribe()
        logger.info(f"HTTP tracking stopped for appointment {appointment_id}")
        return True

    def _verify_configurations(self) -> None:
        if not self._settings.FHIR_ACCESS_TOKEN:
            logger.warning("FHIR_ACCESS_TOKEN not configured - requests are sent unauthenticated")
        if not self._settings.FHIR_USE_BATCH:
            logger.info("FHIR batch disabled - roster and encounter are fetched separately")


def create_lifespan(manager: LifecycleManager):
    """Build a lifespan context manager bound to ``manager``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.lifecycle = manager
        await manager.startup()
        try:
            yield
        finally:
            await manager.shutdown()

    return lifespan
