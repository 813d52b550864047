# ============================================================================
# SCOPE: GLOBAL
# Description: Wires the queue tracking domain from application settings.
# ============================================================================
"""
Dependency Container

Builds the FHIR client, the roster fetcher and the queue tracking service
from Settings. Tests construct the same objects directly with fakes.
"""

import logging

import pytz

from patient_queue.config.settings import Settings, get_settings
from patient_queue.domains.queue_tracking.application.services import QueueTrackingService
from patient_queue.domains.queue_tracking.domain.services import EstimatorConfig
from patient_queue.domains.queue_tracking.infrastructure import FHIRRosterFetcher
from patient_queue.domains.queue_tracking.infrastructure.external.fhir import FHIRClient
from patient_queue.domains.queue_tracking.infrastructure.external.fhir.resilience import CircuitBreakerConfig

logger = logging.getLogger(__name__)


class QueueTrackingContainer:
    """Factories for the queue tracking domain.

    Single Responsibility: turn configuration into wired objects.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def create_estimator_config(self) -> EstimatorConfig:
        return EstimatorConfig.create(
            planned_wait_minutes=self.settings.QUEUE_PLANNED_WAIT_MINUTES,
            default_slot_minutes=self.settings.QUEUE_DEFAULT_SLOT_MINUTES,
            timezone_name=self.settings.APP_TIMEZONE,
        )

    def create_fhir_client(self) -> FHIRClient:
        return FHIRClient(
            base_url=self.settings.FHIR_BASE_URL,
            access_token=self.settings.FHIR_ACCESS_TOKEN,
            timeout=self.settings.FHIR_REQUEST_TIMEOUT,
            circuit_breaker_config=CircuitBreakerConfig(
                failure_threshold=self.settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                recovery_timeout=self.settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
                success_threshold=self.settings.CIRCUIT_BREAKER_SUCCESS_THRESHOLD,
            ),
        )

    def create_roster_fetcher(self, client: FHIRClient | None = None) -> FHIRRosterFetcher:
        return FHIRRosterFetcher(
            client=client or self.create_fhir_client(),
            timezone=pytz.timezone(self.settings.APP_TIMEZONE),
            use_batch=self.settings.FHIR_USE_BATCH,
            page_size=self.settings.FHIR_PAGE_SIZE,
            max_pages=self.settings.FHIR_MAX_PAGES,
        )

    def create_tracking_service(self) -> QueueTrackingService:
        """Create the queue tracking service with a FHIR-backed fetcher."""
        service = QueueTrackingService(
            fetcher=self.create_roster_fetcher(),
            interval_seconds=self.settings.QUEUE_POLL_INTERVAL_SECONDS,
            config=self.create_estimator_config(),
            target_refresh_seconds=self.settings.QUEUE_TARGET_REFRESH_SECONDS,
        )
        logger.info(
            f"Queue tracking configured: fhir={self.settings.FHIR_BASE_URL}, "
            f"interval={self.settings.QUEUE_POLL_INTERVAL_SECONDS}s, tz={self.settings.APP_TIMEZONE}"
        )
        return service
