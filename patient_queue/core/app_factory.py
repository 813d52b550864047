"""
Application factory for FastAPI.

Handles only FastAPI application creation and configuration; lifecycle and
routes live in their own modules.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from patient_queue.api.exception_handlers import register_exception_handlers
from patient_queue.api.router import api_router
from patient_queue.config.settings import Settings, get_settings
from patient_queue.core.lifecycle import LifecycleManager, ServiceFactory, create_lifespan

logger = logging.getLogger(__name__)


class AppFactory:
    """
    Factory for creating and configuring FastAPI applications.

    Each configuration step is handled by a dedicated method.
    """

    def __init__(self, settings: Settings | None = None, service_factory: ServiceFactory | None = None) -> None:
        """
        Initialize app factory.

        Args:
            settings: Application settings (uses default if not provided)
            service_factory: Builds the QueueTrackingService at startup (tests inject fakes here)
        """
        self._settings = settings or get_settings()
        self._lifecycle = LifecycleManager(self._settings, service_factory)

    def create_app(self) -> FastAPI:
        """
        Create and configure the FastAPI application.

        Returns:
            Configured FastAPI application instance.
        """
        app = self._create_base_app()

        self._configure_middleware(app)
        self._configure_exception_handlers(app)
        self._configure_routes(app)
        self._configure_health_endpoint(app)

        logger.info(f"Application created: {self._settings.PROJECT_NAME}")
        return app

    def _create_base_app(self) -> FastAPI:
        app = FastAPI(
            title=self._settings.PROJECT_NAME,
            description=self._settings.PROJECT_DESCRIPTION,
            version=self._settings.VERSION,
            docs_url=f"{self._settings.API_V1_STR}/docs" if self._settings.DEBUG else None,
            redoc_url=f"{self._settings.API_V1_STR}/redoc" if self._settings.DEBUG else None,
            lifespan=create_lifespan(self._lifecycle),
        )
        app.state.lifecycle = self._lifecycle
        return app

    def _configure_middleware(self, app: FastAPI) -> None:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._get_cors_origins(),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _configure_exception_handlers(self, app: FastAPI) -> None:
        register_exception_handlers(app)

    def _configure_routes(self, app: FastAPI) -> None:
        app.include_router(api_router, prefix=self._settings.API_V1_STR)
        logger.info("Routes configured")

    def _configure_health_endpoint(self, app: FastAPI) -> None:
        """Add health check endpoint."""
        lifecycle = self._lifecycle

        @app.get("/health", tags=["health"])
        async def health_check() -> dict[str, object]:
            """
            Verify application health status.

            Returns basic status, environment and how many appointments are tracked.
            """
            tracked = len(lifecycle.service.tracked_appointments) if lifecycle.is_running else 0
            return {
                "status": "ok" if lifecycle.is_running else "starting",
                "environment": self._settings.ENVIRONMENT,
                "tracked_appointments": tracked,
            }

    def _get_cors_origins(self) -> list[str]:
        if self._settings.DEBUG:
            return ["*"]
        return self._settings.CORS_ORIGINS


def create_app(settings: Settings | None = None, service_factory: ServiceFactory | None = None) -> FastAPI:
    """
    Create FastAPI application using the factory.

    Args:
        settings: Optional settings override
        service_factory: Optional QueueTrackingService factory override

    Returns:
        Configured FastAPI application
    """
    factory = AppFactory(settings, service_factory)
    return factory.create_app()
