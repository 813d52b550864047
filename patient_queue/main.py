"""
Application entry point.

Configuration, middleware and lifecycle management are delegated to
specialized modules.
"""

import logging

import sentry_sdk

from patient_queue.config.settings import get_settings
from patient_queue.core.app_factory import create_app

logger = logging.getLogger(__name__)
settings = get_settings()

# Sentry stays disabled unless a DSN is configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        send_default_pii=False,
        environment=settings.ENVIRONMENT,
    )

app = create_app(settings)

if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")
    uvicorn.run(
        "patient_queue.main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.DEBUG,
    )
