import json
from typing import Annotated

import pytz
from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables (and `.env`).
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Patient Queue Service"
    PROJECT_DESCRIPTION: str = "Live queue position and estimated wait time for same-day appointments"
    VERSION: str = "0.1.0"

    # Application Settings
    DEBUG: bool = Field(False, description="Debug mode")
    ENVIRONMENT: str = Field("production", description="Runtime environment")
    CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(default=["http://localhost:3000"], description="Allowed CORS origins")

    # Logging
    LOG_LEVEL: str = Field("INFO", description="Root log level")
    LOG_FORMAT: str = Field("colored", description="Log format: colored, json or plain")
    LOG_FILE: str | None = Field(None, description="Optional JSON log file path")

    # Sentry Configuration
    SENTRY_DSN: str | None = Field(None, description="Sentry DSN for error tracking (disabled when unset)")

    # FHIR clinical data API
    FHIR_BASE_URL: str = Field("http://localhost:8080/fhir", description="FHIR R4 base URL")
    FHIR_ACCESS_TOKEN: str | None = Field(None, description="Bearer token for the FHIR API")
    FHIR_REQUEST_TIMEOUT: float = Field(10.0, gt=0, description="Timeout per FHIR request in seconds")
    FHIR_USE_BATCH: bool = Field(True, description="Fetch roster and encounter in a single batch Bundle")
    FHIR_PAGE_SIZE: int = Field(100, ge=1, description="_count used for appointment searches")
    FHIR_MAX_PAGES: int = Field(10, ge=1, description="Maximum searchset pages followed per roster fetch")

    # Circuit breaker for the FHIR API
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(5, ge=1, description="Failures before opening the circuit")
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: float = Field(30.0, gt=0, description="Seconds before a recovery attempt")
    CIRCUIT_BREAKER_SUCCESS_THRESHOLD: int = Field(1, ge=1, description="Successes in half-open to close")

    # Local calendar used to decide what "today" means
    APP_TIMEZONE: str = Field("Australia/Brisbane", description="Deployment local timezone")

    # Queue engine
    QUEUE_POLL_INTERVAL_SECONDS: float = Field(5.0, gt=0, description="Seconds between poll ticks")
    QUEUE_TARGET_REFRESH_SECONDS: float = Field(
        10.0, gt=0, description="Seconds between re-reads of an appointment that is not yet in the queue"
    )
    QUEUE_PLANNED_WAIT_MINUTES: int = Field(10, ge=0, description="Wait shown when the patient is about to be called")
    QUEUE_DEFAULT_SLOT_MINUTES: int = Field(15, gt=0, description="Fallback duration of an appointment without end")

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("APP_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v):
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("colored", "json", "plain"):
            raise ValueError("LOG_FORMAT must be one of: colored, json, plain")
        return v

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                return json.loads(text)
            return [origin.strip() for origin in text.split(",") if origin.strip()]
        return value

    @field_validator("FHIR_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @computed_field
    @property
    def is_development(self) -> bool:
        """Whether the service runs in a development environment"""
        return self.DEBUG or self.ENVIRONMENT.lower() in ["development", "dev", "local"]


_settings_instance = None


def get_settings() -> Settings:
    """
    Return the cached settings instance so the environment is read only once.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
