"""Unit tests for Settings."""

import pytest
from pydantic import ValidationError

from patient_queue.config import settings as settings_module
from patient_queue.config.settings import Settings, get_settings


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestDefaults:
    """Tests for default values."""

    def test_queue_defaults(self) -> None:
        settings = make_settings()
        assert settings.QUEUE_POLL_INTERVAL_SECONDS == 5.0
        assert settings.QUEUE_PLANNED_WAIT_MINUTES == 10
        assert settings.QUEUE_DEFAULT_SLOT_MINUTES == 15
        assert settings.QUEUE_TARGET_REFRESH_SECONDS == 10.0
        assert settings.APP_TIMEZONE == "Australia/Brisbane"

    def test_fhir_defaults(self) -> None:
        settings = make_settings()
        assert settings.FHIR_USE_BATCH is True
        assert settings.FHIR_MAX_PAGES == 10
        assert settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD == 5
        assert settings.SENTRY_DSN is None


class TestValidation:
    """Tests for field validators."""

    @pytest.mark.parametrize("interval", [0, -1])
    def test_poll_interval_must_be_positive(self, interval) -> None:
        with pytest.raises(ValidationError):
            make_settings(QUEUE_POLL_INTERVAL_SECONDS=interval)

    @pytest.mark.parametrize("interval", [0, -5])
    def test_target_refresh_must_be_positive(self, interval) -> None:
        with pytest.raises(ValidationError):
            make_settings(QUEUE_TARGET_REFRESH_SECONDS=interval)

    def test_unknown_timezone(self) -> None:
        with pytest.raises(ValidationError):
            make_settings(APP_TIMEZONE="Mars/Olympus_Mons")

    def test_log_format(self) -> None:
        with pytest.raises(ValidationError):
            make_settings(LOG_FORMAT="xml")

    def test_base_url_trailing_slash_is_removed(self) -> None:
        assert make_settings(FHIR_BASE_URL="https://fhir.example.org/r4/").FHIR_BASE_URL == "https://fhir.example.org/r4"

    def test_cors_origins_from_comma_separated_env(self, monkeypatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
        assert make_settings().CORS_ORIGINS == ["https://a.example", "https://b.example"]

    def test_environment_variables_override_defaults(self, monkeypatch) -> None:
        monkeypatch.setenv("QUEUE_POLL_INTERVAL_SECONDS", "8")
        monkeypatch.setenv("FHIR_USE_BATCH", "false")
        settings = make_settings()
        assert settings.QUEUE_POLL_INTERVAL_SECONDS == 8.0
        assert settings.FHIR_USE_BATCH is False

    def test_is_development(self) -> None:
        assert make_settings(ENVIRONMENT="local").is_development is True
        assert make_settings(ENVIRONMENT="production", DEBUG=False).is_development is False

    def test_keyword_overrides(self) -> None:
        settings = make_settings(QUEUE_PLANNED_WAIT_MINUTES=12, FHIR_ACCESS_TOKEN="token")
        assert settings.QUEUE_PLANNED_WAIT_MINUTES == 12
        assert settings.FHIR_ACCESS_TOKEN == "token"


class TestGetSettings:
    """Tests for the process-wide settings instance."""

    def test_returns_cached_instance(self, monkeypatch) -> None:
        monkeypatch.setattr(settings_module, "_settings_instance", None)
        first = get_settings()
        assert get_settings() is first
