# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Queue Tracking)
# Description: Resilience patterns for external API calls
# ============================================================================
"""Resilience patterns for the FHIR client.

Provides a circuit breaker and input validation without external dependencies.
"""

import asyncio
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker.

    Attributes:
        failure_threshold: Number of failures before opening circuit.
        recovery_timeout: Seconds to wait before testing recovery.
        success_threshold: Successes needed in half-open to close.
    """

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    success_threshold: int = 1


@dataclass
class CircuitBreakerState:
    """Internal state for circuit breaker."""

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    last_failure_time: float = 0.0
    last_state_change: float = field(default_factory=time.monotonic)


class CircuitBreaker:
    """Circuit breaker shared by every request of one FHIR client.

    Pollers hammer the same store every few seconds; once the store is down,
    the breaker turns each tick into an immediate failure instead of a timeout.

    Example:
        >>> breaker = CircuitBreaker()
        >>> result = await breaker.call(async_function, arg1, arg2)
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            config: Optional configuration. Uses defaults if not provided.
            clock: Monotonic time source in seconds.
        """
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitBreakerState(last_state_change=clock())
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state.state

    @property
    def is_open(self) -> bool:
        return self._state.state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        return self._state.state == CircuitState.CLOSED

    async def call(
        self,
        func: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Execute function with circuit breaker protection.

        Args:
            func: Async function to call.
            *args: Positional arguments.
            **kwargs: Keyword arguments.

        Returns:
            Function result if successful.

        Raises:
            CircuitOpenError: If circuit is open.
            Exception: Original exception if circuit allows.
        """
        async with self._lock:
            self._check_state()

            if self._state.state == CircuitState.OPEN:
                raise CircuitOpenError(f"Circuit breaker is open. Recovery in {self._time_until_recovery():.1f}s")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self._on_failure()
            raise

        await self._on_success()
        return result

    def _check_state(self) -> None:
        if self._state.state == CircuitState.OPEN:
            elapsed = self._clock() - self._state.last_failure_time
            if elapsed >= self._config.recovery_timeout:
                self._transition_to(CircuitState.HALF_OPEN)
                logger.info("Circuit breaker transitioning to HALF_OPEN")

    async def _on_success(self) -> None:
        async with self._lock:
            if self._state.state == CircuitState.HALF_OPEN:
                self._state.success_count += 1
                if self._state.success_count >= self._config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
                    logger.info("Circuit breaker CLOSED (service recovered)")
            elif self._state.state == CircuitState.CLOSED:
                self._state.failure_count = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self._state.failure_count += 1
            self._state.last_failure_time = self._clock()

            if self._state.state == CircuitState.HALF_OPEN:
                # Any failure in half-open reopens circuit
                self._transition_to(CircuitState.OPEN)
                logger.warning("Circuit breaker OPEN (failure during recovery)")

            elif self._state.state == CircuitState.CLOSED:
                if self._state.failure_count >= self._config.failure_threshold:
                    self._transition_to(CircuitState.OPEN)
                    logger.warning(f"Circuit breaker OPEN after {self._state.failure_count} failures")

    def _transition_to(self, new_state: CircuitState) -> None:
        self._state.state = new_state
        self._state.last_state_change = self._clock()
        if new_state == CircuitState.HALF_OPEN:
            self._state.success_count = 0
        elif new_state == CircuitState.CLOSED:
            self._state.failure_count = 0
            self._state.success_count = 0

    def _time_until_recovery(self) -> float:
        elapsed = self._clock() - self._state.last_failure_time
        return max(0, self._config.recovery_timeout - elapsed)

    def reset(self) -> None:
        """Reset circuit breaker to initial state."""
        self._state = CircuitBreakerState(last_state_change=self._clock())
        logger.info("Circuit breaker reset to CLOSED")


class CircuitOpenError(Exception):
    """Raised when circuit breaker is open."""

    pass


# ============================================================================
# Input Validation
# ============================================================================

_FHIR_ID_PATTERN = re.compile(r"^[A-Za-z0-9\-.]{1,64}$")


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Validation error in '{field}': {message}")


def validate_resource_id(value: str | None, field_name: str) -> str:
    """Validate a FHIR logical id before it is interpolated into a URL.

    Args:
        value: Id value.
        field_name: Field name for error message.

    Returns:
        The stripped id.

    Raises:
        ValidationError: If the id is empty or not a valid FHIR id.
    """
    if not value or not value.strip():
        raise ValidationError(field_name, f"{field_name} is required")

    value = value.strip()
    if not _FHIR_ID_PATTERN.match(value):
        raise ValidationError(field_name, f"{field_name} is not a valid FHIR id")

    return value
