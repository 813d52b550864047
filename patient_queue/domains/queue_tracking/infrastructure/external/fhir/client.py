# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Queue Tracking)
# Description: FHIR REST client implementation.
# ============================================================================
"""FHIR REST Client.

Async read-only client for a FHIR R4 server.

Components:
- BundleBuilder: Builds search URLs and batch Bundles
- FHIRResourceParser: Interprets batch-response entries
- CircuitBreaker: Resilience pattern for API failures
"""

import logging
from typing import Any
from urllib.parse import urljoin

import httpx

from ....application.ports import ExternalResponse
from .bundle_builder import BundleBuilder
from .resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    ValidationError,
    validate_resource_id,
)

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class FHIRClient:
    """Async FHIR client.

    Every call returns an ExternalResponse; transport errors never escape.
    HTTP 404 is reported as a non-success response without counting against
    the circuit breaker.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str | None = None,
        timeout: float = 10.0,
        circuit_breaker_config: CircuitBreakerConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        builder: BundleBuilder | None = None,
    ):
        """Initialize FHIR client.

        Args:
            base_url: FHIR server base URL.
            access_token: Optional bearer token.
            timeout: Request timeout in seconds.
            circuit_breaker_config: Optional circuit breaker configuration.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
            builder: Optional custom request builder.
        """
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout

        self._transport = transport
        self._builder = builder or BundleBuilder()
        self._circuit_breaker = CircuitBreaker(circuit_breaker_config)
        self._client: httpx.AsyncClient | None = None

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": FHIR_JSON, "Content-Type": FHIR_JSON}
            if self.access_token:
                headers["Authorization"] = f"Bearer {self.access_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url + "/",
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Public read operations
    # =========================================================================

    async def read(self, resource_type: str, resource_id: str) -> ExternalResponse:
        """Read one resource by logical id."""
        try:
            resource_id = validate_resource_id(resource_id, f"{resource_type}.id")
        except ValidationError as e:
            return ExternalResponse.error("VALIDATION_ERROR", e.message)

        return await self._call("GET", f"{resource_type}/{resource_id}")

    async def search(self, relative_url: str) -> ExternalResponse:
        """Run a search given a relative URL built by BundleBuilder."""
        return await self._call("GET", relative_url)

    async def get_page(self, url: str) -> ExternalResponse:
        """Follow a searchset paging link (absolute or relative to the base URL)."""
        return await self._call("GET", urljoin(self.base_url + "/", url))

    async def batch(self, urls: list[str]) -> ExternalResponse:
        """POST a batch Bundle of GET requests to the server base."""
        bundle = self._builder.build_batch(urls)
        return await self._call("POST", "", json=bundle)

    # =========================================================================
    # Transport
    # =========================================================================

    async def _call(self, method: str, url: str, json: dict[str, Any] | None = None) -> ExternalResponse:
        """Execute a request through the circuit breaker.

        Returns:
            ExternalResponse with result or error.
        """
        try:
            return await self._circuit_breaker.call(self._execute_request, method, url, json)
        except CircuitOpenError as e:
            logger.warning(f"Circuit breaker open for {method} {url or '/'}: {e}")
            return ExternalResponse.error(
                "SERVICE_UNAVAILABLE",
                "The clinical data service is temporarily unavailable",
            )
        except httpx.HTTPStatusError as e:
            return ExternalResponse.error(
                "HTTP_ERROR",
                f"FHIR server returned {e.response.status_code}",
                status_code=e.response.status_code,
            )
        except httpx.TimeoutException as e:
            return ExternalResponse.error("TIMEOUT", f"FHIR request timed out: {e}")
        except httpx.RequestError as e:
            return ExternalResponse.error("REQUEST_ERROR", f"FHIR request failed: {e}")
        except ValueError as e:
            return ExternalResponse.error("PARSE_ERROR", f"FHIR response is not valid JSON: {e}")

    async def _execute_request(self, method: str, url: str, json: dict[str, Any] | None) -> ExternalResponse:
        """Execute the actual HTTP request.

        Raises:
            httpx.HTTPStatusError: On non-2xx other than 404 (for circuit breaker).
            httpx.RequestError: On transport errors (for circuit breaker).
            ValueError: If the body is not JSON.
        """
        client = await self._get_client()

        try:
            response = await client.request(method, url, json=json)
            if response.status_code == 404:
                return ExternalResponse.error("NOT_FOUND", f"{url} not found", status_code=404)
            response.raise_for_status()
            return ExternalResponse.ok(response.json(), status_code=response.status_code)

        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error calling {method} {url or '/'}: {e.response.status_code}")
            # Re-raise to trigger circuit breaker
            raise
        except httpx.RequestError as e:
            logger.error(f"Request error calling {method} {url or '/'}: {e}")
            # Re-raise to trigger circuit breaker
            raise
