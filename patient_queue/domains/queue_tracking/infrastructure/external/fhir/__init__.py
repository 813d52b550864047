# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Queue Tracking)
# Description: FHIR client module.
# ============================================================================
"""FHIR Client Module.

Provides an async read-only client for the FHIR clinical data API.

Components:
- FHIRClient: HTTP client with circuit breaker
- BundleBuilder: Builds search URLs and batch Bundles
- FHIRResourceParser: Parses resources and Bundles into domain references

Usage:
    from patient_queue.domains.queue_tracking.infrastructure.external.fhir import FHIRClient

    client = FHIRClient(base_url="https://fhir.example.org/r4", access_token="...")
    result = await client.read("Appointment", "123")
"""

from .bundle_builder import BundleBuilder
from .client import FHIRClient
from .resilience import CircuitBreaker, CircuitBreakerConfig, CircuitOpenError, CircuitState
from .resource_parser import FHIRResourceParser, parse_instant

__all__ = [
    "FHIRClient",
    "BundleBuilder",
    "FHIRResourceParser",
    "parse_instant",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "CircuitState",
]
