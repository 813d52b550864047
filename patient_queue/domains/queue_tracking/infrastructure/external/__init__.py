"""External system clients for queue tracking."""

from .fhir import FHIRClient

__all__ = ["FHIRClient"]
