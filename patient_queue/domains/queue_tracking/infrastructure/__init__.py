"""Queue tracking infrastructure: FHIR adapters."""

from .fhir_roster_fetcher import FHIRRosterFetcher

__all__ = ["FHIRRosterFetcher"]
