# ============================================================================
# SCOPE: APPLICATION LAYER (Queue Tracking)
# Description: Ports (interfaces) for external systems.
# ============================================================================
"""Queue Tracking Application Ports.

- IRosterFetcher: read access to appointments and encounters
- RosterSnapshot: what one fetch returns
- ExternalResponse: uniform result type of the clinical data client
"""

from .response import ExternalResponse
from .roster_port import IRosterFetcher, RosterSnapshot

__all__ = [
    "ExternalResponse",
    "IRosterFetcher",
    "RosterSnapshot",
]
