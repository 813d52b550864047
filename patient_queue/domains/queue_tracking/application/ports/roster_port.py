# ============================================================================
# SCOPE: APPLICATION LAYER (Queue Tracking)
# Description: Read port onto the clinical record store.
# ============================================================================
"""Roster Fetcher Port.

Defines the read-only interface the queue engine needs from the clinical
record store. Implementations own query construction, paging and timeouts;
failures surface as ``FetchError`` and are never retried here.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Protocol, runtime_checkable

from ...domain.entities import AppointmentRef, EncounterRef


@dataclass(frozen=True)
class RosterSnapshot:
    """A practitioner's appointments for one day plus the target's encounter."""

    appointments: tuple[AppointmentRef, ...] = field(default_factory=tuple)
    encounter: EncounterRef | None = None

    def find(self, appointment_id: str) -> AppointmentRef | None:
        for appointment in self.appointments:
            if appointment.id == appointment_id:
                return appointment
        return None


@runtime_checkable
class IRosterFetcher(Protocol):
    """Interface for reading the roster a queue estimate is computed from.

    Implementations: FHIRRosterFetcher

    Implementations must be stateless per call and safe to use concurrently
    from many pollers.
    """

    async def fetch_roster(
        self,
        practitioner_id: str,
        day: date,
        target_appointment_id: str,
    ) -> RosterSnapshot:
        """Fetch every appointment of ``practitioner_id`` on ``day`` and the target's encounter.

        Args:
            practitioner_id: Practitioner whose roster is read.
            day: Calendar day in the deployment timezone.
            target_appointment_id: Appointment whose encounter is looked up.

        Returns:
            RosterSnapshot; ``encounter`` is None when staff have not opened one.

        Raises:
            FetchError: On any store or transport failure.
        """
        ...

    async def get_appointment(self, appointment_id: str) -> AppointmentRef | None:
        """Read a single appointment.

        Returns:
            The appointment, or None if it does not exist.

        Raises:
            FetchError: On any store or transport failure.
            MalformedDataError: If the stored appointment cannot be interpreted.
        """
        ...

    async def close(self) -> None:
        """Release transport resources."""
        ...
