"""Encounter reference linked to an appointment."""

from dataclasses import dataclass

from ..value_objects.encounter_status import EncounterStatus


@dataclass(frozen=True)
class EncounterRef:
    """Clinical encounter tied to at most one appointment."""

    status: EncounterStatus
    appointment_id: str | None = None
    id: str | None = None
