"""Encounter Status Value Object."""

from enum import Enum


class EncounterStatus(str, Enum):
    """FHIR ``Encounter.status`` codes.

    Codes outside the value set (servers differ between R4 and R5) map to
    ``UNKNOWN`` instead of failing the whole roster fetch.
    """

    PLANNED = "planned"
    ARRIVED = "arrived"
    TRIAGED = "triaged"
    IN_PROGRESS = "in-progress"
    ON_HOLD = "on-hold"
    ONLEAVE = "onleave"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    ENTERED_IN_ERROR = "entered-in-error"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "EncounterStatus":
        return cls.UNKNOWN
