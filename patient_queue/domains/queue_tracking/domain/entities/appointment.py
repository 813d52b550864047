"""Appointment reference as seen by the queue estimator."""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from ..value_objects.appointment_status import AppointmentStatus


def to_local(moment: datetime, tz: tzinfo) -> datetime:
    """Express ``moment`` in ``tz``. Naive datetimes are taken as already local."""
    if moment.tzinfo is None:
        localize = getattr(tz, "localize", None)
        return localize(moment) if localize else moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


@dataclass(frozen=True)
class AppointmentRef:
    """Read-only snapshot of one appointment in a practitioner's day roster.

    ``start`` is always present; ``end`` may be missing, in which case the
    duration is unknown and callers fall back to a default slot length.
    """

    id: str
    start: datetime
    status: AppointmentStatus
    end: datetime | None = None
    practitioner_id: str | None = None

    def duration_minutes(self) -> float | None:
        """Scheduled duration in minutes, or None when ``end`` is unknown."""
        if self.end is None:
            return None
        return (self.end - self.start).total_seconds() / 60

    def local_day(self, tz: tzinfo) -> date:
        """Calendar day of ``start`` in the deployment timezone."""
        return to_local(self.start, tz).date()

    def is_same_slot(self, other: "AppointmentRef") -> bool:
        """Whether identity, start time and status all match ``other``."""
        return self.id == other.id and self.start == other.start and self.status == other.status
