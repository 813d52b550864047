"""Appointment Status Value Object.

FHIR R4 ``Appointment.status`` codes as seen by the queue estimator.
"""

from enum import Enum


class AppointmentStatus(str, Enum):
    """Appointment participation status (FHIR value set ``appointmentstatus``)."""

    PROPOSED = "proposed"
    PENDING = "pending"
    BOOKED = "booked"
    ARRIVED = "arrived"  # Patient checked in at the front desk
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    NOSHOW = "noshow"
    ENTERED_IN_ERROR = "entered-in-error"
    CHECKED_IN = "checked-in"
    WAITLIST = "waitlist"

    def is_arrived(self) -> bool:
        """Queue tracking only starts once the patient has arrived."""
        return self is AppointmentStatus.ARRIVED

    def counts_toward_queue(self) -> bool:
        """Whether an appointment with this status still occupies a place in the queue."""
        return self not in (AppointmentStatus.CANCELLED, AppointmentStatus.FULFILLED)
