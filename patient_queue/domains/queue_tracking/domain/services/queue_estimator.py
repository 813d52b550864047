"""Queue Estimator.

Pure function from a roster snapshot to a ``QueueStatus``. No I/O and no
clock access: ``now`` is always injected, so identical inputs give identical
output.

Wait-time rules, in priority order, once the patient has arrived today and
their own encounter is neither in progress nor finished:

a. Encounter ``planned``      -> planned wait, stage ENCOUNTER_PLANNED.
b. Nobody ahead, no encounter -> planned wait, stage WAITING.
c. Otherwise                  -> sum of the durations of everyone ahead.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, tzinfo

import pytz

from ..entities.appointment import AppointmentRef, to_local
from ..entities.encounter import EncounterRef
from ..entities.queue_status import QueueStatus
from ..value_objects.encounter_status import EncounterStatus
from ..value_objects.queue_stage import QueueStage

PLANNED_WAIT_MINUTES = 10
DEFAULT_SLOT_MINUTES = 15
DEFAULT_TIMEZONE = "Australia/Brisbane"


@dataclass(frozen=True)
class EstimatorConfig:
    """Tunable constants of the estimator.

    Attributes:
        planned_wait_minutes: Wait reported when the patient is about to be called.
        default_slot_minutes: Duration assumed for appointments without a usable end.
        timezone: Calendar used to decide whether an appointment is "today".
    """

    planned_wait_minutes: int = PLANNED_WAIT_MINUTES
    default_slot_minutes: int = DEFAULT_SLOT_MINUTES
    timezone: tzinfo = field(default_factory=lambda: pytz.timezone(DEFAULT_TIMEZONE))

    @classmethod
    def create(
        cls,
        planned_wait_minutes: int = PLANNED_WAIT_MINUTES,
        default_slot_minutes: int = DEFAULT_SLOT_MINUTES,
        timezone_name: str = DEFAULT_TIMEZONE,
    ) -> "EstimatorConfig":
        return cls(
            planned_wait_minutes=planned_wait_minutes,
            default_slot_minutes=default_slot_minutes,
            timezone=pytz.timezone(timezone_name),
        )


DEFAULT_CONFIG = EstimatorConfig()


def round_minutes(minutes: float) -> int:
    """Round half up to a whole minute (never below zero)."""
    return max(0, int(math.floor(minutes + 0.5)))


def slot_minutes(appointment: AppointmentRef, config: EstimatorConfig = DEFAULT_CONFIG) -> float:
    """Duration of ``appointment``; falls back to the default slot when unknown or negative."""
    duration = appointment.duration_minutes()
    if duration is None or duration < 0:
        return float(config.default_slot_minutes)
    return duration


def is_trackable(target: AppointmentRef, now: datetime, config: EstimatorConfig = DEFAULT_CONFIG) -> bool:
    """Whether the queue applies: the appointment is today and the patient has arrived."""
    today = to_local(now, config.timezone).date()
    if target.local_day(config.timezone) != today:
        return False
    return target.status.is_arrived()


def eligible_appointments(target: AppointmentRef, roster: Iterable[AppointmentRef]) -> list[AppointmentRef]:
    """Roster appointments counted as ahead of ``target``."""
    return [
        appointment
        for appointment in roster
        if appointment.id != target.id
        and appointment.status.counts_toward_queue()
        and appointment.start < target.start
    ]


def estimate(
    target: AppointmentRef,
    roster: Iterable[AppointmentRef],
    encounter: EncounterRef | None,
    now: datetime,
    config: EstimatorConfig = DEFAULT_CONFIG,
) -> QueueStatus:
    """Compute the queue status of ``target`` against the practitioner's roster.

    Args:
        target: The tracked patient's appointment.
        roster: Every appointment of the same practitioner on the same day.
        encounter: Encounter linked to ``target``, or None if staff have not opened one.
        now: Current time; decides what "today" is.
        config: Estimator constants.

    Returns:
        A fresh QueueStatus.
    """
    if not is_trackable(target, now, config):
        return QueueStatus.not_applicable()

    # An encounter for another appointment tells us nothing about this patient
    if encounter is not None and encounter.appointment_id not in (None, target.id):
        encounter = None

    encounter_status = encounter.status if encounter is not None else None

    if encounter_status is EncounterStatus.IN_PROGRESS:
        return QueueStatus(position=0, estimated_wait_minutes=0, stage=QueueStage.IN_PROGRESS)

    if encounter_status is EncounterStatus.FINISHED:
        return QueueStatus(position=0, estimated_wait_minutes=0, stage=QueueStage.FINISHED)

    ahead = eligible_appointments(target, roster)
    position = len(ahead)

    if encounter_status is EncounterStatus.PLANNED:
        return QueueStatus(
            position=position,
            estimated_wait_minutes=config.planned_wait_minutes,
            stage=QueueStage.ENCOUNTER_PLANNED,
        )

    if position == 0 and encounter is None:
        return QueueStatus(
            position=0,
            estimated_wait_minutes=config.planned_wait_minutes,
            stage=QueueStage.WAITING,
        )

    wait = sum(slot_minutes(appointment, config) for appointment in ahead)
    return QueueStatus(position=position, estimated_wait_minutes=round_minutes(wait), stage=QueueStage.WAITING)
