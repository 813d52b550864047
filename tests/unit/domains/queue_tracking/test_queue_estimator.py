# ============================================================================
# Tests for the pure queue estimator
# ============================================================================
"""Unit tests for estimate().

No I/O and no clock access: every test passes ``now`` explicitly.
"""

from datetime import timedelta

import pytest
import pytz

from patient_queue.domains.queue_tracking.domain.entities import AppointmentRef, QueueStatus
from patient_queue.domains.queue_tracking.domain.services import (
    EstimatorConfig,
    eligible_appointments,
    estimate,
    round_minutes,
    slot_minutes,
)
from patient_queue.domains.queue_tracking.domain.value_objects import AppointmentStatus, QueueStage


@pytest.fixture
def target(make_appointment) -> AppointmentRef:
    return make_appointment("target", 10, 0, status="arrived")


class TestPreconditions:
    """Tests for the NotApplicable short-circuits."""

    def test_appointment_on_another_day_is_not_applicable(self, make_appointment, now, config) -> None:
        """Should ignore appointments that are not today."""
        yesterday = make_appointment("target", 10, 0, status="arrived", day_offset=-1)
        status = estimate(yesterday, [], None, now, config)
        assert status == QueueStatus.not_applicable()

    def test_booked_target_is_not_applicable_even_with_busy_roster(self, make_appointment, now, config) -> None:
        """Should return NotApplicable when the patient has not arrived."""
        booked = make_appointment("target", 11, 0, status="booked")
        roster = [make_appointment(f"a{i}", 9, i * 5, status="arrived") for i in range(6)]

        status = estimate(booked, roster, None, now, config)

        assert status.stage is QueueStage.NOT_APPLICABLE
        assert status.position == 0
        assert status.estimated_wait_minutes == 0

    @pytest.mark.parametrize("appointment_status", ["fulfilled", "cancelled", "noshow", "checked-in", "pending"])
    def test_any_status_other_than_arrived_is_not_applicable(
        self, make_appointment, now, config, appointment_status
    ) -> None:
        """Should only track arrived patients."""
        target = make_appointment("target", 10, 0, status=appointment_status)
        assert estimate(target, [], None, now, config).stage is QueueStage.NOT_APPLICABLE

    def test_today_is_decided_in_the_configured_timezone(self, make_appointment, now, config) -> None:
        """Should compare calendar days in local time, not UTC."""
        # 09:30 Brisbane is 23:30 UTC on the previous day
        utc_now = now.astimezone(pytz.utc)
        assert utc_now.date() != now.date()
        early = make_appointment("target", 8, 0, status="arrived")
        assert estimate(early, [], None, utc_now, config).stage is QueueStage.WAITING


class TestEncounterStatus:
    """Tests for the encounter-driven branches."""

    def test_in_progress_encounter_means_no_wait(self, target, make_appointment, make_encounter, now, config) -> None:
        """Should report InProgress with zero position for any roster."""
        roster = [make_appointment("a1", 9, 0), make_appointment("a2", 9, 15)]
        status = estimate(target, roster, make_encounter("in-progress"), now, config)
        assert status == QueueStatus(position=0, estimated_wait_minutes=0, stage=QueueStage.IN_PROGRESS)

    def test_finished_encounter(self, target, make_appointment, make_encounter, now, config) -> None:
        """Should report Finished."""
        roster = [make_appointment("a1", 9, 0)]
        status = estimate(target, roster, make_encounter("finished"), now, config)
        assert status.stage is QueueStage.FINISHED
        assert status.stage.is_terminal()
        assert status.position == 0

    def test_planned_encounter_overrides_duration_sum(self, target, make_appointment, make_encounter, now, config) -> None:
        """Should use the planned wait and keep the position."""
        roster = [make_appointment("a1", 9, 0, minutes=None)]
        status = estimate(target, roster, make_encounter("planned"), now, config)
        assert status == QueueStatus(position=1, estimated_wait_minutes=10, stage=QueueStage.ENCOUNTER_PLANNED)

    def test_planned_encounter_with_many_ahead(self, target, make_appointment, make_encounter, now, config) -> None:
        """Should report the planned wait regardless of position."""
        roster = [make_appointment(f"a{i}", 8, i * 10, minutes=30) for i in range(4)]
        status = estimate(target, roster, make_encounter("planned"), now, config)
        assert status.position == 4
        assert status.estimated_wait_minutes == 10

    def test_encounter_of_another_appointment_is_ignored(self, target, make_encounter, now, config) -> None:
        """Should behave as if there were no encounter."""
        status = estimate(target, [], make_encounter("in-progress", appointment_id="someone-else"), now, config)
        assert status == QueueStatus(position=0, estimated_wait_minutes=10, stage=QueueStage.WAITING)

    def test_other_encounter_status_falls_through_to_duration_sum(
        self, target, make_appointment, make_encounter, now, config
    ) -> None:
        """Should sum durations when the encounter is neither planned, in progress nor finished."""
        roster = [make_appointment("a1", 9, 0, minutes=20)]
        status = estimate(target, roster, make_encounter("triaged"), now, config)
        assert status == QueueStatus(position=1, estimated_wait_minutes=20, stage=QueueStage.WAITING)

    def test_nobody_ahead_with_open_encounter_has_zero_wait(self, target, make_encounter, now, config) -> None:
        """Should not apply the planned wait when an encounter exists."""
        status = estimate(target, [], make_encounter("arrived"), now, config)
        assert status == QueueStatus(position=0, estimated_wait_minutes=0, stage=QueueStage.WAITING)


class TestScenarios:
    """Reference scenarios."""

    def test_empty_roster_no_encounter(self, target, now, config) -> None:
        """Scenario A: patient is next, planned wait applies."""
        status = estimate(target, [], None, now, config)
        assert status == QueueStatus(position=0, estimated_wait_minutes=10, stage=QueueStage.WAITING)

    def test_two_ahead_with_known_durations(self, target, make_appointment, now, config) -> None:
        """Scenario B: wait is the sum of durations ahead."""
        roster = [make_appointment("a1", 9, 0, minutes=20), make_appointment("a2", 9, 20, minutes=15), target]
        status = estimate(target, roster, None, now, config)
        assert status.position == 2
        assert status.estimated_wait_minutes == 35
        assert status.stage is QueueStage.WAITING

    def test_missing_end_with_planned_encounter(self, target, make_appointment, make_encounter, now, config) -> None:
        """Scenario C: planned encounter overrides the fallback duration."""
        roster = [make_appointment("a1", 9, 0, minutes=None)]
        status = estimate(target, roster, make_encounter("planned"), now, config)
        assert status.position == 1
        assert status.estimated_wait_minutes == 10

    def test_booked_target(self, make_appointment, now, config) -> None:
        """Scenario D: not yet arrived."""
        target = make_appointment("target", 10, 0, status="booked")
        roster = [make_appointment("a1", 9, 0, status="arrived")]
        assert estimate(target, roster, None, now, config).stage is QueueStage.NOT_APPLICABLE


class TestEligibleSet:
    """Tests for which roster entries count as ahead."""

    def test_cancelled_and_fulfilled_are_not_ahead(self, target, make_appointment, now, config) -> None:
        """Should not count cancelled or fulfilled appointments."""
        roster = [
            make_appointment("a1", 9, 0),
            make_appointment("gone", 9, 15, status="cancelled"),
            make_appointment("done", 9, 30, status="fulfilled"),
        ]
        status = estimate(target, roster, None, now, config)
        assert status.position == 1
        assert status.estimated_wait_minutes == 15

    def test_adding_cancelled_appointment_never_changes_position(self, target, make_appointment, now, config) -> None:
        """Should be idempotent under cancellation noise."""
        roster = [make_appointment("a1", 9, 0), make_appointment("a2", 9, 15)]
        before = estimate(target, roster, None, now, config)
        after = estimate(target, [*roster, make_appointment("x", 8, 0, status="cancelled")], None, now, config)
        assert before == after

    def test_later_and_simultaneous_appointments_are_not_ahead(self, target, make_appointment, now, config) -> None:
        """Should only count strictly earlier starts."""
        roster = [make_appointment("same", 10, 0), make_appointment("later", 10, 15)]
        assert eligible_appointments(target, roster) == []

    def test_target_itself_is_excluded(self, target, now, config) -> None:
        """Should never count the target."""
        assert estimate(target, [target], None, now, config).position == 0

    def test_noshow_and_booked_still_count(self, target, make_appointment) -> None:
        """Should count every status other than cancelled or fulfilled."""
        roster = [make_appointment("a1", 9, 0, status="noshow"), make_appointment("a2", 9, 15, status="booked")]
        assert len(eligible_appointments(target, roster)) == 2


class TestDurations:
    """Tests for duration fallback and rounding."""

    def test_missing_end_uses_default_slot(self, target, make_appointment, now, config) -> None:
        """Should fall back to the default slot length."""
        roster = [make_appointment("a1", 9, 0, minutes=None), make_appointment("a2", 9, 15, minutes=20)]
        assert estimate(target, roster, None, now, config).estimated_wait_minutes == 35

    def test_negative_duration_uses_default_slot(self, make_appointment, config) -> None:
        """Should clamp malformed durations to the fallback."""
        broken = make_appointment("a1", 9, 0, minutes=-30)
        assert slot_minutes(broken, config) == 15

    def test_wait_is_rounded_half_up(self, target, make_appointment, now, config) -> None:
        """Should round to the nearest whole minute."""
        start = make_appointment("a1", 9, 0).start
        odd = AppointmentRef(
            id="a1", start=start, end=start + timedelta(minutes=7, seconds=30), status=AppointmentStatus.BOOKED
        )
        assert estimate(target, [odd], None, now, config).estimated_wait_minutes == 8

    @pytest.mark.parametrize(("minutes", "expected"), [(0.4, 0), (0.5, 1), (14.49, 14), (14.5, 15), (-3, 0)])
    def test_round_minutes(self, minutes, expected) -> None:
        """Should round half up and never go below zero."""
        assert round_minutes(minutes) == expected

    def test_custom_constants(self, target, make_appointment, now) -> None:
        """Should honour configured planned wait and slot length."""
        custom = EstimatorConfig.create(planned_wait_minutes=5, default_slot_minutes=20)
        assert estimate(target, [], None, now, custom).estimated_wait_minutes == 5
        roster = [make_appointment("a1", 9, 0, minutes=None)]
        assert estimate(target, roster, None, now, custom).estimated_wait_minutes == 20


class TestDeterminism:
    """Tests for referential transparency."""

    def test_same_inputs_same_output(self, target, make_appointment, make_encounter, now, config) -> None:
        """Should return equal values for equal inputs."""
        roster = [make_appointment("a1", 9, 0, minutes=20), make_appointment("a2", 9, 30, minutes=None)]
        first = estimate(target, roster, None, now, config)
        second = estimate(target, list(roster), None, now, config)
        assert first == second

    def test_queue_status_rejects_negative_values(self) -> None:
        """Should refuse to build an invalid status."""
        with pytest.raises(ValueError):
            QueueStatus(position=-1, estimated_wait_minutes=0, stage=QueueStage.WAITING)
