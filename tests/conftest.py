"""
Shared pytest fixtures for all tests.

Provides appointment factories, an in-memory roster fetcher and a virtual
clock so pollers can be driven tick by tick without real sleeping.
"""

import asyncio
import os
from collections.abc import Callable
from datetime import datetime, timedelta

import pytest
import pytz

from patient_queue.domains.queue_tracking.application.ports import RosterSnapshot
from patient_queue.domains.queue_tracking.domain.entities import AppointmentRef, EncounterRef
from patient_queue.domains.queue_tracking.domain.services import EstimatorConfig
from patient_queue.domains.queue_tracking.domain.value_objects import AppointmentStatus, EncounterStatus

# Ensure test environment
os.environ["ENVIRONMENT"] = "test"

BRISBANE = pytz.timezone("Australia/Brisbane")
TODAY = datetime(2026, 10, 19).date()


def local_time(hour: int, minute: int = 0, day_offset: int = 0) -> datetime:
    """Aware datetime on TODAY (+offset) in Brisbane."""
    naive = datetime.combine(TODAY + timedelta(days=day_offset), datetime.min.time()).replace(hour=hour, minute=minute)
    return BRISBANE.localize(naive)


async def settle(rounds: int = 50) -> None:
    """Let every ready task run until the loop is quiet."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ============================================================================
# VIRTUAL CLOCK
# ============================================================================


class VirtualClock:
    """Clock + sleep pair whose time only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.now = start
        self._sleepers: list[tuple[datetime, asyncio.Future]] = []

    def __call__(self) -> datetime:
        return self.now

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + timedelta(seconds=seconds), future))
        await future

    @property
    def pending_sleeps(self) -> int:
        return sum(1 for _, future in self._sleepers if not future.done())

    async def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        remaining = []
        for deadline, future in self._sleepers:
            if future.done():
                continue
            if deadline <= self.now:
                future.set_result(None)
            else:
                remaining.append((deadline, future))
        self._sleepers = remaining
        await settle()


# ============================================================================
# IN-MEMORY ROSTER FETCHER
# ============================================================================


class FakeRosterFetcher:
    """IRosterFetcher backed by a dict, with hooks for failures and slow fetches."""

    def __init__(self) -> None:
        self.appointments: dict[str, AppointmentRef] = {}
        self.encounter: EncounterRef | None = None
        self.error: Exception | None = None
        self.lookup_error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.lookup_gate: asyncio.Event | None = None
        self.calls = 0
        self.completed = 0
        self.lookups = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def add(self, *appointments: AppointmentRef) -> None:
        for appointment in appointments:
            self.appointments[appointment.id] = appointment

    async def fetch_roster(self, practitioner_id, day, target_appointment_id) -> RosterSnapshot:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.error is not None:
                raise self.error
            self.completed += 1
            roster = tuple(a for a in self.appointments.values() if a.practitioner_id == practitioner_id)
            return RosterSnapshot(appointments=roster, encounter=self.encounter)
        finally:
            self.in_flight -= 1

    async def get_appointment(self, appointment_id: str) -> AppointmentRef | None:
        self.lookups += 1
        if self.lookup_gate is not None:
            await self.lookup_gate.wait()
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.appointments.get(appointment_id)

    async def close(self) -> None:
        self.closed = True


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def tz():
    return BRISBANE


@pytest.fixture
def now() -> datetime:
    """09:30 local on the test day."""
    return local_time(9, 30)


@pytest.fixture
def config() -> EstimatorConfig:
    return EstimatorConfig.create(planned_wait_minutes=10, default_slot_minutes=15, timezone_name="Australia/Brisbane")


@pytest.fixture
def make_appointment() -> Callable[..., AppointmentRef]:
    """Factory: ``make_appointment("a1", 9, 0, minutes=15, status="arrived")``."""

    def _make(
        appointment_id: str,
        hour: int,
        minute: int = 0,
        minutes: float | None = 15,
        status: str = "booked",
        practitioner_id: str | None = "prac-1",
        day_offset: int = 0,
    ) -> AppointmentRef:
        start = local_time(hour, minute, day_offset)
        end = start + timedelta(minutes=minutes) if minutes is not None else None
        return AppointmentRef(
            id=appointment_id,
            start=start,
            status=AppointmentStatus(status),
            end=end,
            practitioner_id=practitioner_id,
        )

    return _make


@pytest.fixture
def make_encounter() -> Callable[..., EncounterRef]:
    def _make(status: str, appointment_id: str | None = "target") -> EncounterRef:
        return EncounterRef(status=EncounterStatus(status), appointment_id=appointment_id, id=f"enc-{appointment_id}")

    return _make


@pytest.fixture
def fake_fetcher() -> FakeRosterFetcher:
    return FakeRosterFetcher()


@pytest.fixture
def virtual_clock(now) -> VirtualClock:
    return VirtualClock(now)
