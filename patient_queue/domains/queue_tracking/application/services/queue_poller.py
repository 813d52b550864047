# ============================================================================
# SCOPE: APPLICATION LAYER (Queue Tracking)
# Description: Periodic fetch + estimate loop for one tracked appointment.
# ============================================================================
"""Queue Poller.

Owns the refresh loop of one target appointment::

    IDLE ──(arrived, today)──► ACTIVE ──(preconditions lost)──► IDLE
      └──────────────(stop)──────────┴──────────(stop)─────────► STOPPED

Entering ACTIVE runs one tick immediately; the next tick is scheduled one
interval after the previous tick *completes*, so ticks never overlap. A tick
that is in flight when the poller stops or goes idle is allowed to finish,
but its result is discarded, and the next loop only starts once it has.

While IDLE the poller can re-read its target on a slower schedule, so a
patient who subscribed before checking in starts seeing queue data once the
appointment turns `arrived`.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum

from patient_queue.core.shared.logger import get_service_logger

from ...domain.entities import AppointmentRef, QueueStatus
from ...domain.exceptions import FetchError, MalformedDataError
from ...domain.services import DEFAULT_CONFIG, EstimatorConfig, estimate, is_trackable
from ...domain.value_objects import QueueStage
from ..ports import IRosterFetcher

logger = logging.getLogger(__name__)

StatusListener = Callable[[QueueStatus], None]
Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[None]]


def utc_now() -> datetime:
    return datetime.now(UTC)


class PollerState(str, Enum):
    """Poller lifecycle states."""

    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


@dataclass(frozen=True)
class QueueSnapshot:
    """What a consumer sees: the current status plus freshness information."""

    appointment_id: str
    status: QueueStatus
    poller_state: PollerState
    updated_at: datetime | None
    stale: bool


class QueuePoller:
    """Keeps the QueueStatus of one appointment up to date.

    The poller is the only writer of its status; listeners receive the
    immutable value on every publication.
    """

    def __init__(
        self,
        appointment_id: str,
        fetcher: IRosterFetcher,
        target: AppointmentRef | None = None,
        interval_seconds: float = 5.0,
        config: EstimatorConfig = DEFAULT_CONFIG,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
        target_refresh_seconds: float | None = None,
    ):
        """Initialize poller.

        Args:
            appointment_id: Id of the tracked appointment.
            fetcher: Roster read port.
            target: Current snapshot of the tracked appointment, if known.
            interval_seconds: Delay between the end of a tick and the next one.
            config: Estimator constants.
            clock: Source of "now" (injected for tests).
            sleep: Awaitable delay (injected for tests).
            target_refresh_seconds: While idle, how often the target is re-read.
                None disables re-reading.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if target_refresh_seconds is not None and target_refresh_seconds <= 0:
            raise ValueError("target_refresh_seconds must be positive")

        self.appointment_id = appointment_id
        self._fetcher = fetcher
        self._target = target
        self._interval = interval_seconds
        self._target_refresh = target_refresh_seconds
        self._config = config
        self._clock = clock
        self._sleep = sleep

        self._state = PollerState.IDLE
        self._status = QueueStatus.not_applicable()
        self._listeners: list[StatusListener] = []

        # Bumped on every transition; ticks of an older generation are discarded
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._sleeping_task: asyncio.Task[None] | None = None

        self._last_updated_at: datetime | None = None
        self._last_error: str | None = None
        self._log = get_service_logger("queue_poller").with_context(appointment_id=appointment_id)

    # =========================================================================
    # Read side
    # =========================================================================

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def status(self) -> QueueStatus:
        return self._status

    @property
    def target(self) -> AppointmentRef | None:
        return self._target

    @property
    def last_updated_at(self) -> datetime | None:
        return self._last_updated_at

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(
            appointment_id=self.appointment_id,
            status=self._status,
            poller_state=self._state,
            updated_at=self._last_updated_at,
            stale=self._last_error is not None,
        )

    def add_listener(self, listener: StatusListener) -> None:
        if self._state is PollerState.STOPPED:
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Evaluate the target and start polling if the queue applies.

        Must be called from a running event loop.
        """
        if self._state is PollerState.STOPPED:
            logger.warning(f"Poller for {self.appointment_id} is stopped and cannot be restarted")
            return
        self._evaluate(target_changed=True)

    def update_target(self, target: AppointmentRef | None) -> None:
        """Replace the tracked appointment snapshot.

        Moves IDLE -> ACTIVE when the new snapshot is trackable, and
        ACTIVE -> IDLE when identity, start or status changes so that it no
        longer is.
        """
        if self._state is PollerState.STOPPED:
            return

        previous = self._target
        changed = (
            previous is None
            or target is None
            or not target.is_same_slot(previous)
            or target.practitioner_id != previous.practitioner_id
        )
        if target is not None and target.id != self.appointment_id:
            self._log.info(f"Tracked appointment changed to {target.id}")
            self.appointment_id = target.id
            self._log = self._log.with_context(appointment_id=target.id)

        self._target = target
        if changed or self._state is PollerState.IDLE:
            self._evaluate(target_changed=changed)

    async def stop(self) -> None:
        """Stop polling for good. No publication happens after this returns."""
        if self._state is PollerState.STOPPED:
            return

        self._state = PollerState.STOPPED
        self._generation += 1
        self._listeners.clear()

        task = self._cancel_sleep()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._log.info("Queue poller stopped")

    # =========================================================================
    # Transitions
    # =========================================================================

    def _can_track(self, target: AppointmentRef | None) -> bool:
        if target is None or not target.practitioner_id:
            return False
        return is_trackable(target, self._clock(), self._config)

    def _evaluate(self, target_changed: bool) -> None:
        if not self._can_track(self._target):
            self._go_idle()
        elif self._state is not PollerState.ACTIVE or target_changed:
            self._go_active()

    def _go_active(self) -> None:
        self._cancel_sleep()
        self._generation += 1
        self._state = PollerState.ACTIVE
        self._spawn(self._run, "queue-poller")
        self._log.info(f"Queue poller active (interval={self._interval}s)")

    def _go_idle(self) -> None:
        was_active = self._state is PollerState.ACTIVE
        self._cancel_sleep()
        self._generation += 1
        self._state = PollerState.IDLE
        if self._target_refresh is not None:
            self._spawn(self._watch_target, "queue-target-watch")
        if was_active:
            self._log.info("Queue poller idle: appointment no longer eligible for queue tracking")
        self._publish(QueueStatus.not_applicable())

    def _spawn(self, loop: Callable[[int, asyncio.Task[None] | None], Awaitable[None]], name: str) -> None:
        """Start ``loop`` for the current generation behind the previous loop task."""
        previous_task = self._task if self._task is not None and not self._task.done() else None
        self._task = asyncio.create_task(
            loop(self._generation, previous_task),
            name=f"{name}-{self.appointment_id}",
        )

    def _cancel_sleep(self) -> asyncio.Task[None] | None:
        """Cancel the loop task waiting between ticks. A task with a fetch in flight is left alone."""
        task, self._sleeping_task = self._sleeping_task, None
        if task is None or task.done():
            return None
        task.cancel()
        return task

    # =========================================================================
    # Loops
    # =========================================================================

    def _is_current(self, generation: int) -> bool:
        return self._state is PollerState.ACTIVE and generation == self._generation

    def _is_watching(self, generation: int) -> bool:
        return self._state is PollerState.IDLE and generation == self._generation

    async def _pause(self, seconds: float) -> None:
        task = asyncio.current_task()
        self._sleeping_task = task
        try:
            await self._sleep(seconds)
        finally:
            if self._sleeping_task is task:
                self._sleeping_task = None

    async def _run(self, generation: int, previous_task: asyncio.Task[None] | None) -> None:
        if previous_task is not None:
            # Loop tasks form a chain, so at most one fetch is outstanding
            await asyncio.wait({previous_task})

        while self._is_current(generation):
            await self._tick(generation)
            if not self._is_current(generation):
                break
            await self._pause(self._interval)

    async def _watch_target(self, generation: int, previous_task: asyncio.Task[None] | None) -> None:
        """While idle, re-read the target so a later check-in activates the poller."""
        if previous_task is not None:
            await asyncio.wait({previous_task})

        while self._is_watching(generation):
            await self._pause(self._target_refresh)
            if not self._is_watching(generation):
                break

            try:
                target = await self._fetcher.get_appointment(self.appointment_id)
            except (FetchError, MalformedDataError) as e:
                self._log.warning(f"Could not re-read tracked appointment: {e.message}")
                continue
            except Exception as e:
                self._log.error(f"Unexpected error re-reading tracked appointment: {e}", exc_info=True)
                continue

            if not self._is_watching(generation) or target is None:
                continue
            if target == self._target and not self._can_track(target):
                continue
            self.update_target(target)

    async def _tick(self, generation: int) -> None:
        target = self._target
        if target is None or not target.practitioner_id:
            return

        try:
            snapshot = await self._fetcher.fetch_roster(
                target.practitioner_id,
                target.local_day(self._config.timezone),
                target.id,
            )
        except FetchError as e:
            if self._is_current(generation):
                self._last_error = e.message
                self._log.warning(f"Roster fetch failed, keeping previous status: {e.message}")
            return
        except Exception as e:
            if self._is_current(generation):
                self._last_error = str(e)
                self._log.error(f"Unexpected error during queue tick: {e}", exc_info=True)
            return

        if not self._is_current(generation):
            self._log.debug("Discarding result of a tick that finished after a transition")
            return

        fresh = snapshot.find(target.id)
        if fresh is not None and not fresh.is_same_slot(target):
            self._log.info(f"Appointment changed in roster (status={fresh.status.value}, start={fresh.start.isoformat()})")
            if fresh.practitioner_id is None:
                fresh = replace(fresh, practitioner_id=target.practitioner_id)
            self._target = fresh

        now = self._clock()
        try:
            status = estimate(self._target, snapshot.appointments, snapshot.encounter, now, self._config)
        except Exception as e:
            self._last_error = str(e)
            self._log.error(f"Could not estimate queue from roster, keeping previous status: {e}", exc_info=True)
            return
        self._last_updated_at = now
        self._last_error = None

        if status.stage is QueueStage.NOT_APPLICABLE:
            self._go_idle()
            return

        self._publish(status)

    def _publish(self, status: QueueStatus) -> None:
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                self._log.error(f"Queue status listener failed: {e}", exc_info=True)
