# ============================================================================
# SCOPE: APPLICATION LAYER (Queue Tracking)
# Description: Shares one poller per appointment between many subscribers.
# ============================================================================
"""Queue Tracking Service.

Consumers subscribe to an appointment id and receive every QueueStatus the
appointment's poller publishes. The first subscriber creates the poller, the
last unsubscribe stops it.
"""

import asyncio
import logging
from collections.abc import Callable

from ...domain.entities import AppointmentRef, QueueStatus
from ...domain.exceptions import FetchError, MalformedDataError
from ...domain.services import DEFAULT_CONFIG, EstimatorConfig
from ..ports import IRosterFetcher
from .queue_poller import Clock, QueuePoller, QueueSnapshot, Sleep, utc_now

logger = logging.getLogger(__name__)

_CLOSED = object()


class QueueSubscription:
    """Handle returned by ``QueueTrackingService.subscribe``.

    Works as an async iterator of QueueStatus values. Only the most recent
    undelivered value is buffered, so a slow consumer skips intermediate
    updates instead of falling behind. Iteration ends after ``unsubscribe``.
    """

    def __init__(
        self,
        appointment_id: str,
        service: "QueueTrackingService",
        callback: Callable[[QueueStatus], None] | None = None,
    ):
        self.appointment_id = appointment_id
        self._service = service
        self._callback = callback
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._closed = False
        self.latest: QueueStatus | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, status: QueueStatus) -> None:
        if self._closed:
            return
        self.latest = status
        if self._callback is not None:
            self._callback(status)
        self._replace(status)

    def _replace(self, item: object) -> None:
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._replace(_CLOSED)

    async def unsubscribe(self) -> None:
        await self._service.unsubscribe(self)

    def __aiter__(self) -> "QueueSubscription":
        return self

    async def __anext__(self) -> QueueStatus:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class QueueTrackingService:
    """Registry of pollers keyed by appointment id."""

    def __init__(
        self,
        fetcher: IRosterFetcher,
        interval_seconds: float = 5.0,
        config: EstimatorConfig = DEFAULT_CONFIG,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
        target_refresh_seconds: float | None = None,
    ):
        """Initialize service.

        Args:
            fetcher: Roster read port shared by every poller.
            interval_seconds: Poll interval handed to each poller.
            config: Estimator constants.
            clock: Source of "now" (injected for tests).
            sleep: Awaitable delay (injected for tests).
            target_refresh_seconds: How often idle pollers re-read their target.
        """
        self._fetcher = fetcher
        self._interval = interval_seconds
        self._target_refresh = target_refresh_seconds
        self._config = config
        self._clock = clock
        self._sleep = sleep

        self._pollers: dict[str, QueuePoller] = {}
        self._subscriptions: dict[str, set[QueueSubscription]] = {}
        self._lock = asyncio.Lock()

    @property
    def tracked_appointments(self) -> list[str]:
        return list(self._pollers)

    def subscriber_count(self, appointment_id: str) -> int:
        return len(self._subscriptions.get(appointment_id, ()))

    async def subscribe(
        self,
        appointment_id: str,
        callback: Callable[[QueueStatus], None] | None = None,
    ) -> QueueSubscription:
        """Start receiving queue updates for an appointment.

        A subscriber joining an existing poller immediately receives the
        current value. An appointment that cannot be resolved yields a single
        NotApplicable status and an idle poller.
        """
        async with self._lock:
            subscription = QueueSubscription(appointment_id, self, callback)
            poller = self._pollers.get(appointment_id)

            if poller is None:
                target = await self._resolve_target(appointment_id)
                poller = QueuePoller(
                    appointment_id,
                    self._fetcher,
                    target=target,
                    interval_seconds=self._interval,
                    config=self._config,
                    clock=self._clock,
                    sleep=self._sleep,
                    target_refresh_seconds=self._target_refresh,
                )
                self._pollers[appointment_id] = poller
                self._subscriptions[appointment_id] = {subscription}
                poller.add_listener(subscription.deliver)
                poller.start()
                logger.info(f"Started queue tracking for appointment {appointment_id}")
            else:
                self._subscriptions[appointment_id].add(subscription)
                poller.add_listener(subscription.deliver)
                subscription.deliver(poller.status)

            return subscription

    async def unsubscribe(self, subscription: QueueSubscription) -> None:
        """Stop delivering updates to ``subscription``; stops the poller with its last subscriber."""
        async with self._lock:
            appointment_id = subscription.appointment_id
            subscribers = self._subscriptions.get(appointment_id)
            poller = self._pollers.get(appointment_id)

            subscription.close()
            if subscribers is None or subscription not in subscribers:
                return

            subscribers.discard(subscription)
            if poller is not None:
                poller.remove_listener(subscription.deliver)

            if not subscribers:
                self._subscriptions.pop(appointment_id, None)
                self._pollers.pop(appointment_id, None)
                if poller is not None:
                    await poller.stop()
                logger.info(f"Stopped queue tracking for appointment {appointment_id}")

    async def refresh_target(self, appointment_id: str) -> QueueSnapshot | None:
        """Re-read the tracked appointment and feed it to its poller.

        Returns:
            The poller snapshot after the update, or None when nothing tracks the id.
        """
        poller = self._pollers.get(appointment_id)
        if poller is None:
            return None

        target = await self._resolve_target(appointment_id)
        if target is not None or poller.target is not None:
            poller.update_target(target)
        return poller.snapshot()

    def get_status(self, appointment_id: str) -> QueueSnapshot | None:
        poller = self._pollers.get(appointment_id)
        return poller.snapshot() if poller is not None else None

    async def shutdown(self) -> None:
        """Stop every poller, end every subscription and close the fetcher."""
        async with self._lock:
            pollers = list(self._pollers.values())
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
            self._pollers.clear()
            self._subscriptions.clear()

        for subscription in subscriptions:
            subscription.close()
        await asyncio.gather(*(poller.stop() for poller in pollers))
        await self._fetcher.close()
        logger.info(f"Queue tracking service shut down ({len(pollers)} pollers stopped)")

    async def _resolve_target(self, appointment_id: str) -> AppointmentRef | None:
        try:
            return await self._fetcher.get_appointment(appointment_id)
        except FetchError as e:
            logger.warning(f"Could not load appointment {appointment_id}: {e.message}")
        except MalformedDataError as e:
            logger.warning(f"Appointment {appointment_id} is not usable: {e.message}")
        return None
