# ============================================================================
# Tests for QueueTrackingService and QueueSubscription
# ============================================================================
"""Unit tests for the subscription hub."""

import asyncio
from unittest.mock import MagicMock

import pytest

from patient_queue.domains.queue_tracking.application.services import (
    PollerState,
    QueueSubscription,
    QueueTrackingService,
)
from patient_queue.domains.queue_tracking.domain.entities import QueueStatus
from patient_queue.domains.queue_tracking.domain.exceptions import FetchError, MalformedDataError
from patient_queue.domains.queue_tracking.domain.value_objects import QueueStage

INTERVAL = 5.0


@pytest.fixture
def store(fake_fetcher, make_appointment):
    fake_fetcher.add(
        make_appointment("a1", 9, 0, minutes=20),
        make_appointment("target", 10, 0, status="arrived"),
        make_appointment("later", 11, 0, status="booked"),
    )
    return fake_fetcher


@pytest.fixture
def service(store, virtual_clock, config) -> QueueTrackingService:
    return QueueTrackingService(
        store,
        interval_seconds=INTERVAL,
        config=config,
        clock=virtual_clock,
        sleep=virtual_clock.sleep,
    )


class TestSubscribe:
    """Tests for subscribe."""

    @pytest.mark.asyncio
    async def test_first_subscriber_starts_poller(self, service, store, virtual_clock) -> None:
        received: list[QueueStatus] = []
        subscription = await service.subscribe("target", callback=received.append)
        await virtual_clock.advance(0)

        assert isinstance(subscription, QueueSubscription)
        assert service.tracked_appointments == ["target"]
        assert received == [QueueStatus(position=1, estimated_wait_minutes=20, stage=QueueStage.WAITING)]
        assert service.get_status("target").poller_state is PollerState.ACTIVE
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_pollers_are_shared_per_appointment(self, service, store, virtual_clock) -> None:
        """Should run one fetch per tick however many subscribers there are."""
        await service.subscribe("target")
        await service.subscribe("target")
        await virtual_clock.advance(0)
        await virtual_clock.advance(INTERVAL)

        assert service.subscriber_count("target") == 2
        assert store.calls == 2
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_late_subscriber_gets_current_value_immediately(self, service, virtual_clock) -> None:
        await service.subscribe("target")
        await virtual_clock.advance(0)

        callback = MagicMock()
        await service.subscribe("target", callback=callback)

        callback.assert_called_once_with(QueueStatus(position=1, estimated_wait_minutes=20, stage=QueueStage.WAITING))
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_not_arrived_gets_not_applicable(self, service, store) -> None:
        subscription = await service.subscribe("later")
        assert subscription.latest == QueueStatus.not_applicable()
        assert service.get_status("later").poller_state is PollerState.IDLE
        assert store.calls == 0
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_unknown_appointment_gets_not_applicable(self, service) -> None:
        subscription = await service.subscribe("missing")
        assert subscription.latest == QueueStatus.not_applicable()
        await service.shutdown()

    @pytest.mark.parametrize("error", [FetchError("store down"), MalformedDataError("no start", "Appointment", "x")])
    @pytest.mark.asyncio
    async def test_lookup_failure_gets_not_applicable(self, service, store, error) -> None:
        """Should never surface lookup errors to the subscriber."""
        store.lookup_error = error
        subscription = await service.subscribe("target")
        assert subscription.latest == QueueStatus.not_applicable()
        await service.shutdown()


class TestUnsubscribe:
    """Tests for unsubscribe and reference counting."""

    @pytest.mark.asyncio
    async def test_last_unsubscribe_stops_poller(self, service, store, virtual_clock) -> None:
        first = await service.subscribe("target")
        second = await service.subscribe("target")
        await virtual_clock.advance(0)

        await first.unsubscribe()
        assert service.get_status("target") is not None

        await second.unsubscribe()
        assert service.get_status("target") is None

        calls = store.calls
        for _ in range(5):
            await virtual_clock.advance(INTERVAL)
        assert store.calls == calls

    @pytest.mark.asyncio
    async def test_no_delivery_after_unsubscribe(self, service, virtual_clock) -> None:
        """Should not call back an unsubscribed consumer even while others stay."""
        callback = MagicMock()
        keeper = await service.subscribe("target")
        leaver = await service.subscribe("target", callback=callback)
        await virtual_clock.advance(0)
        callback.reset_mock()

        await leaver.unsubscribe()
        for _ in range(3):
            await virtual_clock.advance(INTERVAL)

        callback.assert_not_called()
        assert keeper.closed is False
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_is_harmless(self, service) -> None:
        subscription = await service.subscribe("target")
        await subscription.unsubscribe()
        await subscription.unsubscribe()
        assert subscription.closed is True


class TestAsyncIteration:
    """Tests for consuming a subscription with ``async for``."""

    @pytest.mark.asyncio
    async def test_iterates_until_unsubscribed(self, service, virtual_clock) -> None:
        subscription = await service.subscribe("target")
        received: list[QueueStatus] = []

        async def consume() -> None:
            async for status in subscription:
                received.append(status)

        consumer = asyncio.create_task(consume())
        await virtual_clock.advance(0)
        await virtual_clock.advance(INTERVAL)
        await subscription.unsubscribe()
        await asyncio.wait_for(consumer, timeout=1)

        assert len(received) == 2
        assert all(status.position == 1 for status in received)

    @pytest.mark.asyncio
    async def test_slow_consumer_only_sees_latest(self, service, store, virtual_clock, make_appointment) -> None:
        subscription = await service.subscribe("target")
        await virtual_clock.advance(0)

        store.add(make_appointment("walk-in", 9, 30, minutes=10))
        await virtual_clock.advance(INTERVAL)

        latest = await subscription.__anext__()
        assert latest.position == 2
        await service.shutdown()


class TestRefreshAndShutdown:
    """Tests for refresh_target, get_status and shutdown."""

    @pytest.mark.asyncio
    async def test_refresh_picks_up_check_in(self, service, store, virtual_clock, make_appointment) -> None:
        """Should move an idle poller to active once the patient arrives."""
        subscription = await service.subscribe("later")
        assert service.get_status("later").poller_state is PollerState.IDLE

        store.add(make_appointment("later", 11, 0, status="arrived"))
        snapshot = await service.refresh_target("later")
        await virtual_clock.advance(0)

        assert snapshot.poller_state is PollerState.ACTIVE
        assert subscription.latest.stage is QueueStage.WAITING
        assert subscription.latest.position == 2
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_idle_poller_picks_up_check_in_on_its_own(self, store, virtual_clock, config, make_appointment) -> None:
        """Should start delivering queue data after check-in without an explicit refresh."""
        service = QueueTrackingService(
            store,
            interval_seconds=INTERVAL,
            config=config,
            clock=virtual_clock,
            sleep=virtual_clock.sleep,
            target_refresh_seconds=10.0,
        )
        subscription = await service.subscribe("later")
        await virtual_clock.advance(0)
        assert service.get_status("later").poller_state is PollerState.IDLE
        assert subscription.latest == QueueStatus.not_applicable()

        store.add(make_appointment("later", 11, 0, status="arrived"))
        await virtual_clock.advance(10.0)

        assert service.get_status("later").poller_state is PollerState.ACTIVE
        assert subscription.latest.stage is QueueStage.WAITING
        assert subscription.latest.position == 2
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_refresh_untracked_returns_none(self, service) -> None:
        assert await service.refresh_target("target") is None

    @pytest.mark.asyncio
    async def test_shutdown_stops_everything(self, service, store, virtual_clock) -> None:
        first = await service.subscribe("target")
        second = await service.subscribe("later")
        await virtual_clock.advance(0)

        await service.shutdown()

        assert first.closed and second.closed
        assert service.tracked_appointments == []
        assert store.closed is True
        calls = store.calls
        await virtual_clock.advance(INTERVAL * 5)
        assert store.calls == calls
