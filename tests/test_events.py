"""Unit tests for event streaming."""

import asyncio
import json

import pytest

from events import EventBus, EventType, ReconcileEvent

# ==================== EventType tests ====================


class TestEventType:
    """Tests for the EventType enum."""

    def test_values(self):
        assert EventType.CREATED.value == "CREATED"
        assert EventType.UPDATED.value == "UPDATED"
        assert EventType.DELETED.value == "DELETED"
        assert EventType.RECONCILED.value == "RECONCILED"
        assert EventType.FAILED.value == "FAILED"

    def test_all_members(self):
        assert len(EventType) == 5


# ==================== ReconcileEvent tests ====================


class TestReconcileEvent:
    """Tests for the ReconcileEvent dataclass."""

    @pytest.fixture
    def sample_event(self):
        return ReconcileEvent(
            event_type=EventType.CREATED,
            namespace="default",
            name="web",
            endpoint_service_id="es-1",
            message="created",
            timestamp="2024-01-15T10:30:00+00:00",
        )

    def test_to_sse_format(self, sample_event):
        sse = sample_event.to_sse()
        lines = sse.split("\n")
        assert lines[0] == "event: CREATED"
        assert lines[1].startswith("data: ")
        assert sse.endswith("\n\n")

    def test_to_sse_json_valid(self, sample_event):
        data_line = sample_event.to_sse().split("\n")[1]
        parsed = json.loads(data_line[len("data: ") :])
        assert parsed == {
            "event_type": "CREATED",
            "namespace": "default",
            "name": "web",
            "endpoint_service_id": "es-1",
            "message": "created",
            "timestamp": "2024-01-15T10:30:00+00:00",
        }

    def test_create_splits_key(self):
        event = ReconcileEvent.create(EventType.FAILED, "kube-system/dns", message="x")
        assert event.namespace == "kube-system"
        assert event.name == "dns"
        assert event.endpoint_service_id is None
        assert event.message == "x"
        assert event.timestamp


# ==================== EventBus tests ====================


@pytest.mark.asyncio
class TestEventBus:
    """Tests for the EventBus."""

    @pytest.fixture
    def bus(self):
        return EventBus(queue_size=1)

    def make_event(self, event_type=EventType.RECONCILED, name="web"):
        return ReconcileEvent.create(event_type, f"default/{name}")

    async def attach(self, bus):
        """Start a listener and wait until it is registered on the bus."""
        listener = bus.listen()
        pending = asyncio.ensure_future(listener.__anext__())
        await asyncio.sleep(0)
        return listener, pending

    async def test_publish_without_listeners(self, bus):
        await bus.publish(self.make_event())
        assert bus._queues == set()

    async def test_listener_receives_event(self, bus):
        listener, pending = await self.attach(bus)
        await bus.publish(self.make_event(name="a"))

        event = await asyncio.wait_for(pending, timeout=1)

        assert event.name == "a"
        await listener.aclose()

    async def test_every_listener_receives_event(self, bus):
        first, first_pending = await self.attach(bus)
        second, second_pending = await self.attach(bus)
        await bus.publish(self.make_event(EventType.CREATED))

        events = await asyncio.wait_for(
            asyncio.gather(first_pending, second_pending), timeout=1
        )

        assert [e.event_type for e in events] == [EventType.CREATED] * 2
        await first.aclose()
        await second.aclose()

    async def test_full_queue_drops_events(self, bus, caplog):
        listener, pending = await self.attach(bus)
        await bus.publish(self.make_event(name="a"))
        await bus.publish(self.make_event(name="b"))

        event = await asyncio.wait_for(pending, timeout=1)

        assert event.name == "a"
        (queue,) = bus._queues
        assert queue.empty()
        assert "Dropped RECONCILED event for default/b" in caplog.text
        await listener.aclose()

    async def test_close_detaches_listener(self, bus):
        listener, pending = await self.attach(bus)
        await bus.publish(self.make_event())
        await asyncio.wait_for(pending, timeout=1)
        assert len(bus._queues) == 1

        await listener.aclose()

        assert bus._queues == set()

    async def test_cancel_detaches_listener(self, bus):
        _, pending = await self.attach(bus)

        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert bus._queues == set()
