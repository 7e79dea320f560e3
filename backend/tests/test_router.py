"""
Tests for event routing over room membership.
"""
import pytest

from relay.realtime.identity import Identity
from relay.realtime.registry import MembershipRegistry, Connection
from relay.realtime.router import EventRouter

from tests.fakes import FakeEmitter, RecordingSink


class TestEventRouter:
    """Tests for EventRouter delivery primitives."""

    def setup_method(self):
        self.registry = MembershipRegistry()
        self.emitter = FakeEmitter()
        self.sink = RecordingSink()
        self.router = EventRouter(self.registry, self.emitter, sink=self.sink)

        self.registry.add_connection(Connection("driver", Identity(7, "driver"), trip_id="42"))
        self.registry.add_connection(Connection("rider", Identity(12, "user")))
        self.registry.add_connection(Connection("other", Identity(13, "user")))
        self.registry.join("driver", "trip:42")
        self.registry.join("rider", "trip:42")

    @pytest.mark.anyio
    async def test_emit_to_room_reaches_members_only(self):
        count = await self.router.emit_to_room("trip:42", "ping", {"x": 1})

        assert count == 2
        assert self.emitter.received("driver", "ping") == [{"x": 1}]
        assert self.emitter.received("rider", "ping") == [{"x": 1}]
        assert self.emitter.received("other") == []

    @pytest.mark.anyio
    async def test_emit_to_empty_room_is_noop(self):
        assert await self.router.emit_to_room("trip:nobody", "ping", {}) == 0
        assert self.emitter.sent == []

    @pytest.mark.anyio
    async def test_emit_sees_join_completed_before_call(self):
        self.registry.join("other", "trip:42")
        await self.router.emit_to_room("trip:42", "ping", None)
        assert self.emitter.received("other", "ping") == [None]

    @pytest.mark.anyio
    async def test_double_join_delivers_once(self):
        self.registry.join("rider", "trip:42")
        await self.router.emit_to_room("trip:42", "ping", 1)
        assert self.emitter.received("rider", "ping") == [1]

    @pytest.mark.anyio
    async def test_purged_connection_never_reached(self):
        self.registry.purge("rider")
        await self.router.emit_to_room("trip:42", "ping", 1)
        assert self.emitter.received("rider") == []
        assert self.emitter.received("driver", "ping") == [1]

    @pytest.mark.anyio
    async def test_broadcast_all(self):
        count = await self.router.broadcast_all("maintenance", {"at": "02:00"})

        assert count == 3
        for sid in ("driver", "rider", "other"):
            assert self.emitter.received(sid, "maintenance") == [{"at": "02:00"}]

    @pytest.mark.anyio
    async def test_relay_excluding_sender(self):
        count = await self.router.relay_excluding_sender("driver", "trip:42", "note", "hi")

        assert count == 1
        assert self.emitter.received("rider", "note") == ["hi"]
        assert self.emitter.received("driver") == []

    @pytest.mark.anyio
    async def test_send_to(self):
        await self.router.send_to("other", "direct", {"a": 1})
        assert self.emitter.sent == [("other", "direct", {"a": 1})]


class TestDriverLocation:
    """Tests for driver:location relaying."""

    def setup_method(self):
        self.registry = MembershipRegistry()
        self.emitter = FakeEmitter()
        self.sink = RecordingSink()
        self.router = EventRouter(self.registry, self.emitter, sink=self.sink)

        self.registry.add_connection(Connection("A", Identity(7, "driver"), trip_id="42"))
        self.registry.add_connection(Connection("B", Identity(12, "user")))
        self.registry.join("A", "trip:42")
        self.registry.join("B", "trip:42")

    @pytest.mark.anyio
    async def test_explicit_trip_id(self):
        room = await self.router.route_driver_location("A", {"lat": 1, "lng": 2, "trip_id": "42"})

        assert room == "trip:42"
        [payload] = self.emitter.received("B", "driver:location")
        assert payload["lat"] == 1
        assert payload["lng"] == 2
        assert payload["trip_id"] == "42"
        assert payload["driver_id"] == 7
        assert isinstance(payload["timestamp"], int)
        assert self.emitter.received("A") == []

    @pytest.mark.anyio
    async def test_falls_back_to_admission_trip(self):
        room = await self.router.route_driver_location("A", {"lat": 3, "lng": 4})

        assert room == "trip:42"
        [payload] = self.emitter.received("B", "driver:location")
        assert payload["lat"] == 3
        assert payload["driver_id"] == 7

    @pytest.mark.anyio
    async def test_original_payload_not_mutated(self):
        original = {"lat": 1, "lng": 2}
        await self.router.route_driver_location("A", original)
        assert original == {"lat": 1, "lng": 2}

    @pytest.mark.anyio
    async def test_no_trip_drops_update(self):
        room = await self.router.route_driver_location("B", {"lat": 1, "lng": 2})

        assert room is None
        assert self.emitter.sent == []
        assert any("Dropped location" in message for message in self.sink.messages())
