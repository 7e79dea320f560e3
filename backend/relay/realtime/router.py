"""
Event routing over the membership registry.

Recipients are resolved from a registry snapshot taken before the first
send, so joins, leaves and purges racing with a delivery never produce a
partially updated recipient set.
"""
import time
from typing import Any, Iterable, Optional

from relay.realtime.broadcaster import Emitter, LogSink, NullLogSink
from relay.realtime.registry import MembershipRegistry, trip_room

DRIVER_LOCATION = "driver:location"


def now_ms() -> int:
    return int(time.time() * 1000)


class EventRouter:
    def __init__(self, registry: MembershipRegistry, emitter: Emitter, sink: Optional[LogSink] = None):
        self.registry = registry
        self.emitter = emitter
        self.sink = sink or NullLogSink()

    async def _deliver(self, sids: Iterable[str], event: str, payload: Any) -> int:
        delivered = 0
        for sid in sids:
            await self.emitter.emit(event, payload, to=sid)
            delivered += 1
        return delivered

    async def send_to(self, sid: str, event: str, payload: Any) -> None:
        """Direct reply to a single connection."""
        await self.emitter.emit(event, payload, to=sid)

    async def emit_to_room(self, room: str, event: str, payload: Any) -> int:
        """Deliver to every current member of `room`. Empty rooms are a no-op."""
        return await self._deliver(sorted(self.registry.members_of(room)), event, payload)

    async def broadcast_all(self, event: str, payload: Any) -> int:
        """Deliver to every admitted connection."""
        sids = [conn.sid for conn in self.registry.connections()]
        return await self._deliver(sids, event, payload)

    async def relay_excluding_sender(self, sender_sid: str, room: str, event: str, payload: Any) -> int:
        """Deliver to every member of `room` except the originator."""
        sids = sorted(self.registry.members_of(room) - {sender_sid})
        return await self._deliver(sids, event, payload)

    async def route_driver_location(self, sender_sid: str, payload: Any) -> Optional[str]:
        """
        Relay a location update to the sender's trip room.

        The trip comes from `payload["trip_id"]`, falling back to the trip the
        connection was admitted with. The relayed payload is the original one
        plus `driver_id` and a server timestamp (epoch ms). Returns the room
        or None when no trip could be resolved and the update was dropped.
        """
        await self.sink.log("SOCKET", f"Location update from {sender_sid}", payload)

        connection = self.registry.get(sender_sid)
        data = payload if isinstance(payload, dict) else {}

        trip_id = data.get("trip_id") or (connection.trip_id if connection else None)
        if not trip_id:
            await self.sink.log("SOCKET", f"Dropped location from {sender_sid}: no trip room")
            return None

        room = trip_room(trip_id)
        augmented = {
            **data,
            "driver_id": connection.identity.id if connection else None,
            "timestamp": now_ms(),
        }
        await self.relay_excluding_sender(sender_sid, room, DRIVER_LOCATION, augmented)
        await self.sink.log("SOCKET", f"Broadcasted location to {room}")
        return room
