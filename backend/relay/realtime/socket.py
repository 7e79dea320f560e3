"""
Socket.IO event handlers.

Admission happens in `connect`; a refused connection never reaches the
registry. Rooms:
- <identity_class>:<identity_id> - personal room, lets the backend address one identity
- trip:{trip_id} - everyone following a trip

Client events:
- join:trip / leave:trip - dynamic trip room membership
- driver:location - location update relayed to the trip room
- test - echo, answered with test:response

Server events:
- user:joined / user:left - trip room peer notifications
- driver:location - augmented location relay
- server:log - live log tap for logs viewers
- test:response, error
"""
from typing import Any, Optional, Set

import socketio
from socketio import exceptions as sio_exceptions

from relay.core.exceptions import AdmissionRejected
from relay.realtime.admission import AdmissionContext
from relay.realtime.registry import Connection, TRIP_ROOM_PREFIX, trip_room
from relay.realtime.router import now_ms
from relay.realtime.state import RelayState

TEST_CONFIRMATION = "Socket.io is working!"


def create_socket_server(cors_origins) -> socketio.AsyncServer:
    origins = "*" if cors_origins in (["*"], "*") else list(cors_origins)
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=origins,
        logger=False,
        engineio_logger=False,
    )


class SocketHandlers:
    def __init__(self, state: RelayState):
        self.state = state
        # sids whose admission is still awaiting the identity backend
        self._admitting: Set[str] = set()

    @property
    def registry(self):
        return self.state.registry

    @property
    def router(self):
        return self.state.router

    def register(self, sio: socketio.AsyncServer) -> None:
        sio.on("connect", self.connect)
        sio.on("disconnect", self.disconnect)
        sio.on("join:trip", self.join_trip)
        sio.on("leave:trip", self.leave_trip)
        sio.on("driver:location", self.driver_location)
        sio.on("test", self.test)

    async def connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
        """
        Admit the connection, then place it in its personal room and, when
        the handshake names a trip, in that trip's room.
        """
        context = AdmissionContext.from_handshake(environ, auth, self.state.settings.is_development)

        self._admitting.add(sid)
        try:
            identity = await self.state.gate.admit(context)
        except AdmissionRejected as e:
            raise sio_exceptions.ConnectionRefusedError(e.reason)
        finally:
            # disconnect() discards the sid when the socket goes away mid-admission
            abandoned = sid not in self._admitting
            self._admitting.discard(sid)

        if abandoned:
            await self.state.log("SOCKET", f"Dropped connection {sid}: disconnected during admission")
            return

        self.registry.add_connection(Connection(
            sid=sid,
            identity=identity,
            trip_id=context.trip_id,
            address=context.address,
        ))
        await self.state.log("SOCKET", f"New connection: {sid}", {
            "user": identity.as_user(),
            "type": identity.identity_class,
        })

        personal_room = identity.personal_room
        if personal_room:
            self.registry.join(sid, personal_room)
            await self.state.log("SOCKET", f"Joined personal room: {personal_room}")

        if context.trip_id:
            await self._join_trip(sid, context.trip_id)

    async def disconnect(self, sid: str, reason: Any = None) -> None:
        """
        Purge first so no later routing can reach this socket, then tell
        the remaining trip peers.
        """
        self._admitting.discard(sid)
        connection = self.registry.get(sid)
        rooms = self.registry.purge(sid)
        await self.state.log("SOCKET", f"Disconnected: {sid}, reason: {reason}")

        if connection is None:
            return

        for room in sorted(rooms):
            if not room.startswith(TRIP_ROOM_PREFIX):
                continue
            await self.router.emit_to_room(room, "user:left", {
                "socketId": sid,
                "user": connection.identity.as_user(),
                "tripId": room[len(TRIP_ROOM_PREFIX):],
            })

    async def join_trip(self, sid: str, data: Any = None) -> None:
        trip_id = self._trip_id(data)
        if trip_id is None:
            await self.router.send_to(sid, "error", {"message": "trip_id is required"})
            return
        await self._join_trip(sid, trip_id)

    async def leave_trip(self, sid: str, data: Any = None) -> None:
        trip_id = self._trip_id(data)
        if trip_id is None:
            await self.router.send_to(sid, "error", {"message": "trip_id is required"})
            return

        connection = self.registry.get(sid)
        room = trip_room(trip_id)
        if not self.registry.leave(sid, room):
            return
        await self.state.log("SOCKET", f"{sid} left room: {room}")

        await self.router.relay_excluding_sender(sid, room, "user:left", {
            "socketId": sid,
            "user": connection.identity.as_user() if connection else None,
            "tripId": trip_id,
        })

    async def driver_location(self, sid: str, data: Any = None) -> None:
        await self.router.route_driver_location(sid, data if data is not None else {})

    async def test(self, sid: str, data: Any = None) -> None:
        await self.state.log("SOCKET", f"Test event from {sid}", data)
        connection = self.registry.get(sid)
        await self.router.send_to(sid, "test:response", {
            "received": data,
            "user": connection.identity.as_user() if connection else None,
            "message": TEST_CONFIRMATION,
            "timestamp": now_ms(),
        })

    async def _join_trip(self, sid: str, trip_id) -> None:
        connection = self.registry.get(sid)
        if connection is None:
            return

        room = trip_room(trip_id)
        if not self.registry.join(sid, room):
            return
        await self.state.log("SOCKET", f"{sid} joined room: {room}")

        await self.router.relay_excluding_sender(sid, room, "user:joined", {
            "socketId": sid,
            "user": connection.identity.as_user(),
            "userType": connection.identity.identity_class,
            "tripId": trip_id,
        })

    @staticmethod
    def _trip_id(data: Any):
        if not isinstance(data, dict):
            return None
        trip_id = data.get("trip_id")
        if trip_id is None or trip_id == "":
            return None
        return trip_id
