"""
Room membership tracking for admitted connections.

Connections live in an arena keyed by socket id; rooms hold socket ids only,
so a Connection never references a room object and vice versa. Rooms are
created on first join and dropped as soon as their last member leaves.
"""
import logging
from typing import Dict, Set, List, Optional, FrozenSet, Iterator
from dataclasses import dataclass, field

from relay.realtime.identity import Identity

logger = logging.getLogger(__name__)

TRIP_ROOM_PREFIX = "trip:"


def trip_room(trip_id) -> str:
    return f"{TRIP_ROOM_PREFIX}{trip_id}"


@dataclass
class Connection:
    """A live, admitted transport session."""
    sid: str
    identity: Identity
    trip_id: Optional[str] = None
    address: Optional[str] = None
    rooms: Set[str] = field(default_factory=set)


@dataclass
class MembershipRegistry:
    """
    In-memory membership state. Accessed only from the event loop thread.

    Structure:
    - connections[sid] = Connection
    - rooms[room_name] = set(sids)
    """
    connections_by_sid: Dict[str, Connection] = field(default_factory=dict)
    rooms: Dict[str, Set[str]] = field(default_factory=dict)

    def add_connection(self, connection: Connection) -> Connection:
        """Register an admitted connection. Re-adding a sid replaces it."""
        if connection.sid in self.connections_by_sid:
            self.purge(connection.sid)
        self.connections_by_sid[connection.sid] = connection
        return connection

    def get(self, sid: str) -> Optional[Connection]:
        return self.connections_by_sid.get(sid)

    def connections(self) -> Iterator[Connection]:
        return iter(list(self.connections_by_sid.values()))

    def connections_of_class(self, identity_class: str) -> List[Connection]:
        return [
            conn for conn in self.connections_by_sid.values()
            if conn.identity.identity_class == identity_class
        ]

    @property
    def connection_count(self) -> int:
        return len(self.connections_by_sid)

    def join(self, sid: str, room: str) -> bool:
        """
        Add a connection to a room.

        Returns True if membership changed, False if the connection was
        already a member. Unknown sids are ignored (returns False), so a room
        never holds a connection that is not live.
        """
        connection = self.connections_by_sid.get(sid)
        if connection is None:
            logger.debug(f"Ignoring join of unknown socket {sid} to {room}")
            return False

        members = self.rooms.setdefault(room, set())
        if sid in members:
            return False

        members.add(sid)
        connection.rooms.add(room)
        return True

    def leave(self, sid: str, room: str) -> bool:
        """
        Remove a connection from a room. Leaving a room the connection is not
        in is a no-op. Returns True if membership changed.
        """
        members = self.rooms.get(room)
        if not members or sid not in members:
            return False

        members.discard(sid)
        if not members:
            del self.rooms[room]

        connection = self.connections_by_sid.get(sid)
        if connection is not None:
            connection.rooms.discard(room)
        return True

    def members_of(self, room: str) -> FrozenSet[str]:
        """Snapshot of the room's members; empty for unknown rooms."""
        return frozenset(self.rooms.get(room, ()))

    def all_room_names(self) -> List[str]:
        return sorted(self.rooms.keys())

    def purge(self, sid: str) -> Set[str]:
        """
        Drop a connection and every membership it holds.

        Returns the set of rooms it belonged to (empty for unknown sids).
        """
        connection = self.connections_by_sid.pop(sid, None)
        if connection is None:
            return set()

        left = set(connection.rooms)
        for room in left:
            members = self.rooms.get(room)
            if members is None:
                continue
            members.discard(sid)
            if not members:
                del self.rooms[room]
        connection.rooms.clear()
        return left

    def clear(self) -> None:
        """Clear all state (for testing)."""
        self.connections_by_sid.clear()
        self.rooms.clear()
