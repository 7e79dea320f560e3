"""
Real-time module: admission, room membership, routing and the log tap.
"""
from relay.realtime.registry import MembershipRegistry, Connection
from relay.realtime.state import RelayState
from relay.realtime.socket import SocketHandlers

__all__ = ["MembershipRegistry", "Connection", "RelayState", "SocketHandlers"]
