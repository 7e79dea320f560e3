"""
Live log tap.

Every notable relay action is written to the process log and, at the same
moment, pushed as `server:log` to connections admitted as logs viewers.
Records are never stored or replayed to viewers that connect later.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from relay.core.logging import logger_for_kind
from relay.realtime.identity import LOGS_VIEWER
from relay.realtime.registry import MembershipRegistry

LOG_EVENT = "server:log"


class Emitter(Protocol):
    async def emit(self, event: str, data: Any = None, to: Optional[str] = None, **kwargs) -> Any:
        ...


class LogSink(Protocol):
    async def log(self, kind: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...


class NullLogSink:
    """Sink that discards records, for components used outside the relay."""

    async def log(self, kind: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        return None


class LogBroadcaster:
    def __init__(
        self,
        emitter: Emitter,
        registry: MembershipRegistry,
    ):
        self.emitter = emitter
        self.registry = registry

    async def log(self, kind: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        record = {
            "type": kind,
            "message": message,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        logger = logger_for_kind(kind)
        if data is not None:
            logger.info(f"[{kind}] {message}", data=data)
        else:
            logger.info(f"[{kind}] {message}")

        for viewer in self.registry.connections_of_class(LOGS_VIEWER):
            await self.emitter.emit(LOG_EVENT, record, to=viewer.sid)
