"""
The relay's explicitly owned state.

One RelayState per process (or per test) holds the membership registry and
every component that reads or writes it. Nothing here is module-global, so
handlers and the control API receive the state they operate on.
"""
from typing import Optional

from relay.core.config import Settings
from relay.realtime.admission import AdmissionGate
from relay.realtime.broadcaster import Emitter, LogBroadcaster
from relay.realtime.registry import MembershipRegistry
from relay.realtime.router import EventRouter
from relay.realtime.validator import CredentialValidator


class RelayState:
    def __init__(
        self,
        settings: Settings,
        emitter: Emitter,
        validator: Optional[CredentialValidator] = None,
    ):
        self.settings = settings
        self.registry = MembershipRegistry()
        self.broadcaster = LogBroadcaster(emitter, self.registry)
        self.validator = validator or CredentialValidator(
            settings.auth_validate_url,
            timeout=settings.AUTH_TIMEOUT_SECONDS,
            sink=self.broadcaster,
        )
        self.gate = AdmissionGate(self.validator, sink=self.broadcaster)
        self.router = EventRouter(self.registry, emitter, sink=self.broadcaster)

    async def log(self, kind: str, message: str, data=None) -> None:
        await self.broadcaster.log(kind, message, data)

    async def aclose(self) -> None:
        await self.validator.aclose()
