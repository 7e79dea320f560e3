"""
Connection admission policy.

One decision per connection attempt, made before the connection is routable.
The policy is an ordered list of rules; the first rule whose predicate
matches decides the outcome, either an Identity or AdmissionRejected.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional
from urllib.parse import parse_qs

from relay.core.exceptions import AdmissionRejected, InvalidCredential, ValidatorUnavailable
from relay.realtime.broadcaster import LogSink, NullLogSink
from relay.realtime.identity import (
    Identity,
    LOGS_VIEWER,
    DEFAULT_CLASS,
    logs_viewer_identity,
    developer_identity,
)
from relay.realtime.validator import CredentialValidator


@dataclass(frozen=True)
class AdmissionContext:
    """Everything the policy may look at, captured from the handshake."""
    token: Optional[str] = None
    identity_class_hint: str = DEFAULT_CLASS
    trip_id: Optional[str] = None
    address: Optional[str] = None
    development: bool = False

    @classmethod
    def from_handshake(cls, environ: Optional[dict], auth: Optional[dict], development: bool) -> "AdmissionContext":
        """
        Extract admission inputs from a Socket.IO handshake.

        Token comes from:
        1. auth.token (preferred - sent in Socket.IO auth object)
        2. Authorization header (fallback)
        """
        environ = environ or {}
        token = None
        if auth and isinstance(auth, dict):
            token = auth.get("token") or None

        if not token:
            header = environ.get("HTTP_AUTHORIZATION", "")
            scheme, _, credentials = header.strip().partition(" ")
            if scheme.lower() == "bearer":
                token = credentials.strip() or None

        query = parse_qs(environ.get("QUERY_STRING", ""))

        def _param(name: str) -> Optional[str]:
            values = query.get(name)
            return values[0] if values and values[0] else None

        return cls(
            token=token,
            identity_class_hint=_param("user_type") or DEFAULT_CLASS,
            trip_id=_param("trip_id"),
            address=environ.get("REMOTE_ADDR"),
            development=development,
        )


@dataclass(frozen=True)
class AdmissionRule:
    name: str
    applies: Callable[[AdmissionContext], bool]
    decide: Callable[[AdmissionContext], Awaitable[Identity]]


class AdmissionGate:
    def __init__(self, validator: CredentialValidator, sink: Optional[LogSink] = None):
        self.validator = validator
        self.sink = sink or NullLogSink()
        self.rules: List[AdmissionRule] = [
            AdmissionRule("logs_viewer", self._is_logs_viewer, self._admit_logs_viewer),
            AdmissionRule("development", self._is_dev_without_token, self._admit_developer),
            AdmissionRule("missing_token", self._has_no_token, self._reject_missing_token),
            AdmissionRule("credential", lambda ctx: True, self._admit_with_credential),
        ]

    async def admit(self, context: AdmissionContext) -> Identity:
        await self.sink.log("AUTH", "Connection attempt", {
            "hasToken": bool(context.token),
            "userType": context.identity_class_hint,
            "ip": context.address,
        })

        rule = self.match(context)
        try:
            return await rule.decide(context)
        except AdmissionRejected as e:
            e.rule = rule.name
            await self.sink.log("AUTH", f"Connection rejected: {e.reason}", {
                "rule": rule.name,
                "userType": context.identity_class_hint,
                "ip": context.address,
            })
            raise

    def match(self, context: AdmissionContext) -> AdmissionRule:
        for rule in self.rules:
            if rule.applies(context):
                return rule
        raise RuntimeError("admission policy has no catch-all rule")

    # Predicates

    @staticmethod
    def _is_logs_viewer(context: AdmissionContext) -> bool:
        return context.identity_class_hint == LOGS_VIEWER

    @staticmethod
    def _is_dev_without_token(context: AdmissionContext) -> bool:
        return not context.token and context.development

    @staticmethod
    def _has_no_token(context: AdmissionContext) -> bool:
        return not context.token

    # Outcomes

    async def _admit_logs_viewer(self, context: AdmissionContext) -> Identity:
        await self.sink.log("AUTH", "Logs viewer: allowing unauthenticated connection")
        return logs_viewer_identity()

    async def _admit_developer(self, context: AdmissionContext) -> Identity:
        await self.sink.log("AUTH", "Dev mode: allowing unauthenticated connection")
        return developer_identity()

    async def _reject_missing_token(self, context: AdmissionContext) -> Identity:
        raise AdmissionRejected("Authentication required")

    async def _admit_with_credential(self, context: AdmissionContext) -> Identity:
        try:
            return await self.validator.validate(context.token, context.identity_class_hint)
        except (InvalidCredential, ValidatorUnavailable) as e:
            raise AdmissionRejected("Invalid token") from e
