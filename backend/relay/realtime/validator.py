"""
Sanctum token validation against the identity backend.
"""
from typing import Optional

import httpx

from relay.core.exceptions import InvalidCredential, ValidatorUnavailable
from relay.realtime.broadcaster import LogSink, NullLogSink
from relay.realtime.identity import Identity, DEFAULT_CLASS


class CredentialValidator:
    """
    Turns a bearer token into an Identity with a single outbound call.

    No retry: one failed attempt rejects the admission that triggered it.
    """

    def __init__(
        self,
        validate_url: str,
        *,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        sink: Optional[LogSink] = None,
    ):
        self.validate_url = validate_url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.sink = sink or NullLogSink()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def validate(self, token: str, identity_class_hint: str = DEFAULT_CLASS) -> Identity:
        """
        Raises InvalidCredential when the backend does not recognise the token
        and ValidatorUnavailable when the backend cannot give an answer.
        """
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Accept-Language": "en",
        }

        try:
            response = await self._get_client().get(self.validate_url, headers=headers)
        except httpx.TimeoutException as e:
            await self.sink.log("AUTH", "Token validation failed", {"error": f"timeout: {e}", "status": None})
            raise ValidatorUnavailable("Identity backend timed out") from e
        except httpx.RequestError as e:
            await self.sink.log("AUTH", "Token validation failed", {"error": str(e), "status": None})
            raise ValidatorUnavailable(f"Identity backend unreachable: {e}") from e

        if response.status_code >= 500:
            await self.sink.log("AUTH", "Token validation failed", {
                "error": "backend error",
                "status": response.status_code,
            })
            raise ValidatorUnavailable("Identity backend error", status_code=response.status_code)

        if response.status_code >= 400:
            await self.sink.log("AUTH", "Token validation failed", {
                "error": "token rejected",
                "status": response.status_code,
            })
            raise InvalidCredential(f"Identity backend rejected token ({response.status_code})")

        try:
            body = response.json()
        except ValueError as e:
            await self.sink.log("AUTH", "Token validation failed", {
                "error": "response is not JSON",
                "status": response.status_code,
            })
            raise ValidatorUnavailable("Identity backend returned a non-JSON body",
                                       status_code=response.status_code) from e

        user = body.get("user") if isinstance(body, dict) else None
        if not user or not isinstance(user, dict):
            await self.sink.log("AUTH", "Token validation failed", {
                "error": "response has no user",
                "status": response.status_code,
            })
            raise InvalidCredential("Identity backend response has no user")

        identity = Identity(
            id=user.get("id"),
            identity_class=body.get("type") or DEFAULT_CLASS,
            profile=user,
        )
        await self.sink.log("AUTH", "Token validated successfully", {
            "user_id": identity.id,
            "type": identity.identity_class,
        })
        return identity
