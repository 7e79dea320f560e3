"""
Control API used by the backend to push events through the relay.
Everything except /health requires the shared internal secret.
"""
import hmac
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from relay.core.exceptions import ControlRequestInvalid, ControlRequestUnauthorized
from relay.realtime.state import RelayState

router = APIRouter()


class EmitRequest(BaseModel):
    room: Optional[str] = None
    event: Optional[str] = None
    data: Any = None


class BroadcastRequest(BaseModel):
    event: Optional[str] = None
    data: Any = None


def get_relay_state(request: Request) -> RelayState:
    return request.app.state.relay


async def verify_internal_secret(request: Request, state: RelayState = Depends(get_relay_state)) -> None:
    secret = request.headers.get(state.settings.INTERNAL_SECRET_HEADER)

    if not secret or not hmac.compare_digest(secret.encode(), state.settings.INTERNAL_SECRET.encode()):
        await state.log("AUTH", "Invalid internal secret attempt", {
            "provided": "yes" if secret else "no",
            "ip": request.client.host if request.client else None,
        })
        raise ControlRequestUnauthorized()


@router.get("/health")
async def health(state: RelayState = Depends(get_relay_state)):
    await state.log("HTTP", "Health check requested")
    return {"status": "ok", "connections": state.registry.connection_count}


@router.post("/emit", dependencies=[Depends(verify_internal_secret)])
async def emit(body: Optional[EmitRequest] = None, state: RelayState = Depends(get_relay_state)):
    body = body or EmitRequest()
    await state.log("HTTP", f"Emit request: {body.event} to room: {body.room}", body.data)

    if not body.room or not body.event:
        raise ControlRequestInvalid("room and event are required")

    delivered = await state.router.emit_to_room(body.room, body.event, body.data)

    await state.log("HTTP", f"Emitted {body.event} to {body.room}", {"recipients": delivered})
    return {"success": True, "room": body.room, "event": body.event}


@router.post("/broadcast", dependencies=[Depends(verify_internal_secret)])
async def broadcast(body: Optional[BroadcastRequest] = None, state: RelayState = Depends(get_relay_state)):
    body = body or BroadcastRequest()
    await state.log("HTTP", f"Broadcast request: {body.event}", body.data)

    if not body.event:
        raise ControlRequestInvalid("event is required")

    await state.router.broadcast_all(body.event, body.data)

    return {"success": True, "event": body.event, "clientCount": state.registry.connection_count}


@router.get("/rooms", dependencies=[Depends(verify_internal_secret)])
async def list_rooms(state: RelayState = Depends(get_relay_state)):
    rooms = state.registry.all_room_names()
    await state.log("HTTP", "Rooms list requested", {"rooms": rooms})
    return {"rooms": rooms}
