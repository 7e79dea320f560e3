from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import socketio
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from relay.api import control
from relay.core.config import Settings, settings as default_settings
from relay.core.logging import configure_logging
from relay.core.middleware import (
    RequestContextMiddleware,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from relay.realtime.socket import SocketHandlers, create_socket_server
from relay.realtime.state import RelayState
from relay.realtime.validator import CredentialValidator


def create_api(state: RelayState) -> FastAPI:
    """HTTP surface (control API + optional static files) bound to one relay state."""
    settings = state.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        await state.log("SERVER", f"Socket.io server running on port {settings.PORT}")
        await state.log("SERVER", f"Environment: {settings.APP_ENV}")
        await state.log("SERVER", f"Identity API: {settings.AUTH_API_URL}")
        await state.log("SERVER", f"Internal secret: {'configured' if settings.INTERNAL_SECRET else 'NOT SET!'}")
        yield
        # Shutdown
        await state.log("SERVER", "Shutting down")
        await state.aclose()

    api = FastAPI(
        title=settings.APP_NAME,
        description="Real-time relay for trip events",
        version="0.1.0",
        lifespan=lifespan,
    )
    api.state.relay = state

    api.add_middleware(RequestContextMiddleware)
    api.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    api.add_exception_handler(StarletteHTTPException, http_exception_handler)
    api.add_exception_handler(RequestValidationError, validation_exception_handler)
    api.add_exception_handler(Exception, global_exception_handler)

    api.include_router(control.router, tags=["Control"])

    # Mounted last so it never shadows the control routes
    static_dir = Path(settings.STATIC_DIR)
    if static_dir.is_dir():
        api.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return api


def create_app(
    settings: Optional[Settings] = None,
    validator: Optional[CredentialValidator] = None,
) -> socketio.ASGIApp:
    """
    Build the full ASGI application: Socket.IO at /socket.io, everything
    else handled by FastAPI.
    """
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    sio = create_socket_server(settings.CORS_ORIGINS)
    state = RelayState(settings, sio, validator=validator)
    SocketHandlers(state).register(sio)

    api = create_api(state)
    return socketio.ASGIApp(sio, other_asgi_app=api, socketio_path="socket.io")


app = create_app()
