from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route, WebSocketRoute
from starlette.staticfiles import StaticFiles

from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging
from tavern.messaging.router import MessageRouter
from tavern.server.settings import TavernSettings
from tavern.server.websocket import websocket_endpoint
from tavern.session.manager import SessionManager

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
            "rooms": session_manager.room_count,
            "users": session_manager.user_count,
            "connections": session_manager.connection_count,
            "max_rooms": session_manager.max_rooms,
        },
    )


def create_app(
    settings: TavernSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = TavernSettings()

    if session_manager is None:
        session_manager = SessionManager.from_settings(settings)

    if message_router is None:
        message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    routes: list[Route | WebSocketRoute | Mount] = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]
    if settings.static_dir is not None:
        # registered last so it only catches paths the API does not claim
        routes.append(Mount("/", app=StaticFiles(directory=settings.static_dir, html=True), name="static"))

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        session_manager.cancel_all_grace_timers()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("tavern server ready", static_dir=settings.static_dir)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = TavernSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
