from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from shared.logging import bind_connection_context
from tavern.logic.enums import SessionErrorCode
from tavern.messaging.encoder import DecodeError, decode
from tavern.messaging.protocol import ConnectionProtocol
from tavern.messaging.types import ErrorMessage, to_wire
from tavern.server.rate_limit import TokenBucket

logger = structlog.get_logger()

if TYPE_CHECKING:
    from tavern.messaging.router import MessageRouter

# Rate limit: 20 messages/sec sustained, burst of 40.
# Chat bursts and rapid guesses stay well under this.
RATE_LIMIT_RATE = 20.0
RATE_LIMIT_BURST = 40

# Disconnect after this many consecutive decode errors
MAX_DECODE_ERRORS = 5
CLOSE_TOO_MANY_DECODE_ERRORS = 4004


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter) -> None:
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    bind_connection_context(connection.connection_id)
    logger.info("websocket connected")
    await router.handle_connect(connection)

    bucket = TokenBucket(rate=RATE_LIMIT_RATE, burst=RATE_LIMIT_BURST)
    decode_errors = 0

    try:
        while True:
            raw = await connection.receive_bytes()

            # decode before the rate check so malformed frames always count as strikes
            try:
                data = decode(raw)
            except DecodeError as e:
                decode_errors += 1
                logger.warning("decode error", error=str(e), strikes=decode_errors)
                await connection.send_message(
                    to_wire(ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e))),
                )
                if decode_errors >= MAX_DECODE_ERRORS:
                    logger.info("too many decode errors, disconnecting")
                    await connection.close(code=CLOSE_TOO_MANY_DECODE_ERRORS, reason="too_many_decode_errors")
                    return
                continue

            decode_errors = 0

            if not bucket.consume():
                await connection.send_message(
                    to_wire(ErrorMessage(code=SessionErrorCode.RATE_LIMITED, message="Too many messages")),
                )
                continue

            # room/user context from the previous frame must not leak into this one
            structlog.contextvars.clear_contextvars()
            bind_connection_context(connection.connection_id)
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
