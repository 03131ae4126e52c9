"""Shared broadcast utility for sending one message to a room's connections."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tavern.messaging.protocol import ConnectionProtocol


async def broadcast_to_connections(
    connections: Iterable[ConnectionProtocol],
    message: dict[str, Any],
    exclude_connection_id: str | None = None,
) -> None:
    """Send a message to every connection, in order, skipping one if excluded.

    The caller passes a snapshot (a list) so a concurrent disconnect cannot
    mutate the collection while we yield on send_message. Send failures on
    dead sockets are ignored; the disconnect path cleans those up.
    """
    for connection in connections:
        if connection.connection_id == exclude_connection_id:
            continue
        with contextlib.suppress(RuntimeError, OSError, ConnectionError):
            await connection.send_message(message)
