"""Abstract client connection, so routing and session logic run without sockets."""

from abc import ABC, abstractmethod
from typing import Any

from tavern.messaging.encoder import encode


class ConnectionProtocol(ABC):
    """
    One persistent, full-duplex client connection.

    Implemented by the Starlette websocket wrapper in production and by
    MockConnection in tests.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Transient identifier, unique per socket."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """Encode a message as MessagePack and send it."""
        await self.send_bytes(encode(data))
