from dataclasses import dataclass, field
from uuid import uuid4

from tavern.logic.enums import UserStatus

VIRTUAL_ID_PREFIX = "virtual-"


def new_user_id() -> str:
    return str(uuid4())


def new_virtual_id() -> str:
    return f"{VIRTUAL_ID_PREFIX}{uuid4()}"


@dataclass
class User:
    """A participant's durable identity, independent of any one connection.

    Lifecycle:
    - Created on createRoom/joinRoom, or on reconnectToRoom with an unknown id
    - On disconnect: status goes offline, connection_id is cleared and
      disconnected_at is stamped (time.monotonic())
    - On reconnect within the grace window: rebound to the new connection
    - On grace expiry while still offline: removed from its room and deleted
    """

    nickname: str
    connection_id: str | None = None
    user_id: str = field(default_factory=new_user_id)
    room_id: str | None = None
    status: UserStatus = UserStatus.ONLINE
    disconnected_at: float | None = None

    @property
    def is_online(self) -> bool:
        return self.status == UserStatus.ONLINE


@dataclass
class VirtualPlayer:
    """Host-declared participant with no connection (host mode only)."""

    nickname: str
    player_id: str = field(default_factory=new_virtual_id)
