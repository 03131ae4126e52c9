import time
from typing import NamedTuple

from tavern.logic.enums import UserStatus
from tavern.session.models import User


class ReconnectResult(NamedTuple):
    rejoined: bool
    user: User


class UserRegistry:
    """In-memory store of users, indexed by id and by current connection.

    Every inbound action resolves its actor through resolve_by_connection(),
    so the connection index is the only authentication there is.
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}  # user_id -> User
        self._by_connection: dict[str, str] = {}  # connection_id -> user_id

    @property
    def user_count(self) -> int:
        return len(self._users)

    @property
    def online_count(self) -> int:
        return len(self._by_connection)

    def create(self, nickname: str, connection_id: str) -> User:
        """Create a user bound to a connection. Return it."""
        user = User(nickname=nickname)
        self._users[user.user_id] = user
        self.bind(user, connection_id)
        return user

    def get(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def resolve_by_connection(self, connection_id: str) -> User | None:
        user_id = self._by_connection.get(connection_id)
        return self._users.get(user_id) if user_id is not None else None

    def bind(self, user: User, connection_id: str) -> None:
        """Attach a connection to a user and mark it online.

        A different user still holding that connection is taken offline.
        """
        if user.connection_id is not None:
            self._by_connection.pop(user.connection_id, None)
        previous_owner = self.resolve_by_connection(connection_id)
        if previous_owner is not None and previous_owner is not user:
            previous_owner.connection_id = None
            previous_owner.status = UserStatus.OFFLINE
            previous_owner.disconnected_at = time.monotonic()
        self._by_connection[connection_id] = user.user_id
        user.connection_id = connection_id
        user.status = UserStatus.ONLINE
        user.disconnected_at = None

    def reconnect(self, user_id: str, room_id: str, connection_id: str, nickname: str) -> ReconnectResult:
        """Reattach a known user to a new connection, or fall back to a fresh user.

        An unknown id, or one that belongs to a different room, never fails:
        the caller treats the result as a normal join.
        """
        user = self._users.get(user_id)
        if user is not None and user.room_id == room_id:
            self.bind(user, connection_id)
            return ReconnectResult(rejoined=True, user=user)
        return ReconnectResult(rejoined=False, user=self.create(nickname, connection_id))

    def mark_disconnected(self, connection_id: str) -> User | None:
        """Set the owning user offline and unbind the connection."""
        user_id = self._by_connection.pop(connection_id, None)
        user = self._users.get(user_id) if user_id is not None else None
        if user is None:
            return None
        user.connection_id = None
        user.status = UserStatus.OFFLINE
        user.disconnected_at = time.monotonic()
        return user

    def remove(self, user_id: str) -> User | None:
        user = self._users.pop(user_id, None)
        if user is not None and user.connection_id is not None:
            self._by_connection.pop(user.connection_id, None)
        return user
