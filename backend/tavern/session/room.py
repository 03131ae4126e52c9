"""Room model: members, host authority, seat numbering and the active game."""

import secrets
import string
import time
from dataclasses import dataclass, field

from tavern.logic.enums import RoomPhase, SessionErrorCode
from tavern.logic.number_bomb import NumberBombGame
from tavern.logic.tianjiu import TianjiuGame
from tavern.logic.types import ActionFailure, SeatInfo
from tavern.session.models import User, VirtualPlayer

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_ROOM_CODE_LENGTH = 6

ActiveGame = NumberBombGame | TianjiuGame


def generate_room_code(length: int = DEFAULT_ROOM_CODE_LENGTH) -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def normalize_room_code(room_id: str) -> str:
    """Room codes are case-insensitive; they are stored upper-cased."""
    return room_id.strip().upper()


@dataclass
class Room:
    """A short-lived game session identified by its code.

    Seat numbers are recomputed from scratch by seat_list() on every call
    and are never stored, so leave/rejoin orderings cannot leave gaps.
    """

    room_id: str
    host_id: str
    host_mode: bool = False
    members: dict[str, User] = field(default_factory=dict)  # user_id -> User
    virtual_players: dict[str, VirtualPlayer] = field(default_factory=dict)  # player_id -> VirtualPlayer
    game: ActiveGame | None = None
    phase: RoomPhase = RoomPhase.WAITING
    created_at: float = field(default_factory=time.monotonic)

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def is_empty(self) -> bool:
        return not self.members

    def is_host(self, user_id: str) -> bool:
        return self.host_id == user_id

    def add_user(self, user: User) -> None:
        self.members[user.user_id] = user
        user.room_id = self.room_id

    def remove_user(self, user_id: str) -> User | None:
        """Remove a member. Returns the newly promoted host, if the host left."""
        user = self.members.pop(user_id, None)
        if user is None:
            return None
        user.room_id = None
        if self.host_id == user_id and self.members:
            new_host = next(iter(self.members.values()))
            self.host_id = new_host.user_id
            return new_host
        return None

    def seat_list(self) -> list[SeatInfo]:
        """Host is seat 1, other members follow in join order, then virtual players."""
        seats: list[SeatInfo] = []
        host = self.members.get(self.host_id)
        if host is not None:
            seats.append(
                SeatInfo(id=host.user_id, nickname=host.nickname, number=1, is_host=True, is_online=host.is_online),
            )
        for user in self.members.values():
            if user.user_id == self.host_id:
                continue
            seats.append(
                SeatInfo(id=user.user_id, nickname=user.nickname, number=len(seats) + 1, is_online=user.is_online),
            )
        if self.host_mode:
            for player in self.virtual_players.values():
                seats.append(
                    SeatInfo(id=player.player_id, nickname=player.nickname, number=len(seats) + 1, is_virtual=True),
                )
        return seats

    def participant_ids(self) -> list[str]:
        return [seat.id for seat in self.seat_list()]

    def seat_of(self, participant_id: str) -> SeatInfo | None:
        return next((seat for seat in self.seat_list() if seat.id == participant_id), None)

    def is_virtual(self, participant_id: str) -> bool:
        return self.host_mode and participant_id in self.virtual_players

    def add_virtual_player(self, nickname: str) -> VirtualPlayer | ActionFailure:
        if not self.host_mode:
            return ActionFailure(SessionErrorCode.NOT_HOST_MODE, "Virtual players are only available in host mode")
        player = VirtualPlayer(nickname=nickname)
        self.virtual_players[player.player_id] = player
        return player

    def remove_virtual_player(self, player_id: str) -> VirtualPlayer | ActionFailure:
        if not self.host_mode:
            return ActionFailure(SessionErrorCode.NOT_HOST_MODE, "Virtual players are only available in host mode")
        player = self.virtual_players.pop(player_id, None)
        if player is None:
            return ActionFailure(SessionErrorCode.PLAYER_NOT_FOUND, "No such virtual player")
        return player
