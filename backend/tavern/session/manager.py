from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from shared.logging import bind_room_context
from tavern.logic.enums import GameKind, NumberBombPhase, RoomPhase, SessionErrorCode
from tavern.logic.number_bomb import NumberBombGame
from tavern.logic.tianjiu import TianjiuGame
from tavern.logic.types import ActionFailure, NumberBombBomb
from tavern.messaging.types import (
    ChatBroadcastMessage,
    ChatKind,
    ErrorMessage,
    GameFinishedMessage,
    GameSnapshot,
    GameUpdateMessage,
    GuessInfo,
    HostChangedMessage,
    NumberBombStartedMessage,
    PongMessage,
    RoomCreatedMessage,
    RoomJoinedMessage,
    TianjiuCardDrawnMessage,
    TianjiuCardEffectMessage,
    TianjiuReservedCardUsedMessage,
    TianjiuRoundFinishedMessage,
    TianjiuStartedMessage,
    UserListUpdateMessage,
    VirtualPlayerAddedMessage,
    VirtualPlayerRemovedMessage,
    to_wire,
)
from tavern.session.broadcast import broadcast_to_connections
from tavern.session.grace import DEFAULT_GRACE_SECONDS, GraceTimerManager
from tavern.session.registry import UserRegistry
from tavern.session.room import DEFAULT_ROOM_CODE_LENGTH, Room, generate_room_code, normalize_room_code

if TYPE_CHECKING:
    import random

    from pydantic import BaseModel

    from tavern.logic.types import SeatInfo
    from tavern.messaging.protocol import ConnectionProtocol
    from tavern.server.settings import TavernSettings
    from tavern.session.models import User

logger = structlog.get_logger()

DEFAULT_MAX_ROOMS = 500


class SessionManager:
    """
    Owns every connection, user and room, and applies inbound actions to them.

    Each action resolves the acting user from its connection, checks room
    membership, host authority and game state, then either broadcasts one
    event to the room or sends one error to the sender. State is settled
    before the first send, so handlers never observe each other mid-mutation.
    """

    def __init__(
        self,
        *,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        room_code_length: int = DEFAULT_ROOM_CODE_LENGTH,
        max_rooms: int = DEFAULT_MAX_ROOMS,
        rng: random.Random | None = None,
    ) -> None:
        self._room_code_length = room_code_length
        self._max_rooms = max_rooms
        self._rng = rng
        self._connections: dict[str, ConnectionProtocol] = {}
        self._rooms: dict[str, Room] = {}  # room_id -> Room
        self._users = UserRegistry()
        self._grace = GraceTimerManager(on_expire=self._handle_grace_expiry, grace_seconds=grace_seconds)

    @classmethod
    def from_settings(cls, settings: TavernSettings) -> SessionManager:
        return cls(
            grace_seconds=settings.grace_period_seconds,
            room_code_length=settings.room_code_length,
            max_rooms=settings.max_rooms,
        )

    # --- Introspection ---

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def user_count(self) -> int:
        return self._users.user_count

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def max_rooms(self) -> int:
        return self._max_rooms

    def get_room(self, room_id: str) -> Room | None:
        return self._rooms.get(normalize_room_code(room_id))

    def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def is_grace_pending(self, user_id: str) -> bool:
        return self._grace.is_pending(user_id)

    def cancel_all_grace_timers(self) -> None:
        self._grace.cancel_all()

    # --- Connections ---

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        """Take the user offline and start its grace window."""
        self._connections.pop(connection.connection_id, None)
        user = self._users.mark_disconnected(connection.connection_id)
        if user is None:
            return

        room = self._rooms.get(user.room_id) if user.room_id is not None else None
        if room is None:
            self._users.remove(user.user_id)
            return

        self._grace.schedule(user.user_id)
        logger.info(
            "user offline, grace period started",
            room_id=room.room_id,
            user_id=user.user_id,
            grace_seconds=self._grace.grace_seconds,
        )
        await self._broadcast_user_list(room)

    # --- Room lifecycle ---

    async def create_room(self, connection: ConnectionProtocol, nickname: str, *, host_mode: bool = False) -> None:
        if await self._reject_if_in_room(connection):
            return
        if len(self._rooms) >= self._max_rooms:
            await self._send_error(connection, SessionErrorCode.SERVER_FULL, "Server is full, try again later")
            return

        room_id = self._new_room_code()
        user = self._users.create(nickname, connection.connection_id)
        room = Room(room_id=room_id, host_id=user.user_id, host_mode=host_mode)
        room.add_user(user)
        self._rooms[room_id] = room
        bind_room_context(room_id, user.user_id)
        logger.info("room created", host_mode=host_mode)

        await connection.send_message(
            to_wire(
                RoomCreatedMessage(
                    room_id=room_id,
                    user_id=user.user_id,
                    nickname=user.nickname,
                    user_number=1,
                    is_host=True,
                    host_mode=host_mode,
                    users=room.seat_list(),
                ),
            ),
        )

    async def join_room(self, connection: ConnectionProtocol, room_id: str, nickname: str) -> None:
        if await self._reject_if_in_room(connection):
            return
        room = self.get_room(room_id)
        if room is None:
            await self._send_error(connection, SessionErrorCode.ROOM_NOT_FOUND, "Room not found")
            return

        user = self._users.create(nickname, connection.connection_id)
        room.add_user(user)
        bind_room_context(room.room_id, user.user_id)
        logger.info("user joined room")

        await self._send_room_joined(connection, room, user, rejoined=False)
        await self._broadcast_user_list(room, notice=f"{user.nickname} joined the room")

    async def reconnect_to_room(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        user_id: str,
        nickname: str,
    ) -> None:
        """Reattach a returning user, or join as a new user if the id is unknown."""
        current = self._users.resolve_by_connection(connection.connection_id)
        # a seated connection may only re-announce its own seat in its own room
        if current is not None and current.room_id is not None and (
            current.user_id != user_id or current.room_id != normalize_room_code(room_id)
        ):
            await self._send_error(connection, SessionErrorCode.ALREADY_IN_ROOM, "Already in a room")
            return
        room = self.get_room(room_id)
        if room is None:
            await self._send_error(connection, SessionErrorCode.ROOM_NOT_FOUND, "Room not found")
            return

        result = self._users.reconnect(user_id, room.room_id, connection.connection_id, nickname)
        user = result.user
        if result.rejoined:
            self._grace.cancel(user.user_id)
            notice = f"{user.nickname} reconnected"
        else:
            room.add_user(user)
            notice = f"{user.nickname} joined the room"
        bind_room_context(room.room_id, user.user_id)
        logger.info("user reconnected to room", rejoined=result.rejoined)

        await self._send_room_joined(connection, room, user, rejoined=result.rejoined)
        await self._broadcast_user_list(room, notice=notice)

    # --- Chat ---

    async def chat(self, connection: ConnectionProtocol, text: str) -> None:
        member = await self._resolve_member(connection)
        if member is None:
            return
        user, room = member
        seat = room.seat_of(user.user_id)
        await self._broadcast_to_room(
            room,
            ChatBroadcastMessage(
                kind=ChatKind.USER,
                message=text,
                timestamp=datetime.now(UTC).isoformat(),
                user_id=user.user_id,
                nickname=user.nickname,
                user_number=seat.number if seat is not None else None,
            ),
        )

    # --- Number Bomb ---

    async def start_number_bomb(self, connection: ConnectionProtocol, *, target: int | None = None) -> None:
        member = await self._resolve_host(connection)
        if member is None:
            return
        _, room = member

        game = NumberBombGame(rng=self._rng)
        result = game.start(room.seat_list(), target=target)
        if isinstance(result, ActionFailure):
            await self._send_failure(connection, result)
            return

        room.game = game
        room.phase = RoomPhase.PLAYING
        logger.info("number bomb started", participants=len(room.seat_list()))
        await self._broadcast_to_room(
            room,
            NumberBombStartedMessage(
                current_player_id=result.current_player_id,
                range_min=result.range_min,
                range_max=result.range_max,
            ),
        )

    async def number_bomb_guess(self, connection: ConnectionProtocol, number: str | int) -> None:
        member = await self._resolve_member(connection)
        if member is None:
            return
        user, room = member
        game = room.game
        if not isinstance(game, NumberBombGame) or room.phase == RoomPhase.WAITING:
            await self._send_error(connection, SessionErrorCode.INVALID_GAME_STATE, "Number Bomb is not running")
            return

        acting_id = user.user_id
        # in host mode the host types in guesses for virtual participants
        turn_holder = game.current_player_id
        if room.is_host(user.user_id) and turn_holder is not None and room.is_virtual(turn_holder):
            acting_id = turn_holder

        participants = room.seat_list()
        result = game.guess(acting_id, number, participants)
        if isinstance(result, ActionFailure):
            await self._send_failure(connection, result)
            return

        if isinstance(result, NumberBombBomb):
            room.phase = RoomPhase.FINISHED
            logger.info("number bomb finished", loser=result.loser, winner=result.winner)
            await self._broadcast_to_room(
                room,
                GameFinishedMessage(bomb_number=result.bomb_number, loser=result.loser, winner=result.winner),
            )
            return

        guesser = next(seat for seat in participants if seat.id == result.guesser_id)
        await self._broadcast_to_room(
            room,
            GameUpdateMessage(
                range_min=result.range_min,
                range_max=result.range_max,
                current_player_id=result.current_player_id,
                guess=GuessInfo(
                    number=result.guess,
                    player_id=guesser.id,
                    player_nickname=guesser.nickname,
                    player_number=guesser.number,
                ),
            ),
        )

    # --- Tianjiu Poker ---

    async def start_tianjiu(self, connection: ConnectionProtocol) -> None:
        member = await self._resolve_host(connection)
        if member is None:
            return
        _, room = member

        game = TianjiuGame(rng=self._rng)
        result = game.start(room.seat_list())
        if isinstance(result, ActionFailure):
            await self._send_failure(connection, result)
            return

        room.game = game
        room.phase = RoomPhase.PLAYING
        logger.info("tianjiu poker started", participants=len(room.seat_list()))
        await self._broadcast_to_room(room, TianjiuStartedMessage(game_state=result))

    async def draw_card(self, connection: ConnectionProtocol) -> None:
        member = await self._resolve_host(connection)
        if member is None:
            return
        _, room = member
        game = await self._require_tianjiu(connection, room)
        if game is None:
            return

        result = game.draw_card(room.seat_list())
        if isinstance(result, ActionFailure):
            await self._send_failure(connection, result)
            return
        await self._broadcast_to_room(room, TianjiuCardDrawnMessage.model_validate(result.model_dump()))

    async def handle_card_effect(self, connection: ConnectionProtocol, action: str, data: dict[str, Any]) -> None:
        member = await self._resolve_member(connection)
        if member is None:
            return
        _, room = member
        game = await self._require_tianjiu(connection, room)
        if game is None:
            return

        result = game.handle_card_effect(action, data, room.seat_list())
        if isinstance(result, ActionFailure):
            await self._send_failure(connection, result)
            return
        await self._broadcast_to_room(room, TianjiuCardEffectMessage.model_validate(result.model_dump()))

    async def use_reserved_card(
        self,
        connection: ConnectionProtocol,
        target_user_id: str | None = None,
        player_id: str | None = None,
    ) -> None:
        """Spend a banked card. The host may pass `player_id` to spend a virtual participant's card."""
        member = await self._resolve_member(connection)
        if member is None:
            return
        user, room = member
        game = await self._require_tianjiu(connection, room)
        if game is None:
            return

        owner_id = user.user_id
        if player_id is not None and player_id != user.user_id:
            failure = self._check_proxy(room, user.user_id, player_id)
            if failure is not None:
                await self._send_failure(connection, failure)
                return
            owner_id = player_id

        result = game.use_reserved_card(owner_id, target_user_id, room.seat_list())
        if isinstance(result, ActionFailure):
            await self._send_failure(connection, result)
            return
        await self._broadcast_to_room(room, TianjiuReservedCardUsedMessage.model_validate(result.model_dump()))

    async def finish_round(self, connection: ConnectionProtocol) -> None:
        member = await self._resolve_host(connection)
        if member is None:
            return
        _, room = member
        game = await self._require_tianjiu(connection, room)
        if game is None:
            return
        await self._broadcast_to_room(room, TianjiuRoundFinishedMessage(game_state=game.finish_round()))

    # --- Virtual players ---

    async def add_virtual_player(self, connection: ConnectionProtocol, nickname: str) -> None:
        member = await self._resolve_host(connection)
        if member is None:
            return
        _, room = member

        result = room.add_virtual_player(nickname)
        if isinstance(result, ActionFailure):
            await self._send_failure(connection, result)
            return

        logger.info("virtual player added", player_id=result.player_id)
        await connection.send_message(
            to_wire(VirtualPlayerAddedMessage(player_id=result.player_id, nickname=result.nickname)),
        )
        await self._broadcast_user_list(room, notice=f"{result.nickname} joined the table")

    async def remove_virtual_player(self, connection: ConnectionProtocol, player_id: str) -> None:
        member = await self._resolve_host(connection)
        if member is None:
            return
        _, room = member

        seats_before = room.seat_list()
        result = room.remove_virtual_player(player_id)
        if isinstance(result, ActionFailure):
            await self._send_failure(connection, result)
            return

        self._notify_participant_left(room, result.player_id, seats_before)
        logger.info("virtual player removed", player_id=result.player_id)
        await connection.send_message(to_wire(VirtualPlayerRemovedMessage(player_id=result.player_id)))
        await self._broadcast_user_list(room, notice=f"{result.nickname} left the table")

    # --- Heartbeat ---

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_message(to_wire(PongMessage()))

    # --- Grace expiry ---

    async def _handle_grace_expiry(self, user_id: str) -> None:
        """Remove a user whose grace window ran out while still offline."""
        user = self._users.get(user_id)
        if user is None or user.is_online:
            return

        room = self._rooms.get(user.room_id) if user.room_id is not None else None
        self._users.remove(user_id)
        if room is None:
            return

        bind_room_context(room.room_id, user_id)
        seats_before = room.seat_list()
        new_host = room.remove_user(user_id)
        self._notify_participant_left(room, user_id, seats_before)
        logger.info("user removed after grace period")

        if room.is_empty:
            self._rooms.pop(room.room_id, None)
            logger.info("room is empty, destroyed")
            return

        await self._broadcast_user_list(room, notice=f"{user.nickname} left the room")
        if new_host is not None:
            logger.info("host transferred", new_host_id=new_host.user_id)
            await self._broadcast_to_room(
                room,
                HostChangedMessage(new_host_id=new_host.user_id, new_host_nickname=new_host.nickname),
            )

    @staticmethod
    def _notify_participant_left(room: Room, participant_id: str, seats_before: list[SeatInfo]) -> None:
        game = room.game
        if isinstance(game, NumberBombGame):
            new_turn = game.handle_participant_left(participant_id, seats_before)
            if new_turn is not None:
                logger.info("turn passed after departure", current_player_id=new_turn)
        elif isinstance(game, TianjiuGame) and game.handle_participant_left(participant_id):
            logger.info("drawn card voided after departure", participant_id=participant_id)

    # --- Helpers ---

    def _new_room_code(self) -> str:
        while True:
            code = generate_room_code(self._room_code_length)
            if code not in self._rooms:
                return code

    @staticmethod
    def _check_proxy(room: Room, user_id: str, player_id: str) -> ActionFailure | None:
        """Validate the host acting on behalf of a virtual participant."""
        if not room.is_host(user_id):
            return ActionFailure(SessionErrorCode.NOT_HOST, "Only the host can act for other players")
        if not room.host_mode:
            return ActionFailure(SessionErrorCode.NOT_HOST_MODE, "Virtual players are only available in host mode")
        if not room.is_virtual(player_id):
            return ActionFailure(SessionErrorCode.PLAYER_NOT_FOUND, "No such virtual player")
        return None

    @staticmethod
    def _game_snapshot(room: Room) -> GameSnapshot | None:
        game = room.game
        if game is None:
            return None
        if isinstance(game, NumberBombGame):
            return GameSnapshot(game_type=GameKind.NUMBER_BOMB, room_phase=room.phase, state=game.snapshot())
        return GameSnapshot(game_type=GameKind.TIANJIU_POKER, room_phase=room.phase, state=game.state())

    def _live_game_snapshot(self, room: Room) -> GameSnapshot | None:
        game = room.game
        if isinstance(game, NumberBombGame) and game.phase != NumberBombPhase.PLAYING:
            return None
        if room.phase != RoomPhase.PLAYING:
            return None
        return self._game_snapshot(room)

    async def _reject_if_in_room(self, connection: ConnectionProtocol) -> bool:
        user = self._users.resolve_by_connection(connection.connection_id)
        if user is not None and user.room_id is not None:
            await self._send_error(connection, SessionErrorCode.ALREADY_IN_ROOM, "Already in a room")
            return True
        return False

    async def _resolve_member(self, connection: ConnectionProtocol) -> tuple[User, Room] | None:
        """Resolve the acting user and its room, or send the error and return None."""
        user = self._users.resolve_by_connection(connection.connection_id)
        if user is None or user.room_id is None:
            await self._send_error(connection, SessionErrorCode.INVALID_USER_STATE, "Invalid user state")
            return None
        room = self._rooms.get(user.room_id)
        if room is None:
            await self._send_error(connection, SessionErrorCode.ROOM_NOT_FOUND, "Room not found")
            return None
        bind_room_context(room.room_id, user.user_id)
        return user, room

    async def _resolve_host(self, connection: ConnectionProtocol) -> tuple[User, Room] | None:
        member = await self._resolve_member(connection)
        if member is None:
            return None
        user, room = member
        if not room.is_host(user.user_id):
            await self._send_error(connection, SessionErrorCode.NOT_HOST, "Only the host can do that")
            return None
        return member

    async def _require_tianjiu(self, connection: ConnectionProtocol, room: Room) -> TianjiuGame | None:
        game = room.game
        if not isinstance(game, TianjiuGame) or room.phase != RoomPhase.PLAYING:
            await self._send_error(connection, SessionErrorCode.INVALID_GAME_STATE, "Tianjiu Poker is not running")
            return None
        return game

    async def _send_room_joined(self, connection: ConnectionProtocol, room: Room, user: User, *, rejoined: bool) -> None:
        seat = room.seat_of(user.user_id)
        await connection.send_message(
            to_wire(
                RoomJoinedMessage(
                    room_id=room.room_id,
                    user_id=user.user_id,
                    nickname=user.nickname,
                    user_number=seat.number if seat is not None else 0,
                    is_host=room.is_host(user.user_id),
                    host_mode=room.host_mode,
                    rejoined=rejoined,
                    users=room.seat_list(),
                    game=self._game_snapshot(room),
                ),
            ),
        )

    async def _broadcast_user_list(self, room: Room, notice: str | None = None) -> None:
        await self._broadcast_to_room(
            room,
            UserListUpdateMessage(
                users=room.seat_list(),
                host_id=room.host_id,
                notice=notice,
                game=self._live_game_snapshot(room),
            ),
        )

    async def _broadcast_to_room(self, room: Room, message: BaseModel) -> None:
        connections = [
            self._connections[member.connection_id]
            for member in room.members.values()
            if member.connection_id is not None and member.connection_id in self._connections
        ]
        await broadcast_to_connections(connections, to_wire(message))

    async def _send_failure(self, connection: ConnectionProtocol, failure: ActionFailure) -> None:
        await self._send_error(connection, failure.code, failure.message)

    async def _send_error(self, connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
        logger.warning("session error sent to client", error_code=code.value, error_message=message)
        await connection.send_message(to_wire(ErrorMessage(code=code, message=message)))
