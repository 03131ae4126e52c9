from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from tavern.logic.enums import GameKind, GuessOutcome, RoomPhase, SessionErrorCode
from tavern.logic.types import (
    CamelModel,
    CardDrawn,
    CardEffectResolved,
    NumberBombSnapshot,
    ReservedCardUsed,
    SeatInfo,
    TianjiuState,
)

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

MAX_NICKNAME_LENGTH = 50
MAX_CHAT_LENGTH = 1000


def _reject_control_chars(value: str) -> str:
    if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in value):
        raise ValueError("text must not contain control characters")
    return value


class ClientMessageType(StrEnum):
    CREATE_ROOM = "createRoom"
    JOIN_ROOM = "joinRoom"
    RECONNECT_TO_ROOM = "reconnectToRoom"
    CHAT_MESSAGE = "chatMessage"
    START_NUMBER_BOMB = "startNumberBomb"
    NUMBER_BOMB_GUESS = "numberBombGuess"
    START_TIANJIU_POKER = "startTianjiuPoker"
    DRAW_TIANJIU_CARD = "drawTianjiuCard"
    HANDLE_TIANJIU_CARD_EFFECT = "handleTianjiuCardEffect"
    USE_RESERVED_CARD = "useReservedCard"
    FINISH_TIANJIU_ROUND = "finishTianjiuRound"
    ADD_VIRTUAL_PLAYER = "addVirtualPlayer"
    REMOVE_VIRTUAL_PLAYER = "removeVirtualPlayer"
    PING = "ping"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "roomCreated"
    ROOM_JOINED = "roomJoined"
    USER_LIST_UPDATE = "userListUpdate"
    CHAT_MESSAGE = "chatMessage"
    HOST_CHANGED = "hostChanged"
    GAME_STARTED = "gameStarted"
    GAME_UPDATE = "gameUpdate"
    GAME_FINISHED = "gameFinished"
    TIANJIU_CARD_DRAWN = "tianjiuCardDrawn"
    TIANJIU_CARD_EFFECT = "tianjiuCardEffect"
    TIANJIU_RESERVED_CARD_USED = "tianjiuReservedCardUsed"
    TIANJIU_ROUND_FINISHED = "tianjiuRoundFinished"
    VIRTUAL_PLAYER_ADDED = "virtualPlayerAdded"
    VIRTUAL_PLAYER_REMOVED = "virtualPlayerRemoved"
    ERROR = "error"
    PONG = "pong"


class ChatKind(StrEnum):
    SYSTEM = "system"
    USER = "user"


_ROOM_CODE_FIELD = Field(min_length=4, max_length=12, pattern=r"^[a-zA-Z0-9]+$")
_ID_FIELD = Field(min_length=1, max_length=100)


class _NicknameMixin(CamelModel):
    nickname: str = Field(min_length=1, max_length=MAX_NICKNAME_LENGTH)

    @field_validator("nickname")
    @classmethod
    def _validate_nickname(cls, v: str) -> str:
        v = _reject_control_chars(v).strip()
        if not v:
            raise ValueError("nickname must not be blank")
        return v


# ---------------------------------------------------------------------------
# Client -> server
# ---------------------------------------------------------------------------


class CreateRoomMessage(_NicknameMixin):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    host_mode: bool = False


class JoinRoomMessage(_NicknameMixin):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    room_id: str = _ROOM_CODE_FIELD


class ReconnectToRoomMessage(_NicknameMixin):
    type: Literal[ClientMessageType.RECONNECT_TO_ROOM] = ClientMessageType.RECONNECT_TO_ROOM
    room_id: str = _ROOM_CODE_FIELD
    user_id: str = _ID_FIELD


class ChatMessage(CamelModel):
    type: Literal[ClientMessageType.CHAT_MESSAGE] = ClientMessageType.CHAT_MESSAGE
    message: str = Field(min_length=1, max_length=MAX_CHAT_LENGTH)

    @field_validator("message")
    @classmethod
    def _validate_message(cls, v: str) -> str:
        return _reject_control_chars(v)


class StartNumberBombMessage(CamelModel):
    type: Literal[ClientMessageType.START_NUMBER_BOMB] = ClientMessageType.START_NUMBER_BOMB


class NumberBombGuessMessage(CamelModel):
    type: Literal[ClientMessageType.NUMBER_BOMB_GUESS] = ClientMessageType.NUMBER_BOMB_GUESS
    number: int | Annotated[str, Field(max_length=16)]


class StartTianjiuPokerMessage(CamelModel):
    type: Literal[ClientMessageType.START_TIANJIU_POKER] = ClientMessageType.START_TIANJIU_POKER


class DrawTianjiuCardMessage(CamelModel):
    type: Literal[ClientMessageType.DRAW_TIANJIU_CARD] = ClientMessageType.DRAW_TIANJIU_CARD


class HandleTianjiuCardEffectMessage(CamelModel):
    type: Literal[ClientMessageType.HANDLE_TIANJIU_CARD_EFFECT] = ClientMessageType.HANDLE_TIANJIU_CARD_EFFECT
    action: str = Field(default="", max_length=50)
    data: dict[str, Any] = Field(default_factory=dict)


class UseReservedCardMessage(CamelModel):
    type: Literal[ClientMessageType.USE_RESERVED_CARD] = ClientMessageType.USE_RESERVED_CARD
    target_user_id: str | None = Field(default=None, min_length=1, max_length=100)
    player_id: str | None = Field(default=None, min_length=1, max_length=100)


class FinishTianjiuRoundMessage(CamelModel):
    type: Literal[ClientMessageType.FINISH_TIANJIU_ROUND] = ClientMessageType.FINISH_TIANJIU_ROUND


class AddVirtualPlayerMessage(_NicknameMixin):
    type: Literal[ClientMessageType.ADD_VIRTUAL_PLAYER] = ClientMessageType.ADD_VIRTUAL_PLAYER


class RemoveVirtualPlayerMessage(CamelModel):
    type: Literal[ClientMessageType.REMOVE_VIRTUAL_PLAYER] = ClientMessageType.REMOVE_VIRTUAL_PLAYER
    player_id: str = _ID_FIELD


class PingMessage(CamelModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    CreateRoomMessage
    | JoinRoomMessage
    | ReconnectToRoomMessage
    | ChatMessage
    | StartNumberBombMessage
    | NumberBombGuessMessage
    | StartTianjiuPokerMessage
    | DrawTianjiuCardMessage
    | HandleTianjiuCardEffectMessage
    | UseReservedCardMessage
    | FinishTianjiuRoundMessage
    | AddVirtualPlayerMessage
    | RemoveVirtualPlayerMessage
    | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a decoded frame into a typed client message (raises ValidationError)."""
    return _client_message_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Server -> client
# ---------------------------------------------------------------------------


class GameSnapshot(CamelModel):
    """Active game state for a client (re)joining mid-game."""

    game_type: GameKind
    room_phase: RoomPhase
    state: NumberBombSnapshot | TianjiuState


class RoomCreatedMessage(CamelModel):
    type: Literal[ServerMessageType.ROOM_CREATED] = ServerMessageType.ROOM_CREATED
    room_id: str
    user_id: str
    nickname: str
    user_number: int
    is_host: bool
    host_mode: bool
    users: list[SeatInfo]


class RoomJoinedMessage(CamelModel):
    type: Literal[ServerMessageType.ROOM_JOINED] = ServerMessageType.ROOM_JOINED
    room_id: str
    user_id: str
    nickname: str
    user_number: int
    is_host: bool
    host_mode: bool
    rejoined: bool = False
    users: list[SeatInfo]
    game: GameSnapshot | None = None


class UserListUpdateMessage(CamelModel):
    """Membership or presence changed.

    `notice` is the system line for the chat log (joins, departures).
    `game` is set while a game is running, since a departure can move the turn.
    """

    type: Literal[ServerMessageType.USER_LIST_UPDATE] = ServerMessageType.USER_LIST_UPDATE
    users: list[SeatInfo]
    host_id: str
    notice: str | None = None
    game: GameSnapshot | None = None


class ChatBroadcastMessage(CamelModel):
    type: Literal[ServerMessageType.CHAT_MESSAGE] = ServerMessageType.CHAT_MESSAGE
    kind: ChatKind
    message: str
    timestamp: str
    user_id: str | None = None
    nickname: str | None = None
    user_number: int | None = None


class HostChangedMessage(CamelModel):
    type: Literal[ServerMessageType.HOST_CHANGED] = ServerMessageType.HOST_CHANGED
    new_host_id: str
    new_host_nickname: str


class NumberBombStartedMessage(CamelModel):
    type: Literal[ServerMessageType.GAME_STARTED] = ServerMessageType.GAME_STARTED
    game_type: Literal[GameKind.NUMBER_BOMB] = GameKind.NUMBER_BOMB
    current_player_id: str
    range_min: int
    range_max: int


class TianjiuStartedMessage(CamelModel):
    type: Literal[ServerMessageType.GAME_STARTED] = ServerMessageType.GAME_STARTED
    game_type: Literal[GameKind.TIANJIU_POKER] = GameKind.TIANJIU_POKER
    game_state: TianjiuState


class GuessInfo(CamelModel):
    number: int
    player_id: str
    player_nickname: str
    player_number: int


class GameUpdateMessage(CamelModel):
    """Number Bomb progress after a wrong guess: the narrowed interval and the next turn holder."""

    type: Literal[ServerMessageType.GAME_UPDATE] = ServerMessageType.GAME_UPDATE
    game_type: Literal[GameKind.NUMBER_BOMB] = GameKind.NUMBER_BOMB
    range_min: int
    range_max: int
    current_player_id: str | None
    guess: GuessInfo | None = None


class GameFinishedMessage(CamelModel):
    type: Literal[ServerMessageType.GAME_FINISHED] = ServerMessageType.GAME_FINISHED
    game_type: Literal[GameKind.NUMBER_BOMB] = GameKind.NUMBER_BOMB
    result: Literal[GuessOutcome.BOMB] = GuessOutcome.BOMB
    bomb_number: int
    loser: str
    winner: str | None


class TianjiuCardDrawnMessage(CardDrawn):
    type: Literal[ServerMessageType.TIANJIU_CARD_DRAWN] = ServerMessageType.TIANJIU_CARD_DRAWN


class TianjiuCardEffectMessage(CardEffectResolved):
    type: Literal[ServerMessageType.TIANJIU_CARD_EFFECT] = ServerMessageType.TIANJIU_CARD_EFFECT


class TianjiuReservedCardUsedMessage(ReservedCardUsed):
    type: Literal[ServerMessageType.TIANJIU_RESERVED_CARD_USED] = ServerMessageType.TIANJIU_RESERVED_CARD_USED


class TianjiuRoundFinishedMessage(CamelModel):
    type: Literal[ServerMessageType.TIANJIU_ROUND_FINISHED] = ServerMessageType.TIANJIU_ROUND_FINISHED
    game_state: TianjiuState


class VirtualPlayerAddedMessage(CamelModel):
    type: Literal[ServerMessageType.VIRTUAL_PLAYER_ADDED] = ServerMessageType.VIRTUAL_PLAYER_ADDED
    player_id: str
    nickname: str


class VirtualPlayerRemovedMessage(CamelModel):
    type: Literal[ServerMessageType.VIRTUAL_PLAYER_REMOVED] = ServerMessageType.VIRTUAL_PLAYER_REMOVED
    player_id: str


class ErrorMessage(CamelModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: SessionErrorCode
    message: str


class PongMessage(CamelModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG


def to_wire(message: BaseModel) -> dict[str, Any]:
    """Dump an outbound model to a plain camelCase dict ready for encoding."""
    return message.model_dump(by_alias=True, mode="json")
