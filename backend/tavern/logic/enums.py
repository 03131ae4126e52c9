"""
String enum definitions for room and game concepts.
"""

from enum import StrEnum


class GameKind(StrEnum):
    """Discriminator for the game a room is running."""

    NUMBER_BOMB = "numberBomb"
    TIANJIU_POKER = "tianjiuPoker"


class RoomPhase(StrEnum):
    """Room-level gate for which actions are currently legal."""

    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class NumberBombPhase(StrEnum):
    NOT_STARTED = "not_started"
    PLAYING = "playing"
    FINISHED = "finished"


class GuessOutcome(StrEnum):
    CONTINUE = "continue"
    BOMB = "bomb"


class TianjiuPhase(StrEnum):
    WAITING = "waiting"
    CARD_DRAWN = "card_drawn"
    EFFECT_ACTIVE = "effect_active"


class CardEffectKind(StrEnum):
    """How a drawn card is resolved."""

    SHOW = "show"
    DESIGNATE = "designate"
    RESERVE = "reserve"


class EffectAction(StrEnum):
    """Result tag of a resolved card effect."""

    SHOW_EFFECT = "show_effect"
    DESIGNATE_DRINK = "designate_drink"
    RESERVE_CARD = "reserve_card"


class UserStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"


class SessionErrorCode(StrEnum):
    """Error codes sent to the originating connection only."""

    INVALID_USER_STATE = "invalid_user_state"
    ROOM_NOT_FOUND = "room_not_found"
    ALREADY_IN_ROOM = "already_in_room"
    SERVER_FULL = "server_full"
    NOT_HOST = "not_host"
    NOT_HOST_MODE = "not_host_mode"
    PLAYER_NOT_FOUND = "player_not_found"
    INVALID_GAME_STATE = "invalid_game_state"
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    NOT_YOUR_TURN = "not_your_turn"
    GAME_FINISHED = "game_finished"
    OUT_OF_RANGE = "out_of_range"
    MISSING_TARGET = "missing_target"
    TARGET_NOT_FOUND = "target_not_found"
    NO_RESERVED_CARD = "no_reserved_card"
    INVALID_MESSAGE = "invalid_message"
    RATE_LIMITED = "rate_limited"
    ACTION_FAILED = "action_failed"
