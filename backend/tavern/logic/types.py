"""
Pydantic models and result types shared by the game state machines.

Game methods return either one of the result models below or an
ActionFailure; rule violations are never raised.
"""

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tavern.logic.enums import EffectAction, NumberBombPhase, SessionErrorCode, TianjiuPhase


class CamelModel(BaseModel):
    """Base for wire-facing models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionFailure(NamedTuple):
    """A rejected action. Carries the error code and a human-readable message."""

    code: SessionErrorCode
    message: str


class SeatInfo(CamelModel):
    """Public identity of a participant, as shown in the seat list."""

    id: str
    nickname: str
    number: int
    is_host: bool = False
    is_virtual: bool = False
    is_online: bool = True


# ---------------------------------------------------------------------------
# Number Bomb
# ---------------------------------------------------------------------------


class NumberBombStarted(CamelModel):
    current_player_id: str
    range_min: int
    range_max: int


class NumberBombContinue(CamelModel):
    range_min: int
    range_max: int
    current_player_id: str
    guess: int
    guesser_id: str


class NumberBombBomb(CamelModel):
    bomb_number: int
    loser: str
    winner: str | None


class NumberBombSnapshot(CamelModel):
    """Number Bomb state sent to a reconnecting client."""

    phase: NumberBombPhase
    current_player_id: str | None
    range_min: int
    range_max: int


# ---------------------------------------------------------------------------
# Tianjiu Poker
# ---------------------------------------------------------------------------


class TianjiuState(CamelModel):
    """Card game state included with every Tianjiu event."""

    phase: TianjiuPhase
    current_card: str | None = None
    current_player: SeatInfo | None = None
    reserved_cards: list[str] = []


class CardDrawn(CamelModel):
    card: str
    player: SeatInfo
    effect: str
    game_state: TianjiuState


class CardEffectResolved(CamelModel):
    action: EffectAction
    card: str
    effect: str
    drawer: SeatInfo
    target: SeatInfo | None = None
    game_state: TianjiuState


class ReservedCardUsed(CamelModel):
    user: SeatInfo
    target: SeatInfo | None = None
    game_state: TianjiuState
