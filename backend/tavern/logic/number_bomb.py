"""
Number Bomb: a hidden number in [1, 100], players take turns guessing and
the interval shrinks around it. Whoever names the number loses.

Turn order is re-derived from the room's live seat list on every guess, so a
join or leave mid-game shifts who is "next". A departing turn holder passes
the turn to whoever now sits at their position (see handle_participant_left).
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from tavern.logic.enums import GameKind, NumberBombPhase, SessionErrorCode
from tavern.logic.types import (
    ActionFailure,
    NumberBombBomb,
    NumberBombContinue,
    NumberBombSnapshot,
    NumberBombStarted,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tavern.logic.types import SeatInfo

MIN_NUMBER = 1
MAX_NUMBER = 100
MIN_PARTICIPANTS = 2


def parse_guess(raw_value: str | int) -> int | None:
    """Parse a client guess into an int. Returns None when it is not a whole number."""
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value
    try:
        return int(str(raw_value).strip())
    except ValueError:
        return None


class NumberBombGame:
    kind = GameKind.NUMBER_BOMB

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()  # noqa: S311
        self.phase = NumberBombPhase.NOT_STARTED
        self.target: int | None = None
        self.range_min = MIN_NUMBER
        self.range_max = MAX_NUMBER
        self.current_player_id: str | None = None
        self.winner_id: str | None = None
        self.loser_id: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.phase == NumberBombPhase.FINISHED

    def start(
        self,
        participants: Sequence[SeatInfo],
        *,
        target: int | None = None,
    ) -> NumberBombStarted | ActionFailure:
        """Pick the bomb and a random first player.

        `target` overrides the random bomb (used by tests).
        """
        if len(participants) < MIN_PARTICIPANTS:
            return ActionFailure(SessionErrorCode.NOT_ENOUGH_PLAYERS, "At least 2 players are needed to start")
        if target is not None and not MIN_NUMBER <= target <= MAX_NUMBER:
            raise ValueError(f"target must be in [{MIN_NUMBER}, {MAX_NUMBER}], got {target}")

        self.target = target if target is not None else self._rng.randint(MIN_NUMBER, MAX_NUMBER)
        self.range_min = MIN_NUMBER
        self.range_max = MAX_NUMBER
        self.current_player_id = self._rng.choice(list(participants)).id
        self.winner_id = None
        self.loser_id = None
        self.phase = NumberBombPhase.PLAYING
        return NumberBombStarted(
            current_player_id=self.current_player_id,
            range_min=self.range_min,
            range_max=self.range_max,
        )

    def guess(
        self,
        acting_id: str,
        raw_value: str | int,
        participants: Sequence[SeatInfo],
    ) -> NumberBombContinue | NumberBombBomb | ActionFailure:
        if self.phase == NumberBombPhase.FINISHED:
            return ActionFailure(SessionErrorCode.GAME_FINISHED, "The game is already over")
        if self.phase != NumberBombPhase.PLAYING or self.target is None:
            return ActionFailure(SessionErrorCode.INVALID_GAME_STATE, "The game has not started")
        if acting_id != self.current_player_id:
            return ActionFailure(SessionErrorCode.NOT_YOUR_TURN, "It is not your turn")

        value = parse_guess(raw_value)
        if value is None or not self.range_min <= value <= self.range_max:
            return ActionFailure(
                SessionErrorCode.OUT_OF_RANGE,
                f"Enter a number between {self.range_min} and {self.range_max}",
            )

        ids = [p.id for p in participants]
        if value == self.target:
            self.phase = NumberBombPhase.FINISHED
            self.loser_id = acting_id
            self.winner_id = self._infer_winner(acting_id, ids)
            return NumberBombBomb(bomb_number=self.target, loser=self.loser_id, winner=self.winner_id)

        if value < self.target:
            self.range_min = value + 1
        else:
            self.range_max = value - 1

        position = ids.index(acting_id) if acting_id in ids else -1
        self.current_player_id = ids[(position + 1) % len(ids)]
        return NumberBombContinue(
            range_min=self.range_min,
            range_max=self.range_max,
            current_player_id=self.current_player_id,
            guess=value,
            guesser_id=acting_id,
        )

    def handle_participant_left(self, participant_id: str, participants_before: Sequence[SeatInfo]) -> str | None:
        """Pass the turn on when the turn holder leaves mid-game.

        `participants_before` is the seat list as it was before the departure.
        Returns the new turn holder id, or None if the turn did not move.
        """
        if self.phase != NumberBombPhase.PLAYING or participant_id != self.current_player_id:
            return None
        ids = [p.id for p in participants_before]
        position = ids.index(participant_id) if participant_id in ids else 0
        remaining = [pid for pid in ids if pid != participant_id]
        if not remaining:
            self.current_player_id = None
            return None
        self.current_player_id = remaining[position % len(remaining)]
        return self.current_player_id

    def snapshot(self) -> NumberBombSnapshot:
        return NumberBombSnapshot(
            phase=self.phase,
            current_player_id=self.current_player_id,
            range_min=self.range_min,
            range_max=self.range_max,
        )

    @staticmethod
    def _infer_winner(loser_id: str, ids: list[str]) -> str | None:
        # only well-defined head-to-head; with 3+ players there is no single winner
        others = [pid for pid in ids if pid != loser_id]
        if len(ids) == MIN_PARTICIPANTS and len(others) == 1:
            return others[0]
        return None
