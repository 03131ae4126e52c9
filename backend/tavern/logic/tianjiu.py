"""
Tianjiu Poker: the host draws a random card for a random participant each
round, the table resolves its effect, and the host finishes the round.

There is no terminal phase. Phases loop waiting -> card_drawn ->
effect_active -> waiting until the room switches games.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any

from tavern.logic.deck import CARD_LABELS, CardLabel, card_for
from tavern.logic.enums import CardEffectKind, EffectAction, GameKind, SessionErrorCode, TianjiuPhase
from tavern.logic.number_bomb import MIN_PARTICIPANTS
from tavern.logic.types import (
    ActionFailure,
    CardDrawn,
    CardEffectResolved,
    ReservedCardUsed,
    TianjiuState,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from tavern.logic.types import SeatInfo

RESERVE_ACTION = "reserve"
TARGET_FIELD = "targetUserId"


def _find(participants: Sequence[SeatInfo], participant_id: str | None) -> SeatInfo | None:
    return next((p for p in participants if p.id == participant_id), None)


class TianjiuGame:
    kind = GameKind.TIANJIU_POKER

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()  # noqa: S311
        self.phase = TianjiuPhase.WAITING
        self.current_card: CardLabel | None = None
        self.current_player: SeatInfo | None = None
        self.reserved: set[str] = set()
        self._effect_handlers: dict[
            CardEffectKind,
            Callable[[str, dict[str, Any], Sequence[SeatInfo]], CardEffectResolved | ActionFailure],
        ] = {
            CardEffectKind.RESERVE: self._resolve_reserve,
            CardEffectKind.DESIGNATE: self._resolve_designate,
        }

    def state(self) -> TianjiuState:
        return TianjiuState(
            phase=self.phase,
            current_card=self.current_card.value if self.current_card is not None else None,
            current_player=self.current_player,
            reserved_cards=sorted(self.reserved),
        )

    def start(self, participants: Sequence[SeatInfo]) -> TianjiuState | ActionFailure:
        if len(participants) < MIN_PARTICIPANTS:
            return ActionFailure(SessionErrorCode.NOT_ENOUGH_PLAYERS, "At least 2 players are needed to start")
        self.phase = TianjiuPhase.WAITING
        self.current_card = None
        self.current_player = None
        return self.state()

    def draw_card(
        self,
        participants: Sequence[SeatInfo],
        *,
        card: CardLabel | None = None,
        participant_id: str | None = None,
    ) -> CardDrawn | ActionFailure:
        """Sample a card (with replacement) and a participant, both uniformly.

        `card` and `participant_id` force the draw (used by tests).
        """
        if len(participants) < MIN_PARTICIPANTS:
            return ActionFailure(SessionErrorCode.NOT_ENOUGH_PLAYERS, "At least 2 players are needed to draw")

        label = card if card is not None else self._rng.choice(CARD_LABELS)
        player = _find(participants, participant_id) if participant_id is not None else None
        if player is None:
            player = self._rng.choice(list(participants))

        self.current_card = label
        self.current_player = player
        self.phase = TianjiuPhase.CARD_DRAWN
        return CardDrawn(card=label.value, player=player, effect=card_for(label).effect, game_state=self.state())

    def handle_card_effect(
        self,
        action: str,
        data: dict[str, Any],
        participants: Sequence[SeatInfo],
    ) -> CardEffectResolved | ActionFailure:
        if self.current_card is None or self.current_player is None:
            return ActionFailure(SessionErrorCode.INVALID_GAME_STATE, "No card has been drawn")

        handler = self._effect_handlers.get(card_for(self.current_card).kind, self._resolve_show)
        result = handler(action, data, participants)
        if not isinstance(result, ActionFailure):
            self.phase = TianjiuPhase.EFFECT_ACTIVE
            result.game_state = self.state()
        return result

    def use_reserved_card(
        self,
        user_id: str,
        target_id: str | None,
        participants: Sequence[SeatInfo],
    ) -> ReservedCardUsed | ActionFailure:
        if user_id not in self.reserved:
            return ActionFailure(SessionErrorCode.NO_RESERVED_CARD, "You have no reserved card")
        user = _find(participants, user_id)
        if user is None:
            return ActionFailure(SessionErrorCode.PLAYER_NOT_FOUND, "Player is not at the table")
        target = None
        if target_id is not None:
            target = _find(participants, target_id)
            if target is None:
                return ActionFailure(SessionErrorCode.TARGET_NOT_FOUND, "Target player is not at the table")

        self.reserved.discard(user_id)
        return ReservedCardUsed(user=user, target=target, game_state=self.state())

    def finish_round(self) -> TianjiuState:
        self.current_card = None
        self.current_player = None
        self.phase = TianjiuPhase.WAITING
        return self.state()

    def handle_participant_left(self, participant_id: str) -> bool:
        """Forfeit a departed participant's banked card and void their unresolved draw.

        Returns True when the round was reset because the drawer left.
        """
        self.reserved.discard(participant_id)
        if self.current_player is None or self.current_player.id != participant_id:
            return False
        self.finish_round()
        return True

    # --- Effect handlers ---

    def _resolved(self, action: EffectAction, target: SeatInfo | None = None) -> CardEffectResolved:
        assert self.current_card is not None
        assert self.current_player is not None
        return CardEffectResolved(
            action=action,
            card=self.current_card.value,
            effect=card_for(self.current_card).effect,
            drawer=self.current_player,
            target=target,
            game_state=self.state(),
        )

    def _resolve_show(
        self,
        _action: str,
        _data: dict[str, Any],
        _participants: Sequence[SeatInfo],
    ) -> CardEffectResolved | ActionFailure:
        return self._resolved(EffectAction.SHOW_EFFECT)

    def _resolve_reserve(
        self,
        action: str,
        data: dict[str, Any],
        participants: Sequence[SeatInfo],
    ) -> CardEffectResolved | ActionFailure:
        if action != RESERVE_ACTION:
            return self._resolve_show(action, data, participants)
        assert self.current_player is not None
        self.reserved.add(self.current_player.id)
        return self._resolved(EffectAction.RESERVE_CARD)

    def _resolve_designate(
        self,
        _action: str,
        data: dict[str, Any],
        participants: Sequence[SeatInfo],
    ) -> CardEffectResolved | ActionFailure:
        target_id = data.get(TARGET_FIELD)
        if not target_id:
            return ActionFailure(SessionErrorCode.MISSING_TARGET, "Choose a player to drink")
        target = _find(participants, str(target_id))
        if target is None:
            return ActionFailure(SessionErrorCode.TARGET_NOT_FOUND, "Target player is not at the table")
        return self._resolved(EffectAction.DESIGNATE_DRINK, target)
