"""
Tianjiu Poker deck: card labels, effect kinds and their flavor text.

The deck is never depleted. Every draw samples uniformly over all labels,
so the same card can come up in consecutive rounds.
"""

from enum import StrEnum
from typing import NamedTuple

from tavern.logic.enums import CardEffectKind


class CardLabel(StrEnum):
    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    SMALL_JOKER = "small_jocker"  # matches the client's image file name


class Card(NamedTuple):
    label: CardLabel
    kind: CardEffectKind
    effect: str


DECK: dict[CardLabel, Card] = {
    card.label: card
    for card in (
        Card(CardLabel.ACE, CardEffectKind.DESIGNATE, "Point at anyone at the table: they drink."),
        Card(CardLabel.TWO, CardEffectKind.SHOW, "Pick a drinking buddy who drinks with you until the next 2."),
        Card(CardLabel.THREE, CardEffectKind.SHOW, "Name a category; go around until someone stalls. They drink."),
        Card(CardLabel.FOUR, CardEffectKind.SHOW, "Everyone touches their nose. Last one drinks."),
        Card(CardLabel.FIVE, CardEffectKind.SHOW, "Take a photo of the table. Anyone not smiling drinks."),
        Card(CardLabel.SIX, CardEffectKind.SHOW, "Everyone raises a hand. Last one drinks."),
        Card(CardLabel.SEVEN, CardEffectKind.SHOW, "Count up from 1, skipping sevens. First mistake drinks."),
        Card(CardLabel.EIGHT, CardEffectKind.RESERVE, "Bathroom pass: keep it for later or use it now."),
        Card(CardLabel.NINE, CardEffectKind.SHOW, "You drink."),
        Card(CardLabel.TEN, CardEffectKind.SHOW, "Everyone to your left and right drinks."),
        Card(CardLabel.JACK, CardEffectKind.SHOW, "The player to your left drinks."),
        Card(CardLabel.QUEEN, CardEffectKind.SHOW, "The player to your right drinks."),
        Card(CardLabel.KING, CardEffectKind.SHOW, "Make a rule. Anyone who breaks it drinks."),
        Card(CardLabel.SMALL_JOKER, CardEffectKind.SHOW, "Truth or dare, chosen by the table."),
    )
}

CARD_LABELS: tuple[CardLabel, ...] = tuple(DECK)


def card_for(label: CardLabel) -> Card:
    return DECK[label]
