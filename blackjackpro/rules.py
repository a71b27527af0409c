"""Deterministic blackjack rules: hand valuation, legality and payouts."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Literal, Sequence

from .cards import Card

DealerAction = Literal["hit", "stand"]

PAYOUT_RATIOS: Dict[str, float] = {
    "3:2": 1.5,
    "6:5": 1.2,
    "1:1": 1.0,
}


class Outcome(enum.Enum):
    WIN = "win"
    LOSE = "lose"
    PUSH = "push"
    BLACKJACK = "blackjack"


@dataclass(frozen=True)
class HandValue:
    total: int
    soft: bool
    busted: bool


def hand_value(cards: Sequence[Card]) -> HandValue:
    """Value a hand with aces counted high until that would bust."""
    total = 0
    aces = 0
    for card in cards:
        total += card.value
        if card.is_ace:
            aces += 1
    while total > 21 and aces > 0:
        total -= 10
        aces -= 1
    return HandValue(total=total, soft=aces > 0 and total <= 21, busted=total > 21)


def is_blackjack(cards: Sequence[Card]) -> bool:
    return len(cards) == 2 and hand_value(cards).total == 21


def can_split(cards: Sequence[Card]) -> bool:
    return len(cards) == 2 and cards[0].value == cards[1].value


def can_double_down(cards: Sequence[Card], bankroll: float, bet: float) -> bool:
    return len(cards) == 2 and bankroll >= bet


def dealer_action(dealer_cards: Sequence[Card]) -> DealerAction:
    """Dealer hits below 17 and on soft 17."""
    value = hand_value(dealer_cards)
    if value.total < 17:
        return "hit"
    if value.total == 17 and value.soft:
        return "hit"
    return "stand"


def hand_outcome(
    player_cards: Sequence[Card],
    dealer_cards: Sequence[Card],
    player_blackjack: bool = False,
    dealer_blackjack: bool = False,
) -> Outcome:
    player = hand_value(player_cards)
    dealer = hand_value(dealer_cards)

    if player.busted:
        return Outcome.LOSE
    if dealer.busted:
        return Outcome.WIN

    if player_blackjack and dealer_blackjack:
        return Outcome.PUSH
    if player_blackjack:
        return Outcome.BLACKJACK
    if dealer_blackjack:
        return Outcome.LOSE

    if player.total > dealer.total:
        return Outcome.WIN
    if player.total < dealer.total:
        return Outcome.LOSE
    return Outcome.PUSH


def payout_multiplier(outcome: Outcome, blackjack_payout: float = 1.5) -> float:
    if outcome is Outcome.BLACKJACK:
        return blackjack_payout
    if outcome is Outcome.WIN:
        return 1.0
    if outcome is Outcome.PUSH:
        return 0.0
    return -1.0


def parse_payout_ratio(ratio: str) -> float:
    """Translate a table ratio such as ``"6:5"`` into a multiplier."""
    try:
        return PAYOUT_RATIOS[ratio]
    except KeyError:
        raise ValueError(
            f"Unsupported blackjack payout {ratio!r}; expected one of {sorted(PAYOUT_RATIOS)}"
        ) from None


__all__ = [
    "DealerAction",
    "HandValue",
    "Outcome",
    "PAYOUT_RATIOS",
    "can_double_down",
    "can_split",
    "dealer_action",
    "hand_outcome",
    "hand_value",
    "is_blackjack",
    "parse_payout_ratio",
    "payout_multiplier",
]
