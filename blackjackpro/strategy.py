"""Basic-strategy tables and the bot seat policy."""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, Literal, Optional, Sequence, Union

from .cards import Card
from .rules import can_split, hand_value
from .utils import clamp

LOGGER = logging.getLogger(__name__)

ActionName = Literal["hit", "stand", "double", "split"]
DealerKey = Union[int, str]

DEALER_KEYS: Sequence[DealerKey] = (2, 3, 4, 5, 6, 7, 8, 9, 10, "A")
ACTION_CODES: Dict[str, ActionName] = {"H": "hit", "S": "stand", "D": "double", "P": "split"}


def _row(codes: str) -> Dict[DealerKey, ActionName]:
    """Expand a chart row written as one code per dealer card, 2 through A."""
    actions = codes.split()
    if len(actions) != len(DEALER_KEYS):
        raise ValueError(f"Strategy row needs {len(DEALER_KEYS)} entries: {codes!r}")
    return {key: ACTION_CODES[code] for key, code in zip(DEALER_KEYS, actions)}


# Dealer hits soft 17, multi-deck. Columns: 2 3 4 5 6 7 8 9 10 A
HARD_TOTALS: Dict[int, Dict[DealerKey, ActionName]] = {
    5: _row("H H H H H H H H H H"),
    6: _row("H H H H H H H H H H"),
    7: _row("H H H H H H H H H H"),
    8: _row("H H H H H H H H H H"),
    9: _row("H D D D D H H H H H"),
    10: _row("D D D D D D D D H H"),
    11: _row("D D D D D D D D D D"),
    12: _row("H H S S S H H H H H"),
    13: _row("S S S S S H H H H H"),
    14: _row("S S S S S H H H H H"),
    15: _row("S S S S S H H H H H"),
    16: _row("S S S S S H H H H H"),
    17: _row("S S S S S S S S S S"),
    18: _row("S S S S S S S S S S"),
    19: _row("S S S S S S S S S S"),
    20: _row("S S S S S S S S S S"),
    21: _row("S S S S S S S S S S"),
}

SOFT_TOTALS: Dict[int, Dict[DealerKey, ActionName]] = {
    13: _row("H H H D D H H H H H"),
    14: _row("H H H D D H H H H H"),
    15: _row("H H D D D H H H H H"),
    16: _row("H H D D D H H H H H"),
    17: _row("H D D D D H H H H H"),
    18: _row("S D D D D S S H H H"),
    19: _row("S S S S S S S S S S"),
    20: _row("S S S S S S S S S S"),
    21: _row("S S S S S S S S S S"),
}

PAIR_SPLITTING: Dict[str, Dict[DealerKey, ActionName]] = {
    "A": _row("P P P P P P P P P P"),
    "2": _row("P P P P P P H H H H"),
    "3": _row("P P P P P P H H H H"),
    "4": _row("H H H P P H H H H H"),
    "5": _row("D D D D D D D D H H"),
    "6": _row("P P P P P H H H H H"),
    "7": _row("P P P P P P H H H H"),
    "8": _row("P P P P P P P P P P"),
    "9": _row("P P P P P S P P S S"),
    "10": _row("S S S S S S S S S S"),
}

BOT_FIRST_NAMES = (
    "Lucky", "Ace", "Diamond", "Chip", "Vegas", "Royal", "Jack",
    "Queen", "King", "Spade", "Heart", "Club", "High", "Wild",
)
BOT_LAST_NAMES = (
    "McBet", "Dealer", "Winner", "Roller", "Counter", "Sharp",
    "Pro", "Master", "Champion", "Bluff", "Stakes", "Cards",
)


def dealer_key(card: Optional[Card]) -> DealerKey:
    """Normalize a dealer up-card to a chart column; unknown cards count as 10."""
    if card is None:
        return 10
    if card.is_ace:
        return "A"
    return card.value


def pair_key(cards: Sequence[Card]) -> str:
    first = cards[0]
    if first.is_ace:
        return "A"
    return str(first.value)


@dataclass(frozen=True)
class BotDecision:
    action: ActionName
    rationale: str


def _degrade_double(
    action: ActionName, cards: Sequence[Card], bet: float, bankroll: float
) -> ActionName:
    if action != "double":
        return action
    if len(cards) == 2 and bankroll >= bet:
        return "double"
    return "hit"


def basic_strategy(
    cards: Sequence[Card],
    bet: float,
    dealer_up_card: Optional[Card],
    bankroll: float,
    allow_split: bool = True,
) -> BotDecision:
    """Return the chart decision for a hand, with the reason it was chosen."""

    value = hand_value(cards)
    dealer = dealer_key(dealer_up_card)

    if allow_split and can_split(cards):
        pair_action = PAIR_SPLITTING.get(pair_key(cards), {}).get(dealer)
        if pair_action == "split" and bankroll >= bet:
            return BotDecision("split", "Pair splitting table")

    if value.soft and 13 <= value.total <= 21:
        action = SOFT_TOTALS[value.total][dealer]
        return BotDecision(
            _degrade_double(action, cards, bet, bankroll), "Soft total table"
        )

    if 5 <= value.total <= 21:
        action = HARD_TOTALS[value.total][dealer]
        return BotDecision(
            _degrade_double(action, cards, bet, bankroll), "Hard total table"
        )

    if value.total >= 17:
        return BotDecision("stand", "Fallback: stiff total")
    if value.total <= 11:
        return BotDecision("hit", "Fallback: cannot bust")
    if dealer == "A" or dealer >= 7:
        return BotDecision("hit", "Fallback: strong dealer card")
    return BotDecision("stand", "Fallback: weak dealer card")


def decide(hand, dealer_up_card: Optional[Card], bankroll: float, allow_split: bool = True) -> ActionName:
    """Bot policy entry point for a table hand (anything with ``cards`` and ``bet``)."""
    decision = basic_strategy(hand.cards, hand.bet, dealer_up_card, bankroll, allow_split)
    LOGGER.debug(
        "Bot decision %s for %s vs %s (%s)",
        decision.action,
        [str(card) for card in hand.cards],
        dealer_up_card,
        decision.rationale,
    )
    return decision.action


def bot_bet(
    bankroll: float,
    min_bet: float = 5,
    max_bet: float = 50,
    cap: Optional[float] = 15,
) -> float:
    """Conservative bot wager: about 1.5% of bankroll in multiples of five."""
    if bankroll < min_bet:
        return 0.0
    ceiling = max(min_bet, min(max_bet, bankroll * 0.1))
    kelly_bet = math.floor(bankroll * 0.015)
    bet = clamp(kelly_bet, min_bet, ceiling)
    bet = max(min_bet, math.floor(bet / 5 + 0.5) * 5)
    if cap is not None:
        bet = min(bet, max(cap, min_bet))
    return float(min(bet, bankroll))


def generate_bot_name(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"{rng.choice(BOT_FIRST_NAMES)} {rng.choice(BOT_LAST_NAMES)}"


__all__ = [
    "ActionName",
    "BotDecision",
    "HARD_TOTALS",
    "PAIR_SPLITTING",
    "SOFT_TOTALS",
    "basic_strategy",
    "bot_bet",
    "dealer_key",
    "decide",
    "generate_bot_name",
]
