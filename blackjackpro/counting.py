"""Card counting systems and the running/true count tracker."""
from __future__ import annotations

import enum
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .cards import CARD_RANKS, CARD_SUITS, CARDS_PER_DECK, Card
from .utils import round_half_up

LOGGER = logging.getLogger(__name__)

MIN_DECKS_REMAINING = 0.5


@dataclass(frozen=True)
class CountingSystem:
    """Point values per rank with optional per-(rank, suit) overrides."""

    name: str
    label: str
    description: str
    values: Mapping[str, float]
    suit_overrides: Mapping[Tuple[str, str], float] = field(default_factory=dict)
    multi_level: bool = False

    def value_for(self, card: Card) -> float:
        override = self.suit_overrides.get((card.rank, card.suit))
        if override is not None:
            return override
        return self.values.get(card.rank, 0)

    @property
    def deck_sum(self) -> float:
        return sum(
            self.value_for(Card(rank, suit)) for rank, _ in CARD_RANKS for suit in CARD_SUITS
        )

    @property
    def balanced(self) -> bool:
        return math.isclose(self.deck_sum, 0.0, abs_tol=1e-9)


COUNTING_SYSTEMS: Dict[str, CountingSystem] = {
    "Hi-Lo": CountingSystem(
        name="Hi-Lo",
        label="Hi-Lo",
        description="Most popular balanced system",
        values={
            "A": -1, "2": 1, "3": 1, "4": 1, "5": 1, "6": 1,
            "7": 0, "8": 0, "9": 0, "10": -1, "J": -1, "Q": -1, "K": -1,
        },
    ),
    "KO": CountingSystem(
        name="KO",
        label="Knock-Out (KO)",
        description="Unbalanced system, easier for beginners",
        values={
            "A": -1, "2": 1, "3": 1, "4": 1, "5": 1, "6": 1,
            "7": 1, "8": 0, "9": 0, "10": -1, "J": -1, "Q": -1, "K": -1,
        },
    ),
    "Red 7": CountingSystem(
        name="Red 7",
        label="Red 7",
        description="Color-based unbalanced system",
        values={
            "A": -1, "2": 1, "3": 1, "4": 1, "5": 1, "6": 1,
            "7": 0, "8": 0, "9": 0, "10": -1, "J": -1, "Q": -1, "K": -1,
        },
        suit_overrides={("7", "♥"): 1, ("7", "♦"): 1},
    ),
    "Omega II": CountingSystem(
        name="Omega II",
        label="Omega II",
        description="Advanced multi-level system",
        values={
            "A": 0, "2": 1, "3": 1, "4": 2, "5": 2, "6": 2,
            "7": 1, "8": 0, "9": -1, "10": -2, "J": -2, "Q": -2, "K": -2,
        },
        multi_level=True,
    ),
}


def get_counting_system(name: str) -> CountingSystem:
    try:
        return COUNTING_SYSTEMS[name]
    except KeyError:
        raise ValueError(
            f"Unknown counting system {name!r}; expected one of {sorted(COUNTING_SYSTEMS)}"
        ) from None


class Advantage(enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    NEUTRAL = "neutral"
    LOW = "low"


@dataclass(frozen=True)
class CountEntry:
    card: str
    delta: float
    running_count: float
    true_count: float
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "card": self.card,
            "delta": self.delta,
            "running_count": self.running_count,
            "true_count": self.true_count,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "CountEntry":
        return cls(
            card=str(data["card"]),
            delta=float(data["delta"]),
            running_count=float(data["running_count"]),
            true_count=float(data["true_count"]),
            timestamp=float(data.get("timestamp", 0.0)),
        )


@dataclass(frozen=True)
class CountAdvice:
    level: str
    message: str
    suggested_bet: float


def true_count(running_count: float, cards_remaining: int) -> float:
    decks_remaining = max(MIN_DECKS_REMAINING, cards_remaining / CARDS_PER_DECK)
    return round_half_up(running_count / decks_remaining, 1)


def advantage_for(tc: float) -> Advantage:
    if tc >= 3:
        return Advantage.HIGH
    if tc >= 1:
        return Advantage.MEDIUM
    if tc <= -2:
        return Advantage.LOW
    return Advantage.NEUTRAL


def suggested_bet_for(tc: float, bankroll: float) -> float:
    base_unit = max(5, math.floor(bankroll / 100))
    units = 1.0
    if tc >= 2:
        units = tc - 1
    if tc >= 5:
        units = min(8.0, tc - 1)
    return min(units * base_unit, bankroll * 0.05)


@dataclass
class CardCounter:
    """Running/true count tracker for a pluggable counting system.

    The counter only sees cards it is told about; the table withholds the
    dealer's hole card until it is turned over. ``cards_remaining`` mirrors
    the shoe and is updated by the table on every draw, face down or not.
    """

    num_decks: int
    system: CountingSystem = field(default_factory=lambda: COUNTING_SYSTEMS["Hi-Lo"])
    running_count: float = 0.0
    total_cards_seen: int = 0
    cards_remaining: Optional[int] = None
    round_log: List[CountEntry] = field(default_factory=list)
    history: List[CountEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.total_cards = self.num_decks * CARDS_PER_DECK
        if self.cards_remaining is None:
            self.cards_remaining = self.total_cards

    def set_system(self, name: str) -> None:
        self.system = get_counting_system(name)
        LOGGER.info("Counting system set to %s", self.system.name)

    def update_shoe(self, cards_remaining: int) -> None:
        self.cards_remaining = cards_remaining

    def report_card(self, card: Card) -> float:
        """Fold a visible card into the count and return its point value."""
        if card.face_down:
            return 0.0
        delta = self.system.value_for(card)
        self.total_cards_seen += 1
        if delta == 0:
            return 0.0
        self.running_count += delta
        entry = CountEntry(
            card=str(card),
            delta=delta,
            running_count=self.running_count,
            true_count=self.true_count(),
            timestamp=time.time(),
        )
        self.round_log.append(entry)
        self.history.append(entry)
        return delta

    def decks_remaining(self) -> float:
        return max(MIN_DECKS_REMAINING, (self.cards_remaining or 0) / CARDS_PER_DECK)

    def true_count(self) -> float:
        return true_count(self.running_count, self.cards_remaining or 0)

    def advantage_level(self) -> Advantage:
        return advantage_for(self.true_count())

    def suggested_bet(self, bankroll: float) -> float:
        return suggested_bet_for(self.true_count(), bankroll)

    def count_advice(self, bankroll: float) -> CountAdvice:
        tc = self.true_count()
        suggested = self.suggested_bet(bankroll)
        if tc >= 3:
            return CountAdvice(
                "favorable", "High count! Increase bet size", min(suggested, bankroll * 0.1)
            )
        if tc >= 1:
            return CountAdvice("slightly-favorable", "Slightly favorable count", suggested)
        if tc <= -2:
            return CountAdvice(
                "unfavorable",
                "Unfavorable count - minimum bet",
                max(5, math.floor(bankroll / 200)),
            )
        return CountAdvice("neutral", "Neutral count", suggested)

    def new_shoe(self) -> None:
        # Unbalanced systems carry their residual bias across reshuffles.
        if self.system.balanced:
            self.running_count = 0.0
        self.total_cards_seen = 0
        self.cards_remaining = self.total_cards
        self.history = []
        LOGGER.info(
            "New shoe; %s running count now %s", self.system.name, self.running_count
        )

    def reset_round(self) -> None:
        self.round_log = []

    def reset_count(self) -> None:
        self.running_count = 0.0
        self.total_cards_seen = 0
        self.round_log = []
        self.history = []

    def snapshot(self) -> Dict[str, object]:
        return {
            "system": self.system.name,
            "num_decks": self.num_decks,
            "running_count": self.running_count,
            "total_cards_seen": self.total_cards_seen,
            "cards_remaining": self.cards_remaining,
            "round_log": [entry.to_dict() for entry in self.round_log],
            "history": [entry.to_dict() for entry in self.history],
        }

    @classmethod
    def restore(cls, data: Mapping[str, object]) -> "CardCounter":
        return cls(
            num_decks=int(data["num_decks"]),
            system=get_counting_system(str(data["system"])),
            running_count=float(data["running_count"]),
            total_cards_seen=int(data["total_cards_seen"]),
            cards_remaining=int(data["cards_remaining"]),
            round_log=[CountEntry.from_dict(item) for item in data.get("round_log", [])],
            history=[CountEntry.from_dict(item) for item in data.get("history", [])],
        )


__all__ = [
    "Advantage",
    "COUNTING_SYSTEMS",
    "CardCounter",
    "CountAdvice",
    "CountEntry",
    "CountingSystem",
    "advantage_for",
    "get_counting_system",
    "suggested_bet_for",
    "true_count",
]
