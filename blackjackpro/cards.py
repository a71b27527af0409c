"""Cards, multi-deck shoes and shuffling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np


CARD_SUITS = ("♠", "♥", "♦", "♣")
RED_SUITS = frozenset({"♥", "♦"})
CARD_RANKS: List[Tuple[str, int]] = [
    ("A", 11),
    ("2", 2),
    ("3", 3),
    ("4", 4),
    ("5", 5),
    ("6", 6),
    ("7", 7),
    ("8", 8),
    ("9", 9),
    ("10", 10),
    ("J", 10),
    ("Q", 10),
    ("K", 10),
]
RANK_VALUES: Dict[str, int] = dict(CARD_RANKS)
CARDS_PER_DECK = 52


class EmptyShoeError(RuntimeError):
    """Raised when drawing from a shoe that has no cards left."""


@dataclass
class Card:
    rank: str
    suit: str
    deck_index: int = 0
    face_down: bool = False

    def __post_init__(self) -> None:
        if self.rank not in RANK_VALUES:
            raise ValueError(f"Unknown rank: {self.rank!r}")
        if self.suit not in CARD_SUITS:
            raise ValueError(f"Unknown suit: {self.suit!r}")

    @property
    def value(self) -> int:
        """Blackjack value with aces counted high."""
        return RANK_VALUES[self.rank]

    @property
    def is_ace(self) -> bool:
        return self.rank == "A"

    @property
    def is_red(self) -> bool:
        return self.suit in RED_SUITS

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.suit, self.rank, self.deck_index)

    def to_dict(self) -> Dict[str, object]:
        return {
            "rank": self.rank,
            "suit": self.suit,
            "deck_index": self.deck_index,
            "face_down": self.face_down,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Card":
        return cls(
            rank=str(data["rank"]),
            suit=str(data["suit"]),
            deck_index=int(data.get("deck_index", 0)),
            face_down=bool(data.get("face_down", False)),
        )

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"{self.rank}{self.suit}" + ("(down)" if self.face_down else "")


def shuffle_cards(cards: List[Card], rng: np.random.Generator) -> List[Card]:
    """Fisher-Yates shuffle in place; returns ``cards`` for chaining."""
    for i in range(len(cards) - 1, 0, -1):
        j = int(rng.integers(0, i + 1))
        cards[i], cards[j] = cards[j], cards[i]
    return cards


def build_shoe(num_decks: int, rng: np.random.Generator) -> List[Card]:
    if num_decks < 1:
        raise ValueError("num_decks must be at least 1")
    cards = [
        Card(rank, suit, deck_index)
        for deck_index in range(num_decks)
        for suit in CARD_SUITS
        for rank, _ in CARD_RANKS
    ]
    return shuffle_cards(cards, rng)


@dataclass
class Shoe:
    """Working set of shuffled cards; draws pop from the end."""

    num_decks: int
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    cards: List[Card] = field(default_factory=list)
    dealt: int = 0

    def __post_init__(self) -> None:
        self.total_cards = self.num_decks * CARDS_PER_DECK
        if not self.cards:
            self.reset()

    def reset(self) -> None:
        self.cards = build_shoe(self.num_decks, self.rng)
        self.dealt = 0

    def draw(self) -> Card:
        if not self.cards:
            raise EmptyShoeError("Shoe is empty; reshuffle before drawing")
        card = self.cards.pop()
        self.dealt += 1
        return card

    @property
    def cards_remaining(self) -> int:
        return len(self.cards)

    @property
    def penetration_progress(self) -> float:
        return 0.0 if self.total_cards == 0 else self.dealt / self.total_cards

    def needs_reshuffle(self, penetration: float) -> bool:
        return self.penetration_progress >= penetration

    def to_dict(self) -> Dict[str, object]:
        return {
            "num_decks": self.num_decks,
            "dealt": self.dealt,
            "cards": [card.to_dict() for card in self.cards],
        }

    @classmethod
    def from_dict(
        cls, data: Dict[str, object], rng: Optional[np.random.Generator] = None
    ) -> "Shoe":
        shoe = cls(
            num_decks=int(data["num_decks"]),
            rng=rng if rng is not None else np.random.default_rng(),
        )
        # an exhausted shoe round-trips as exhausted, not as a fresh one
        shoe.cards = [Card.from_dict(item) for item in data["cards"]]
        shoe.dealt = int(data["dealt"])
        return shoe


__all__ = [
    "CARD_SUITS",
    "CARD_RANKS",
    "CARDS_PER_DECK",
    "RANK_VALUES",
    "RED_SUITS",
    "Card",
    "EmptyShoeError",
    "Shoe",
    "build_shoe",
    "shuffle_cards",
]
