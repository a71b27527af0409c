"""Table configuration and per-player settings."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from .counting import COUNTING_SYSTEMS
from .rules import parse_payout_ratio


@dataclass
class TableConfig:
    num_decks: int = 6
    penetration: float = 0.75
    blackjack_payout: float = 1.5
    max_seats: int = 7
    max_hands: int = 4
    min_bet: float = 5.0
    bot_min_bet: float = 5.0
    bot_max_bet: float = 50.0
    bot_bet_cap: Optional[float] = 15.0
    bot_bankroll: float = 1000.0
    default_bet: float = 15.0
    deal_delay: float = 0.0
    bot_delay: float = 0.0
    dealer_delay: float = 0.0
    blackjack_ack_delay: float = 0.0
    autosave_interval: float = 5.0
    snapshot_max_age: float = 3600.0
    strict: bool = False
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.num_decks < 1:
            raise ValueError("num_decks must be at least 1")
        if not 0 < self.penetration <= 1:
            raise ValueError("penetration must be in (0, 1]")
        if self.blackjack_payout <= 0:
            raise ValueError("blackjack_payout must be positive")
        if not 1 <= self.max_seats <= 7:
            raise ValueError("max_seats must be between 1 and 7")
        if self.max_hands < 1:
            raise ValueError("max_hands must be at least 1")
        if self.min_bet <= 0 or self.bot_min_bet <= 0:
            raise ValueError("minimum bets must be positive")
        if self.bot_max_bet < self.bot_min_bet:
            raise ValueError("bot_max_bet must be >= bot_min_bet")
        delays = (self.deal_delay, self.bot_delay, self.dealer_delay, self.blackjack_ack_delay)
        if any(delay < 0 for delay in delays):
            raise ValueError("delays must be non-negative")
        if self.autosave_interval <= 0:
            raise ValueError("autosave_interval must be positive")


@dataclass
class PlayerSettings:
    """Player preferences stored by the account collaborator."""

    counting_system: str = "Hi-Lo"
    num_decks: int = 6
    dealer_speed: float = 0.0
    blackjack_payout: str = "3:2"
    show_count: bool = True
    show_true_count: bool = True
    show_hints: bool = True
    auto_play: bool = False

    def __post_init__(self) -> None:
        if self.counting_system not in COUNTING_SYSTEMS:
            raise ValueError(f"Unknown counting system {self.counting_system!r}")
        parse_payout_ratio(self.blackjack_payout)
        if self.num_decks < 1:
            raise ValueError("num_decks must be at least 1")
        if self.dealer_speed < 0:
            raise ValueError("dealer_speed must be non-negative")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, object]]) -> "PlayerSettings":
        """Merge stored values over the defaults, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        values = {
            key: value
            for key, value in (data or {}).items()
            if key in known and value is not None
        }
        return cls(**values)

    def to_dict(self) -> Dict[str, object]:
        return dataclasses.asdict(self)

    def merged(self, updates: Mapping[str, object]) -> "PlayerSettings":
        return PlayerSettings.from_dict({**self.to_dict(), **updates})

    def apply_to(self, config: Optional[TableConfig] = None) -> TableConfig:
        base = config or TableConfig()
        return dataclasses.replace(
            base,
            num_decks=self.num_decks,
            blackjack_payout=parse_payout_ratio(self.blackjack_payout),
            deal_delay=self.dealer_speed / 2,
            dealer_delay=self.dealer_speed,
        )


__all__ = ["PlayerSettings", "TableConfig"]
