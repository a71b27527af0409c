"""Interfaces to the external player-account, game-log and snapshot stores.

The table never owns persistence. It reads the main player's bankroll and
settings through a :class:`PlayerAccount`, appends settled rounds to a
:class:`GameLogSink` and parks in-flight rounds in a :class:`SnapshotStore`.
:class:`InMemoryAccounts` implements all three for tests and headless runs;
:mod:`blackjackpro.storage` provides a SQLite-backed equivalent.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

PlayerId = Any


class PlayerAccount(Protocol):
    def get_bankroll(self, player_id: PlayerId) -> float: ...

    def adjust_bankroll(self, player_id: PlayerId, delta: float) -> float: ...

    def get_settings(self, player_id: PlayerId) -> Dict[str, object]: ...

    def put_settings(self, player_id: PlayerId, settings: Mapping[str, object]) -> None: ...


class GameLogSink(Protocol):
    def append(
        self,
        player_id: PlayerId,
        hands: Sequence[Mapping[str, object]],
        outcome: str,
        total_bet: float,
        net_payout: float,
    ) -> None: ...


class SnapshotStore(Protocol):
    def save(self, key: str, snapshot: Mapping[str, object]) -> None: ...

    def load(self, key: str) -> Optional[Dict[str, object]]: ...

    def clear(self, key: str) -> None: ...


@dataclass
class PlayerStats:
    total_hands: int = 0
    total_wins: int = 0
    total_losses: int = 0
    biggest_win: float = 0.0
    biggest_loss: float = 0.0

    def record(self, outcome: str, net_payout: float) -> None:
        self.total_hands += 1
        if outcome in ("win", "blackjack"):
            self.total_wins += 1
            self.biggest_win = max(self.biggest_win, net_payout)
        elif outcome == "lose":
            self.total_losses += 1
            self.biggest_loss = max(self.biggest_loss, abs(net_payout))

    @property
    def win_rate(self) -> int:
        if self.total_hands == 0:
            return 0
        return round(self.total_wins / self.total_hands * 100)


@dataclass
class GameRecord:
    player_id: PlayerId
    hands: List[Dict[str, object]]
    outcome: str
    bet: float
    payout: float
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, object]:
        return {
            "player_id": self.player_id,
            "hands": self.hands,
            "outcome": self.outcome,
            "bet": self.bet,
            "payout": self.payout,
            "timestamp": self.timestamp,
        }


@dataclass
class InMemoryAccounts:
    """Dictionary-backed accounts, game log and snapshot store."""

    bankrolls: Dict[PlayerId, float] = field(default_factory=dict)
    settings: Dict[PlayerId, Dict[str, object]] = field(default_factory=dict)
    stats: Dict[PlayerId, PlayerStats] = field(default_factory=dict)
    records: List[GameRecord] = field(default_factory=list)
    snapshots: Dict[str, Dict[str, object]] = field(default_factory=dict)

    def create_player(self, player_id: PlayerId, bankroll: float = 1000.0) -> PlayerId:
        self.bankrolls[player_id] = float(bankroll)
        self.stats[player_id] = PlayerStats()
        return player_id

    def get_bankroll(self, player_id: PlayerId) -> float:
        return self.bankrolls[player_id]

    def adjust_bankroll(self, player_id: PlayerId, delta: float) -> float:
        self.bankrolls[player_id] = self.bankrolls[player_id] + delta
        return self.bankrolls[player_id]

    def get_settings(self, player_id: PlayerId) -> Dict[str, object]:
        return dict(self.settings.get(player_id, {}))

    def put_settings(self, player_id: PlayerId, settings: Mapping[str, object]) -> None:
        self.settings[player_id] = dict(settings)

    def append(
        self,
        player_id: PlayerId,
        hands: Sequence[Mapping[str, object]],
        outcome: str,
        total_bet: float,
        net_payout: float,
    ) -> None:
        self.records.append(
            GameRecord(
                player_id=player_id,
                hands=[dict(hand) for hand in hands],
                outcome=outcome,
                bet=total_bet,
                payout=net_payout,
            )
        )
        self.stats.setdefault(player_id, PlayerStats()).record(outcome, net_payout)

    def history(self, player_id: PlayerId, limit: int = 50) -> List[GameRecord]:
        matches = [record for record in self.records if record.player_id == player_id]
        return list(reversed(matches))[:limit]

    def save(self, key: str, snapshot: Mapping[str, object]) -> None:
        self.snapshots[key] = copy.deepcopy(dict(snapshot))

    def load(self, key: str) -> Optional[Dict[str, object]]:
        snapshot = self.snapshots.get(key)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    def clear(self, key: str) -> None:
        self.snapshots.pop(key, None)


__all__ = [
    "GameLogSink",
    "GameRecord",
    "InMemoryAccounts",
    "PlayerAccount",
    "PlayerId",
    "PlayerStats",
    "SnapshotStore",
]
