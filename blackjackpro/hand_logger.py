"""File-based game log: settled rounds as JSONL and CSV."""

from __future__ import annotations

import csv
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

from .accounts import PlayerId
from .utils import ensure_dir


@dataclass
class RoundRecord:
    round_id: int
    player_id: PlayerId
    outcome: str
    total_bet: float
    net_payout: float
    hands: List[Dict[str, object]] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)

    @property
    def hand_totals(self) -> List[object]:
        return [hand.get("total") for hand in self.hands]

    def to_dict(self) -> Dict[str, object]:
        return {
            "round_id": self.round_id,
            "player_id": self.player_id,
            "outcome": self.outcome,
            "total_bet": self.total_bet,
            "net_payout": self.net_payout,
            "hands": self.hands,
            "timestamp": self.timestamp,
        }


class JsonlGameLog:
    """Append settled rounds to JSONL and CSV simultaneously."""

    fieldnames = [
        "round_id",
        "player_id",
        "outcome",
        "total_bet",
        "net_payout",
        "num_hands",
        "hand_totals",
        "timestamp",
    ]

    def __init__(self, jsonl_path: str | Path, csv_path: str | Path) -> None:
        self.jsonl_path = Path(jsonl_path)
        self.csv_path = Path(csv_path)
        ensure_dir(self.jsonl_path.parent)
        ensure_dir(self.csv_path.parent)
        write_header = not self.csv_path.exists() or self.csv_path.stat().st_size == 0
        self.json_file = self.jsonl_path.open("a", encoding="utf-8")
        self.csv_file = self.csv_path.open("a", encoding="utf-8", newline="")
        self.writer = csv.DictWriter(self.csv_file, fieldnames=self.fieldnames)
        if write_header:
            self.writer.writeheader()
        self.rounds_logged = 0

    def append(
        self,
        player_id: PlayerId,
        hands: Sequence[Mapping[str, object]],
        outcome: str,
        total_bet: float,
        net_payout: float,
    ) -> None:
        self.rounds_logged += 1
        record = RoundRecord(
            round_id=self.rounds_logged,
            player_id=player_id,
            outcome=outcome,
            total_bet=total_bet,
            net_payout=net_payout,
            hands=[dict(hand) for hand in hands],
        )
        self.log(record)

    def log(self, record: RoundRecord) -> None:
        json.dump(record.to_dict(), self.json_file, ensure_ascii=False)
        self.json_file.write("\n")
        self.writer.writerow(
            {
                "round_id": record.round_id,
                "player_id": record.player_id,
                "outcome": record.outcome,
                "total_bet": record.total_bet,
                "net_payout": record.net_payout,
                "num_hands": len(record.hands),
                "hand_totals": json.dumps(record.hand_totals),
                "timestamp": record.timestamp,
            }
        )
        self.json_file.flush()
        self.csv_file.flush()

    def close(self) -> None:
        self.json_file.close()
        self.csv_file.close()

    def __enter__(self) -> "JsonlGameLog":  # pragma: no cover - convenience wrapper
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - convenience wrapper
        self.close()


def read_jsonl(path: str | Path) -> List[Dict[str, object]]:
    with open(path, encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]


__all__ = ["JsonlGameLog", "RoundRecord", "read_jsonl"]
