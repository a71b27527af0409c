"""SQLite-backed player accounts, game history and round snapshots.

One file holds everything the table persists between sessions: player
bankrolls and lifetime stats, per-player settings, the settled-round log and
the in-flight round snapshot used for crash recovery.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Sequence

from .accounts import GameRecord, PlayerStats
from .utils import from_json, to_json

LOGGER = logging.getLogger(__name__)

DEFAULT_BANKROLL = 1000.0


class SqliteStore:
    """Implements the account, game-log and snapshot protocols on SQLite."""

    def __init__(self, db_path: str | Path = "blackjackpro.db") -> None:
        self.db_path = str(db_path) if str(db_path) == ":memory:" else str(Path(db_path).resolve())
        self._lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None
        self._init_database()

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = sqlite3.connect(
                self.db_path, check_same_thread=False, timeout=30.0
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    @contextmanager
    def get_cursor(self) -> Iterator[sqlite3.Cursor]:
        """Cursor with commit on success and rollback on any error."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def _init_database(self) -> None:
        with self.get_cursor() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS players (
                    player_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    bankroll REAL NOT NULL DEFAULT 1000,
                    total_hands INTEGER NOT NULL DEFAULT 0,
                    total_wins INTEGER NOT NULL DEFAULT 0,
                    total_losses INTEGER NOT NULL DEFAULT 0,
                    biggest_win REAL NOT NULL DEFAULT 0,
                    biggest_loss REAL NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    last_played REAL NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS game_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    player_id TEXT NOT NULL,
                    hands TEXT NOT NULL,
                    outcome TEXT NOT NULL,
                    bet REAL NOT NULL,
                    payout REAL NOT NULL,
                    timestamp REAL NOT NULL,
                    FOREIGN KEY (player_id) REFERENCES players (player_id) ON DELETE CASCADE
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS player_settings (
                    player_id TEXT PRIMARY KEY,
                    settings TEXT NOT NULL,
                    updated_at REAL NOT NULL,
                    FOREIGN KEY (player_id) REFERENCES players (player_id) ON DELETE CASCADE
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    saved_at REAL NOT NULL
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_history_player "
                "ON game_history (player_id, timestamp)"
            )
        LOGGER.info("Database initialized at %s", self.db_path)

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------
    def create_player(
        self, name: str, bankroll: float = DEFAULT_BANKROLL, player_id: Optional[str] = None
    ) -> str:
        player_id = player_id or uuid.uuid4().hex
        now = time.time()
        with self.get_cursor() as cursor:
            cursor.execute(
                "INSERT INTO players (player_id, name, bankroll, created_at, last_played) "
                "VALUES (?, ?, ?, ?, ?)",
                (player_id, name, float(bankroll), now, now),
            )
        LOGGER.info("Created player %s (%s) with bankroll %.2f", name, player_id, bankroll)
        return player_id

    def get_player(self, player_id: str) -> Optional[Dict[str, object]]:
        with self.get_cursor() as cursor:
            cursor.execute("SELECT * FROM players WHERE player_id = ?", (player_id,))
            row = cursor.fetchone()
        if row is None:
            return None
        player = dict(row)
        stats = self._stats_from_row(row)
        player["win_rate"] = stats.win_rate
        return player

    def list_players(self) -> List[Dict[str, object]]:
        with self.get_cursor() as cursor:
            cursor.execute("SELECT * FROM players ORDER BY last_played DESC")
            return [dict(row) for row in cursor.fetchall()]

    def delete_player(self, player_id: str) -> bool:
        with self.get_cursor() as cursor:
            cursor.execute("DELETE FROM players WHERE player_id = ?", (player_id,))
            deleted = cursor.rowcount > 0
            cursor.execute("DELETE FROM snapshots WHERE key = ?", (f"round:{player_id}",))
        if deleted:
            LOGGER.info("Deleted player %s and their history", player_id)
        return deleted

    @staticmethod
    def _stats_from_row(row: sqlite3.Row) -> PlayerStats:
        return PlayerStats(
            total_hands=row["total_hands"],
            total_wins=row["total_wins"],
            total_losses=row["total_losses"],
            biggest_win=row["biggest_win"],
            biggest_loss=row["biggest_loss"],
        )

    def get_stats(self, player_id: str) -> PlayerStats:
        with self.get_cursor() as cursor:
            cursor.execute("SELECT * FROM players WHERE player_id = ?", (player_id,))
            row = cursor.fetchone()
        if row is None:
            raise KeyError(player_id)
        return self._stats_from_row(row)

    # ------------------------------------------------------------------
    # PlayerAccount
    # ------------------------------------------------------------------
    def get_bankroll(self, player_id: str) -> float:
        with self.get_cursor() as cursor:
            cursor.execute("SELECT bankroll FROM players WHERE player_id = ?", (player_id,))
            row = cursor.fetchone()
        if row is None:
            raise KeyError(player_id)
        return float(row["bankroll"])

    def adjust_bankroll(self, player_id: str, delta: float) -> float:
        with self.get_cursor() as cursor:
            cursor.execute(
                "UPDATE players SET bankroll = bankroll + ?, last_played = ? WHERE player_id = ?",
                (float(delta), time.time(), player_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(player_id)
            cursor.execute("SELECT bankroll FROM players WHERE player_id = ?", (player_id,))
            balance = float(cursor.fetchone()["bankroll"])
        LOGGER.debug("Bankroll for %s adjusted by %+.2f to %.2f", player_id, delta, balance)
        return balance

    def get_settings(self, player_id: str) -> Dict[str, object]:
        with self.get_cursor() as cursor:
            cursor.execute(
                "SELECT settings FROM player_settings WHERE player_id = ?", (player_id,)
            )
            row = cursor.fetchone()
        if row is None:
            return {}
        return from_json(row["settings"])

    def put_settings(self, player_id: str, settings: Mapping[str, object]) -> None:
        with self.get_cursor() as cursor:
            cursor.execute(
                "INSERT INTO player_settings (player_id, settings, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(player_id) DO UPDATE SET "
                "settings = excluded.settings, updated_at = excluded.updated_at",
                (player_id, to_json(dict(settings)), time.time()),
            )

    # ------------------------------------------------------------------
    # GameLogSink
    # ------------------------------------------------------------------
    def append(
        self,
        player_id: str,
        hands: Sequence[Mapping[str, object]],
        outcome: str,
        total_bet: float,
        net_payout: float,
    ) -> None:
        now = time.time()
        with self.get_cursor() as cursor:
            cursor.execute("SELECT * FROM players WHERE player_id = ?", (player_id,))
            row = cursor.fetchone()
            if row is None:
                raise KeyError(player_id)
            stats = self._stats_from_row(row)
            stats.record(outcome, net_payout)
            cursor.execute(
                "INSERT INTO game_history (player_id, hands, outcome, bet, payout, timestamp) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (player_id, json.dumps([dict(h) for h in hands]), outcome,
                 float(total_bet), float(net_payout), now),
            )
            cursor.execute(
                """
                UPDATE players SET total_hands = ?, total_wins = ?, total_losses = ?,
                    biggest_win = ?, biggest_loss = ?, last_played = ?
                WHERE player_id = ?
                """,
                (stats.total_hands, stats.total_wins, stats.total_losses,
                 stats.biggest_win, stats.biggest_loss, now, player_id),
            )

    def game_history(self, player_id: str, limit: int = 50) -> List[GameRecord]:
        with self.get_cursor() as cursor:
            cursor.execute(
                "SELECT * FROM game_history WHERE player_id = ? "
                "ORDER BY timestamp DESC, id DESC LIMIT ?",
                (player_id, limit),
            )
            rows = cursor.fetchall()
        return [
            GameRecord(
                player_id=row["player_id"],
                hands=json.loads(row["hands"]),
                outcome=row["outcome"],
                bet=row["bet"],
                payout=row["payout"],
                timestamp=row["timestamp"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # SnapshotStore
    # ------------------------------------------------------------------
    def save(self, key: str, snapshot: Mapping[str, object]) -> None:
        with self.get_cursor() as cursor:
            cursor.execute(
                "INSERT INTO snapshots (key, payload, saved_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET "
                "payload = excluded.payload, saved_at = excluded.saved_at",
                (key, to_json(dict(snapshot)), time.time()),
            )

    def load(self, key: str) -> Optional[Dict[str, object]]:
        with self.get_cursor() as cursor:
            cursor.execute("SELECT payload FROM snapshots WHERE key = ?", (key,))
            row = cursor.fetchone()
        if row is None:
            return None
        return from_json(row["payload"])

    def clear(self, key: str) -> None:
        with self.get_cursor() as cursor:
            cursor.execute("DELETE FROM snapshots WHERE key = ?", (key,))


__all__ = ["DEFAULT_BANKROLL", "SqliteStore"]
