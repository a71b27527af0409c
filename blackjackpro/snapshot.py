"""Round snapshot envelope, freshness checks and periodic autosave."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Dict, Mapping, Optional

from .scheduler import Scheduler, TimerHandle

if TYPE_CHECKING:  # pragma: no cover
    from .table import Table

LOGGER = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotError(ValueError):
    """Raised when a stored snapshot cannot be turned back into a round."""


def wrap_snapshot(state: Mapping[str, object], now: Optional[float] = None) -> Dict[str, object]:
    return {
        "version": SNAPSHOT_VERSION,
        "timestamp": time.time() if now is None else now,
        "state": dict(state),
    }


def unwrap_snapshot(snapshot: Mapping[str, object]) -> Dict[str, object]:
    version = snapshot.get("version")
    if version != SNAPSHOT_VERSION:
        raise SnapshotError(f"Unsupported snapshot version {version!r}")
    state = snapshot.get("state")
    if not isinstance(state, dict):
        raise SnapshotError("Snapshot has no round state")
    return state


def snapshot_age(snapshot: Mapping[str, object], now: Optional[float] = None) -> float:
    try:
        timestamp = float(snapshot["timestamp"])
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotError("Snapshot has no usable timestamp") from exc
    current = time.time() if now is None else now
    return current - timestamp


def is_fresh(snapshot: Mapping[str, object], max_age: float, now: Optional[float] = None) -> bool:
    age = snapshot_age(snapshot, now)
    if age < 0:
        LOGGER.warning("Snapshot timestamp is %.0fs in the future", -age)
        return False
    return age <= max_age


class Autosaver:
    """Save the table's round on a fixed interval while a round is in flight."""

    def __init__(self, table: "Table", scheduler: Scheduler, interval: float) -> None:
        self.table = table
        self.scheduler = scheduler
        self.interval = interval
        self.saves = 0
        self._handle: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is None:
            self._handle = self.scheduler.call_every(self.interval, self.tick)
            LOGGER.debug("Autosave every %ss", self.interval)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def tick(self) -> None:
        from .table import ACTIVE_PHASES

        if self.table.phase not in ACTIVE_PHASES:
            return
        if self.table.save_snapshot():
            self.saves += 1


__all__ = [
    "Autosaver",
    "SNAPSHOT_VERSION",
    "SnapshotError",
    "is_fresh",
    "snapshot_age",
    "unwrap_snapshot",
    "wrap_snapshot",
]
