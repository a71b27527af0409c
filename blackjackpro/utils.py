"""Shared helpers for the blackjack table."""

from __future__ import annotations

import json
import math
import os
from pathlib import Path

import numpy as np


def ensure_dir(path: str | os.PathLike[str]) -> Path:
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def to_json(data: dict) -> str:
    return json.dumps(data, sort_keys=True, ensure_ascii=False)


def from_json(text: str) -> dict:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like a pocket calculator; ``round()`` would round half to even."""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def clamp(value: float, low: float, high: float) -> float:
    return float(np.clip(value, low, high))


def format_amount(amount: float) -> str:
    amount = float(amount)
    if amount.is_integer():
        return f"${int(abs(amount))}"
    return f"${abs(amount):.2f}"


__all__ = [
    "clamp",
    "ensure_dir",
    "format_amount",
    "from_json",
    "round_half_up",
    "to_json",
]
