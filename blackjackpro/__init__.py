"""Blackjack table simulator with card counting and basic-strategy bots."""

from . import (
    accounts,
    cards,
    config,
    counting,
    hand_logger,
    rules,
    scheduler,
    snapshot,
    storage,
    strategy,
    table,
    utils,
)  # noqa: F401

__all__ = [
    "accounts",
    "cards",
    "config",
    "counting",
    "hand_logger",
    "rules",
    "scheduler",
    "snapshot",
    "storage",
    "strategy",
    "table",
    "utils",
]
