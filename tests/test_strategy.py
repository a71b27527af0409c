import random

import pytest

from blackjackpro.cards import Card
from blackjackpro.strategy import (
    BOT_FIRST_NAMES,
    basic_strategy,
    bot_bet,
    dealer_key,
    generate_bot_name,
)


def make_cards(*ranks):
    return [Card(rank, "♣") for rank in ranks]


def up(rank):
    return Card(rank, "♦")


def test_eights_split_against_six():
    decision = basic_strategy(make_cards("8", "8"), 10, up("6"), 1000)
    assert decision.action == "split"


@pytest.mark.parametrize("dealer", ["2", "6", "9", "10", "A"])
def test_fives_never_split(dealer):
    decision = basic_strategy(make_cards("5", "5"), 10, up(dealer), 1000)
    assert decision.action in {"double", "hit"}


def test_split_needs_bankroll_for_second_bet():
    decision = basic_strategy(make_cards("8", "8"), 10, up("6"), 5)
    assert decision.action != "split"


def test_split_can_be_disallowed():
    decision = basic_strategy(make_cards("8", "8"), 10, up("6"), 1000, allow_split=False)
    assert decision.action == "stand"


def test_double_degrades_to_hit_after_two_cards():
    assert basic_strategy(make_cards("A", "7"), 10, up("4"), 1000).action == "double"
    assert basic_strategy(make_cards("A", "3", "4"), 10, up("4"), 1000).action == "hit"
    assert basic_strategy(make_cards("6", "5"), 10, up("7"), 5).action == "hit"


def test_hard_totals():
    assert basic_strategy(make_cards("10", "6"), 10, up("10"), 1000).action == "hit"
    assert basic_strategy(make_cards("10", "6"), 10, up("5"), 1000).action == "stand"
    assert basic_strategy(make_cards("10", "2"), 10, up("3"), 1000).action == "hit"
    assert basic_strategy(make_cards("10", "7"), 10, up("A"), 1000).action == "stand"


def test_dealer_key_normalisation():
    assert dealer_key(up("K")) == 10
    assert dealer_key(up("A")) == "A"
    assert dealer_key(None) == 10
    assert dealer_key(up("7")) == 7


@pytest.mark.parametrize(
    "bankroll, expected",
    [(1000, 15), (200, 5), (600, 10), (10000, 15), (5, 5), (4, 0)],
)
def test_bot_bet(bankroll, expected):
    assert bot_bet(bankroll) == expected


def test_bot_bet_without_cap():
    assert bot_bet(10000, cap=None) == 50
    assert bot_bet(2000, cap=None) == 30


def test_generate_bot_name_is_seedable():
    first = generate_bot_name(random.Random(4))
    assert first == generate_bot_name(random.Random(4))
    assert first.split()[0] in BOT_FIRST_NAMES
