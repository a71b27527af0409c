import numpy as np
import pytest

from blackjackpro.cards import Card, Shoe
from blackjackpro.counting import (
    COUNTING_SYSTEMS,
    Advantage,
    CardCounter,
    advantage_for,
    get_counting_system,
    suggested_bet_for,
    true_count,
)


def make_card(rank: str, suit: str = "♠") -> Card:
    return Card(rank, suit)


def test_system_balance_flags():
    assert COUNTING_SYSTEMS["Hi-Lo"].balanced
    assert COUNTING_SYSTEMS["Omega II"].balanced
    assert not COUNTING_SYSTEMS["KO"].balanced
    assert not COUNTING_SYSTEMS["Red 7"].balanced


def test_red_seven_uses_suit_override():
    system = get_counting_system("Red 7")
    assert system.value_for(make_card("7", "♥")) == 1
    assert system.value_for(make_card("7", "♦")) == 1
    assert system.value_for(make_card("7", "♠")) == 0


def test_unknown_system_rejected():
    with pytest.raises(ValueError):
        get_counting_system("Zen")


@pytest.mark.parametrize("name", ["Hi-Lo", "Omega II"])
def test_balanced_count_returns_to_zero_over_full_shoe(name):
    shoe = Shoe(num_decks=2, rng=np.random.default_rng(3))
    counter = CardCounter(num_decks=2, system=COUNTING_SYSTEMS[name])
    while shoe.cards:
        counter.report_card(shoe.draw())
        counter.update_shoe(shoe.cards_remaining)
    assert counter.running_count == 0
    assert counter.total_cards_seen == 104


def test_face_down_card_not_counted():
    counter = CardCounter(num_decks=6)
    hole = make_card("K")
    hole.face_down = True
    assert counter.report_card(hole) == 0
    assert counter.running_count == 0
    assert counter.total_cards_seen == 0


def test_zero_value_cards_seen_but_not_logged():
    counter = CardCounter(num_decks=6)
    counter.report_card(make_card("8"))
    assert counter.total_cards_seen == 1
    assert counter.history == []
    counter.report_card(make_card("5"))
    assert counter.running_count == 1
    assert len(counter.history) == 1
    assert counter.history[0].card == "5♠"
    assert counter.round_log == counter.history


def test_true_count_floors_decks_at_half():
    assert true_count(3, 10) == 6.0
    assert true_count(6, 156) == 2.0
    assert true_count(1, 312) == 0.2


def test_true_count_monotonic_in_running_count():
    values = [true_count(rc, 200) for rc in range(-10, 11)]
    assert values == sorted(values)


def test_advantage_levels():
    assert advantage_for(3) is Advantage.HIGH
    assert advantage_for(1.5) is Advantage.MEDIUM
    assert advantage_for(0) is Advantage.NEUTRAL
    assert advantage_for(-2) is Advantage.LOW


def test_suggested_bet_steps():
    assert suggested_bet_for(0, 1000) == 10
    assert suggested_bet_for(3, 1000) == 20
    assert suggested_bet_for(10, 10000) == 500
    assert suggested_bet_for(10, 1000) == 50


def test_new_shoe_resets_only_balanced_systems():
    hilo = CardCounter(num_decks=6)
    hilo.report_card(make_card("5"))
    hilo.new_shoe()
    assert hilo.running_count == 0

    ko = CardCounter(num_decks=6, system=COUNTING_SYSTEMS["KO"])
    ko.report_card(make_card("5"))
    ko.report_card(make_card("7"))
    ko.new_shoe()
    assert ko.running_count == 2
    assert ko.total_cards_seen == 0
    assert ko.cards_remaining == 312


def test_count_advice_levels():
    counter = CardCounter(num_decks=1, cards_remaining=52)
    counter.running_count = 4
    advice = counter.count_advice(1000)
    assert advice.level == "favorable"
    assert advice.suggested_bet <= 100

    counter.running_count = -3
    advice = counter.count_advice(1000)
    assert advice.level == "unfavorable"
    assert advice.suggested_bet == 5


def test_snapshot_restore_keeps_state():
    counter = CardCounter(num_decks=6, system=COUNTING_SYSTEMS["Red 7"])
    counter.report_card(make_card("7", "♥"))
    counter.report_card(make_card("K"))
    counter.report_card(make_card("2"))
    restored = CardCounter.restore(counter.snapshot())
    assert restored.system.name == "Red 7"
    assert restored.running_count == counter.running_count
    assert restored.history == counter.history


def test_reset_round_keeps_running_count():
    counter = CardCounter(num_decks=6)
    counter.report_card(make_card("3"))
    counter.reset_round()
    assert counter.round_log == []
    assert counter.running_count == 1
    counter.reset_count()
    assert counter.running_count == 0
