import numpy as np
import pytest

from blackjackpro.cards import CARDS_PER_DECK, Card, EmptyShoeError, Shoe, build_shoe


def test_shoe_has_every_card_once():
    shoe = Shoe(num_decks=6, rng=np.random.default_rng(1))
    keys = [card.key for card in shoe.cards]
    assert len(keys) == 6 * CARDS_PER_DECK
    assert len(set(keys)) == len(keys)


def test_draws_preserve_card_total():
    shoe = Shoe(num_decks=2, rng=np.random.default_rng(2))
    for _ in range(37):
        shoe.draw()
    assert shoe.dealt + shoe.cards_remaining == 2 * CARDS_PER_DECK


def test_draw_takes_from_the_end():
    shoe = Shoe(num_decks=1, rng=np.random.default_rng(3))
    last = shoe.cards[-1]
    assert shoe.draw() is last


def test_empty_shoe_raises():
    shoe = Shoe(num_decks=1, rng=np.random.default_rng(4))
    for _ in range(CARDS_PER_DECK):
        shoe.draw()
    with pytest.raises(EmptyShoeError):
        shoe.draw()


def test_needs_reshuffle_at_penetration_not_before():
    shoe = Shoe(num_decks=1, rng=np.random.default_rng(5))
    for _ in range(12):
        shoe.draw()
    assert not shoe.needs_reshuffle(0.25)
    shoe.draw()
    assert shoe.needs_reshuffle(0.25)


def test_seeded_shuffles_are_reproducible():
    first = build_shoe(1, np.random.default_rng(99))
    second = build_shoe(1, np.random.default_rng(99))
    assert [c.key for c in first] == [c.key for c in second]


def test_invalid_card_rejected():
    with pytest.raises(ValueError):
        Card("1", "♠")
    with pytest.raises(ValueError):
        Card("A", "x")


def test_shoe_round_trips_through_dict():
    shoe = Shoe(num_decks=1, rng=np.random.default_rng(6))
    for _ in range(10):
        shoe.draw()
    restored = Shoe.from_dict(shoe.to_dict())
    assert restored.dealt == 10
    assert [c.key for c in restored.cards] == [c.key for c in shoe.cards]


def test_card_colour_and_str():
    card = Card("7", "♥")
    assert card.is_red
    assert str(card) == "7♥"
    assert not Card("7", "♣").is_red
