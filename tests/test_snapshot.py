import time

import pytest

from blackjackpro.accounts import InMemoryAccounts
from blackjackpro.cards import Card
from blackjackpro.config import TableConfig
from blackjackpro.rules import Outcome
from blackjackpro.scheduler import ManualScheduler
from blackjackpro.snapshot import SnapshotError, is_fresh, unwrap_snapshot, wrap_snapshot
from blackjackpro.table import Phase, Table


def rig_shoe(table, ranks):
    for rank in reversed(ranks):
        table.shoe.cards.append(Card(rank, "♥"))


def make_accounts(**settings):
    accounts = InMemoryAccounts()
    accounts.create_player("p1", 1000)
    if settings:
        accounts.put_settings("p1", settings)
    return accounts


def open_table(accounts, seed=5):
    scheduler = ManualScheduler()
    table = Table.create(accounts, accounts, accounts, "p1", scheduler, TableConfig(seed=seed))
    return table, scheduler


def test_envelope_checks():
    snapshot = wrap_snapshot({"phase": "betting"}, now=100.0)
    assert is_fresh(snapshot, 3600, now=3700.0)
    assert not is_fresh(snapshot, 3600, now=3700.5)
    assert unwrap_snapshot(snapshot) == {"phase": "betting"}
    with pytest.raises(SnapshotError):
        unwrap_snapshot({"version": 99, "state": {}})
    with pytest.raises(SnapshotError):
        is_fresh({"state": {}}, 3600)


def test_snapshot_from_the_future_is_not_fresh():
    snapshot = wrap_snapshot({"phase": "playing"}, now=5000.0)
    assert not is_fresh(snapshot, 3600, now=4999.0)
    assert is_fresh(snapshot, 3600, now=5000.0)

    accounts = make_accounts()
    table, _ = open_table(accounts)
    accounts.save(table.snapshot_key, snapshot)
    assert not table.recover(now=1000.0)
    assert accounts.load(table.snapshot_key) is None
    assert table.phase is Phase.BETTING


def test_restore_resumes_human_turn():
    accounts = make_accounts()
    table, scheduler = open_table(accounts)
    rig_shoe(table, ["10", "9", "7", "8"])
    table.place_bet(10)
    scheduler.run_until_idle()
    snapshot = table.snapshot(now=1000.0)

    restored, scheduler2 = open_table(accounts, seed=6)
    assert restored.restore(snapshot, now=1500.0)
    scheduler2.run_until_idle()
    assert restored.phase is Phase.PLAYING
    assert restored.current_seat.seat_id == table.main_seat.seat_id
    assert [card.rank for card in restored.current_hand.cards] == ["10", "7"]
    assert restored.dealer_hand.cards[1].face_down
    assert restored.counter.running_count == table.counter.running_count

    rig_shoe(restored, ["4"])
    assert restored.hit()
    scheduler2.run_until_idle()
    assert restored.phase is Phase.FINISHED
    assert restored.main_seat.hands[0].outcome is Outcome.WIN
    assert accounts.get_bankroll("p1") == 1010


def test_stale_snapshot_is_refused():
    accounts = make_accounts()
    table, scheduler = open_table(accounts)
    rig_shoe(table, ["10", "9", "7", "8"])
    table.place_bet(10)
    scheduler.run_until_idle()
    snapshot = table.snapshot(now=1000.0)

    fresh, _ = open_table(accounts)
    assert not fresh.restore(snapshot, now=1000.0 + 3601)
    assert fresh.phase is Phase.BETTING
    assert fresh.main_seat.hands == []


def test_restore_continues_dealing():
    accounts = make_accounts(dealer_speed=2.0)
    table, scheduler = open_table(accounts)
    assert table.config.deal_delay == 1.0
    rig_shoe(table, ["10", "9", "7", "8"])
    table.place_bet(10)
    scheduler.advance(0.0)
    assert table.phase is Phase.DEALING
    assert len(table.main_seat.hands[0].cards) == 1
    snapshot = table.snapshot()

    restored, scheduler2 = open_table(accounts)
    assert restored.restore(snapshot)
    scheduler2.run_until_idle()
    assert restored.phase is Phase.PLAYING
    assert [card.rank for card in restored.main_seat.hands[0].cards] == ["10", "7"]
    assert [card.rank for card in restored.dealer_hand.cards] == ["9", "8"]
    assert restored.counter.running_count == -1


def test_restore_continues_dealer_play_without_recounting_hole_card():
    accounts = make_accounts(dealer_speed=2.0)
    table, scheduler = open_table(accounts)
    rig_shoe(table, ["10", "6", "9", "10", "10"])
    table.place_bet(10)
    scheduler.advance(10.0)
    assert table.stand()
    scheduler.advance(0.0)
    assert table.phase is Phase.DEALER
    assert table.counter.running_count == -1
    snapshot = table.snapshot()

    restored, scheduler2 = open_table(accounts)
    assert restored.restore(snapshot)
    scheduler2.run_until_idle()
    assert restored.phase is Phase.FINISHED
    assert restored.dealer_hand.value.busted
    assert restored.counter.running_count == -2
    assert accounts.get_bankroll("p1") == 1010


def test_recover_from_store_and_clear_on_settlement():
    accounts = make_accounts()
    table, scheduler = open_table(accounts)
    rig_shoe(table, ["10", "9", "7", "8"])
    table.place_bet(10)
    scheduler.run_until_idle()
    assert table.save_snapshot()

    recovered, scheduler2 = open_table(accounts)
    assert recovered.recover()
    scheduler2.run_until_idle()
    assert recovered.phase is Phase.PLAYING
    recovered.stand()
    scheduler2.run_until_idle()
    assert recovered.phase is Phase.FINISHED
    assert accounts.load(recovered.snapshot_key) is None


def test_recover_discards_stale_and_unreadable_snapshots():
    accounts = make_accounts()
    table, _ = open_table(accounts)
    accounts.save(table.snapshot_key, wrap_snapshot({"phase": "playing"}, now=0.0))
    assert not table.recover()
    assert accounts.load(table.snapshot_key) is None

    accounts.save(table.snapshot_key, {"version": 99, "timestamp": time.time(), "state": {}})
    assert not table.recover()
    assert accounts.load(table.snapshot_key) is None

    accounts.save(table.snapshot_key, wrap_snapshot({"phase": "nonsense"}))
    assert not table.recover()
    assert table.phase is Phase.BETTING


def test_autosave_only_while_round_active():
    accounts = make_accounts()
    table, scheduler = open_table(accounts)
    table.start_autosave()
    rig_shoe(table, ["10", "9", "7", "8"])
    table.place_bet(10)
    scheduler.advance(5.0)
    assert table.phase is Phase.PLAYING
    assert accounts.load(table.snapshot_key) is not None

    table.stand()
    scheduler.run_until_idle()
    assert accounts.load(table.snapshot_key) is None
    scheduler.advance(5.0)
    assert accounts.load(table.snapshot_key) is None

    table.stop_autosave()
    assert scheduler.pending == 0
