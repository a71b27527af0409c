"""Round state machine for a local blackjack table with human and bot seats."""

from __future__ import annotations

import enum
import logging
import random
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .accounts import GameLogSink, PlayerAccount, PlayerId, SnapshotStore
from .cards import Card, EmptyShoeError, Shoe
from .config import PlayerSettings, TableConfig
from .counting import CardCounter, get_counting_system
from .rules import (
    HandValue,
    Outcome,
    can_double_down,
    can_split,
    dealer_action,
    hand_outcome,
    hand_value,
    is_blackjack,
    payout_multiplier,
)
from .scheduler import Scheduler
from .snapshot import Autosaver, SnapshotError, is_fresh, unwrap_snapshot, wrap_snapshot
from .strategy import ActionName, bot_bet, decide, generate_bot_name
from .utils import format_amount

LOGGER = logging.getLogger(__name__)


class Phase(enum.Enum):
    BETTING = "betting"
    DEALING = "dealing"
    PLAYING = "playing"
    DEALER = "dealer"
    FINISHED = "finished"


ACTIVE_PHASES = frozenset({Phase.DEALING, Phase.PLAYING, Phase.DEALER})
ROSTER_PHASES = frozenset({Phase.BETTING, Phase.FINISHED})


class SeatKind(enum.Enum):
    HUMAN = "human"
    BOT = "bot"


class SeatStatus(enum.Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    BLACKJACK = "blackjack"
    DONE = "done"
    FOLDED = "folded"


@dataclass(frozen=True)
class KindRules:
    auto_bet: bool
    auto_play: bool
    acknowledge_blackjack: bool


KIND_RULES: Dict[SeatKind, KindRules] = {
    SeatKind.HUMAN: KindRules(auto_bet=False, auto_play=False, acknowledge_blackjack=True),
    SeatKind.BOT: KindRules(auto_bet=True, auto_play=True, acknowledge_blackjack=False),
}


@dataclass
class Hand:
    cards: List[Card] = field(default_factory=list)
    bet: float = 0.0
    is_complete: bool = False
    outcome: Optional[Outcome] = None
    doubled: bool = False
    from_split: bool = False

    @property
    def value(self) -> HandValue:
        return hand_value(self.cards)

    @property
    def is_natural(self) -> bool:
        """Two-card 21 on the initial deal; 21 after a split never qualifies."""
        return not self.from_split and is_blackjack(self.cards)

    def to_dict(self) -> Dict[str, object]:
        return {
            "cards": [card.to_dict() for card in self.cards],
            "bet": self.bet,
            "is_complete": self.is_complete,
            "outcome": self.outcome.value if self.outcome else None,
            "doubled": self.doubled,
            "from_split": self.from_split,
            "total": self.value.total,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Hand":
        outcome = data.get("outcome")
        return cls(
            cards=[Card.from_dict(item) for item in data.get("cards", [])],
            bet=float(data.get("bet", 0.0)),
            is_complete=bool(data.get("is_complete", False)),
            outcome=Outcome(outcome) if outcome else None,
            doubled=bool(data.get("doubled", False)),
            from_split=bool(data.get("from_split", False)),
        )


@dataclass
class Seat:
    seat_id: str
    name: str
    kind: SeatKind
    bankroll: float
    seat_number: int
    is_main: bool = False
    hands: List[Hand] = field(default_factory=list)
    active_hand_index: int = 0
    status: SeatStatus = SeatStatus.WAITING
    pending_bet: float = 0.0
    net_result: float = 0.0
    result_message: str = ""

    @property
    def active_hand(self) -> Optional[Hand]:
        if 0 <= self.active_hand_index < len(self.hands):
            return self.hands[self.active_hand_index]
        return None

    @property
    def committed(self) -> float:
        if self.hands:
            return sum(hand.bet for hand in self.hands)
        return self.pending_bet

    @property
    def available_bankroll(self) -> float:
        return max(self.bankroll - self.committed, 0.0)

    @property
    def in_round(self) -> bool:
        return bool(self.hands) and self.status is not SeatStatus.FOLDED

    @property
    def all_hands_complete(self) -> bool:
        return all(hand.is_complete for hand in self.hands)

    def clear_round(self) -> None:
        self.hands = []
        self.active_hand_index = 0
        self.pending_bet = 0.0
        self.net_result = 0.0
        self.result_message = ""
        self.status = SeatStatus.WAITING

    def to_dict(self) -> Dict[str, object]:
        return {
            "seat_id": self.seat_id,
            "name": self.name,
            "kind": self.kind.value,
            "bankroll": self.bankroll,
            "seat_number": self.seat_number,
            "is_main": self.is_main,
            "hands": [hand.to_dict() for hand in self.hands],
            "active_hand_index": self.active_hand_index,
            "status": self.status.value,
            "pending_bet": self.pending_bet,
            "net_result": self.net_result,
            "result_message": self.result_message,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Seat":
        return cls(
            seat_id=str(data["seat_id"]),
            name=str(data["name"]),
            kind=SeatKind(data["kind"]),
            bankroll=float(data["bankroll"]),
            seat_number=int(data["seat_number"]),
            is_main=bool(data.get("is_main", False)),
            hands=[Hand.from_dict(item) for item in data.get("hands", [])],
            active_hand_index=int(data.get("active_hand_index", 0)),
            status=SeatStatus(data.get("status", "waiting")),
            pending_bet=float(data.get("pending_bet", 0.0)),
            net_result=float(data.get("net_result", 0.0)),
            result_message=str(data.get("result_message", "")),
        )


def overall_outcome(seat: Seat) -> str:
    outcomes = [hand.outcome for hand in seat.hands]
    wins = sum(1 for o in outcomes if o in (Outcome.WIN, Outcome.BLACKJACK))
    losses = sum(1 for o in outcomes if o is Outcome.LOSE)
    if wins > 0 and losses == 0:
        return "win"
    if losses > 0 and wins == 0:
        return "lose"
    return "push"


def describe_result(seat: Seat) -> str:
    net = seat.net_result
    if len(seat.hands) > 1:
        outcomes = [hand.outcome for hand in seat.hands]
        wins = sum(1 for o in outcomes if o in (Outcome.WIN, Outcome.BLACKJACK))
        losses = sum(1 for o in outcomes if o is Outcome.LOSE)
        pushes = sum(1 for o in outcomes if o is Outcome.PUSH)
        sign = "+" if net > 0 else "-" if net < 0 else ""
        return (
            f"{seat.name}: {wins} won, {losses} lost, {pushes} pushed "
            f"(net {sign}{format_amount(net)})"
        )
    if net > 0:
        return f"{seat.name} won {format_amount(net)}!"
    if net < 0:
        return f"{seat.name} lost {format_amount(net)}"
    return f"{seat.name}: push - no money lost or won"


class Table:
    """One blackjack table: a shoe, a dealer and up to ``max_seats`` seats.

    Every public action is safe to call at any time. Requests that do not fit
    the current phase or seat are ignored and return ``False``; the phase is
    the single source of truth for what is legal. Pacing (dealing animation,
    bot thinking time, dealer draws) goes through the injected scheduler, so
    the table only advances when the scheduler runs its callbacks.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        config: Optional[TableConfig] = None,
        *,
        account: Optional[PlayerAccount] = None,
        log_sink: Optional[GameLogSink] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        player_id: PlayerId = None,
        player_name: str = "Player",
        bankroll: float = 1000.0,
        settings: Optional[PlayerSettings] = None,
    ) -> None:
        self.scheduler = scheduler
        self.config = config or TableConfig()
        self.settings = settings or PlayerSettings()
        self.account = account
        self.log_sink = log_sink
        self.snapshot_store = snapshot_store
        self.player_id = player_id

        self.rng = np.random.default_rng(self.config.seed)
        self._names = random.Random(self.config.seed)
        self.shoe = Shoe(self.config.num_decks, self.rng)
        self.counter = CardCounter(
            self.config.num_decks, get_counting_system(self.settings.counting_system)
        )
        self.counter.update_shoe(self.shoe.cards_remaining)
        self.shoe_id = 0

        self.phase = Phase.BETTING
        self.dealer_hand = Hand()
        self.seats: List[Seat] = [
            Seat(
                seat_id=uuid.uuid4().hex,
                name=player_name,
                kind=SeatKind.HUMAN,
                bankroll=float(bankroll),
                seat_number=1,
                is_main=True,
            )
        ]
        self.current_seat_index = 0
        self.message = "Place your bet"
        self.last_bet = self.config.default_bet
        self._round_id = 0
        self._autosaver = None

    @classmethod
    def create(
        cls,
        account: PlayerAccount,
        log_sink: Optional[GameLogSink],
        snapshot_store: Optional[SnapshotStore],
        player_id: PlayerId,
        scheduler: Scheduler,
        config: Optional[TableConfig] = None,
        player_name: str = "Player",
    ) -> "Table":
        """Build a table for ``player_id`` from their stored bankroll and settings."""
        settings = PlayerSettings()
        try:
            settings = PlayerSettings.from_dict(account.get_settings(player_id))
        except Exception:
            LOGGER.exception("Could not load settings for player %s; using defaults", player_id)
        bankroll = 0.0
        try:
            bankroll = float(account.get_bankroll(player_id))
        except Exception:
            LOGGER.exception("Could not load bankroll for player %s", player_id)
        return cls(
            scheduler,
            settings.apply_to(config),
            account=account,
            log_sink=log_sink,
            snapshot_store=snapshot_store,
            player_id=player_id,
            player_name=player_name,
            bankroll=bankroll,
            settings=settings,
        )

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    @property
    def main_seat(self) -> Seat:
        return next(seat for seat in self.seats if seat.is_main)

    @property
    def current_seat(self) -> Optional[Seat]:
        if self.phase is not Phase.PLAYING:
            return None
        if 0 <= self.current_seat_index < len(self.seats):
            return self.seats[self.current_seat_index]
        return None

    @property
    def current_hand(self) -> Optional[Hand]:
        seat = self.current_seat
        return seat.active_hand if seat else None

    @property
    def dealer_up_card(self) -> Optional[Card]:
        return self.dealer_hand.cards[0] if self.dealer_hand.cards else None

    @property
    def multiplayer(self) -> bool:
        return len(self.seats) > 1

    @property
    def snapshot_key(self) -> str:
        return f"round:{self.player_id}"

    def seat(self, seat_id: str) -> Optional[Seat]:
        return next((seat for seat in self.seats if seat.seat_id == seat_id), None)

    def seats_in_round(self) -> List[Seat]:
        return [seat for seat in self.seats if seat.in_round]

    def legal_actions(self, seat_id: Optional[str] = None) -> List[ActionName]:
        seat, hand = self._human_turn(seat_id)
        if hand is None:
            return []
        actions: List[ActionName] = ["hit", "stand"]
        if can_double_down(hand.cards, seat.available_bankroll, hand.bet):
            actions.append("double")
        if self._can_split_hand(seat, hand):
            actions.append("split")
        return actions

    # ------------------------------------------------------------------
    # Scheduling and shoe
    # ------------------------------------------------------------------
    def _schedule(self, delay: float, callback: Callable[..., None], *args: object) -> None:
        round_id = self._round_id

        def _run() -> None:
            if round_id != self._round_id:
                LOGGER.debug("Dropping %s scheduled for an abandoned round", callback.__name__)
                return
            callback(*args)

        self.scheduler.call_later(delay, _run)

    def _set_phase(self, phase: Phase) -> None:
        LOGGER.debug("Phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _reshuffle(self) -> None:
        self.shoe_id += 1
        self.shoe.reset()
        self.counter.new_shoe()
        LOGGER.info("Reshuffled %s-deck shoe (shoe #%s)", self.shoe.num_decks, self.shoe_id)

    def _draw(self, face_down: bool = False) -> Card:
        if self.shoe.needs_reshuffle(self.config.penetration):
            self._reshuffle()
        try:
            card = self.shoe.draw()
        except EmptyShoeError:
            if self.config.strict:
                raise
            LOGGER.warning("Shoe exhausted before reshuffle check; reshuffling")
            self._reshuffle()
            card = self.shoe.draw()
        card.face_down = face_down
        self.counter.update_shoe(self.shoe.cards_remaining)
        if not face_down:
            self.counter.report_card(card)
        return card

    def _reveal_hole_card(self) -> None:
        cards = self.dealer_hand.cards
        if len(cards) > 1 and cards[1].face_down:
            cards[1].face_down = False
            self.counter.report_card(cards[1])

    # ------------------------------------------------------------------
    # Betting
    # ------------------------------------------------------------------
    def place_bet(self, amount: float, seat_id: Optional[str] = None) -> bool:
        if self.phase is not Phase.BETTING:
            return False
        seat = self.main_seat if seat_id is None else self.seat(seat_id)
        if seat is None or KIND_RULES[seat.kind].auto_bet:
            return False
        if amount < self.config.min_bet or amount > seat.bankroll:
            return False
        seat.pending_bet = float(amount)
        if seat.is_main:
            self.last_bet = float(amount)
        if self._ready_to_deal():
            self._start_dealing()
        else:
            self.message = "Waiting for other players to bet"
        return True

    def repeat_last_bet(self) -> bool:
        return self.place_bet(self.last_bet)

    def _ready_to_deal(self) -> bool:
        for seat in self.seats:
            if KIND_RULES[seat.kind].auto_bet:
                continue
            if seat.bankroll >= self.config.min_bet and seat.pending_bet <= 0:
                return False
        return True

    def _start_dealing(self) -> None:
        for seat in self.seats:
            if KIND_RULES[seat.kind].auto_bet:
                seat.pending_bet = bot_bet(
                    seat.bankroll,
                    self.config.bot_min_bet,
                    self.config.bot_max_bet,
                    self.config.bot_bet_cap,
                )
            if seat.pending_bet <= 0:
                seat.status = SeatStatus.FOLDED
                continue
            seat.hands = [Hand(bet=seat.pending_bet)]
            seat.active_hand_index = 0
            seat.status = SeatStatus.WAITING
        self.dealer_hand = Hand()
        self.counter.reset_round()
        self.current_seat_index = 0
        self._set_phase(Phase.DEALING)
        self.message = "Dealing cards..."
        self._schedule(0.0, self._deal_next)

    # ------------------------------------------------------------------
    # Dealing
    # ------------------------------------------------------------------
    def _deal_plan(self) -> List[Optional[Seat]]:
        """Two passes in seat order, dealer last each pass; ``None`` is the dealer."""
        plan: List[Optional[Seat]] = []
        for _ in range(2):
            plan.extend(self.seats_in_round())
            plan.append(None)
        return plan

    def _deal_next(self) -> None:
        if self.phase is not Phase.DEALING:
            return
        plan = self._deal_plan()
        dealt = len(self.dealer_hand.cards) + sum(
            len(seat.hands[0].cards) for seat in self.seats_in_round()
        )
        if dealt >= len(plan):
            self._check_blackjacks()
            return
        target = plan[dealt]
        if target is None:
            hole_card = len(self.dealer_hand.cards) == 1
            self.dealer_hand.cards.append(self._draw(face_down=hole_card))
        else:
            target.hands[0].cards.append(self._draw())
        self._schedule(self.config.deal_delay, self._deal_next)

    def _check_blackjacks(self) -> None:
        if is_blackjack(self.dealer_hand.cards):
            self._reveal_hole_card()
            for seat in self.seats_in_round():
                for hand in seat.hands:
                    hand.is_complete = True
            LOGGER.info("Dealer blackjack; settling immediately")
            self._finish_round()
            return
        self._set_phase(Phase.PLAYING)
        self._start_turn(0)

    # ------------------------------------------------------------------
    # Seat turns
    # ------------------------------------------------------------------
    def _start_turn(self, index: int) -> None:
        if self.phase is not Phase.PLAYING:
            return
        while index < len(self.seats) and not self.seats[index].in_round:
            index += 1
        if index >= len(self.seats):
            self.current_seat_index = len(self.seats)
            self._play_dealer()
            return

        self.current_seat_index = index
        seat = self.seats[index]
        rules = KIND_RULES[seat.kind]
        first = seat.hands[0]

        if len(seat.hands) == 1 and first.is_natural and not first.is_complete:
            first.is_complete = True
            seat.status = SeatStatus.BLACKJACK
            self.message = f"{seat.name} has blackjack!"
            delay = self.config.blackjack_ack_delay if rules.acknowledge_blackjack else 0.0
            self._schedule(delay, self._end_turn, seat.seat_id)
            return
        if seat.all_hands_complete:
            self._end_turn(seat.seat_id)
            return

        seat.status = SeatStatus.PLAYING
        self._focus_next_hand(seat)
        if rules.auto_play:
            self.message = f"{seat.name} is thinking..."
            self._schedule(self.config.bot_delay, self._bot_step, seat.seat_id)
        else:
            self.message = f"{seat.name}: choose your action"

    def _end_turn(self, seat_id: str) -> None:
        if self.phase is not Phase.PLAYING:
            return
        seat = self.current_seat
        if seat is None or seat.seat_id != seat_id:
            return
        seat.status = SeatStatus.DONE
        self._start_turn(self.current_seat_index + 1)

    def _resume_turn(self) -> None:
        """Start whichever seat now holds the turn after the current one left."""
        seat = self.current_seat
        if seat is not None and seat.status in (SeatStatus.PLAYING, SeatStatus.BLACKJACK):
            return
        self._start_turn(self.current_seat_index)

    @staticmethod
    def _focus_next_hand(seat: Seat) -> None:
        for idx, hand in enumerate(seat.hands):
            if not hand.is_complete:
                seat.active_hand_index = idx
                return
        seat.active_hand_index = len(seat.hands) - 1

    def _after_action(self, seat: Seat) -> None:
        if seat.all_hands_complete:
            seat.status = SeatStatus.DONE
            self._schedule(0.0, self._end_turn, seat.seat_id)
            return
        self._focus_next_hand(seat)
        if KIND_RULES[seat.kind].auto_play:
            self._schedule(self.config.bot_delay, self._bot_step, seat.seat_id)

    def _bot_step(self, seat_id: str) -> None:
        seat = self.current_seat
        if seat is None or seat.seat_id != seat_id:
            return
        hand = seat.active_hand
        if hand is None or hand.is_complete:
            self._after_action(seat)
            return
        action = decide(
            hand,
            self.dealer_up_card,
            seat.available_bankroll,
            allow_split=self._can_split_hand(seat, hand),
        )
        if not self._apply(seat, hand, action):
            self._apply(seat, hand, "hit")
        self._after_action(seat)

    # ------------------------------------------------------------------
    # Hand actions shared by human and bot seats
    # ------------------------------------------------------------------
    def _can_split_hand(self, seat: Seat, hand: Hand) -> bool:
        return (
            can_split(hand.cards)
            and len(seat.hands) < self.config.max_hands
            and seat.available_bankroll >= hand.bet
        )

    def _apply(self, seat: Seat, hand: Hand, action: ActionName) -> bool:
        handlers: Dict[str, Callable[[Seat, Hand], bool]] = {
            "hit": self._hit,
            "stand": self._stand,
            "double": self._double,
            "split": self._split,
        }
        return handlers[action](seat, hand)

    def _complete_if_final(self, hand: Hand) -> None:
        value = hand.value
        if value.busted:
            hand.is_complete = True
            hand.outcome = Outcome.LOSE
        elif value.total == 21:
            hand.is_complete = True

    def _hit(self, seat: Seat, hand: Hand) -> bool:
        hand.cards.append(self._draw())
        self._complete_if_final(hand)
        return True

    def _stand(self, seat: Seat, hand: Hand) -> bool:
        hand.is_complete = True
        return True

    def _double(self, seat: Seat, hand: Hand) -> bool:
        if not can_double_down(hand.cards, seat.available_bankroll, hand.bet):
            return False
        hand.bet *= 2
        hand.doubled = True
        hand.cards.append(self._draw())
        self._complete_if_final(hand)
        hand.is_complete = True
        return True

    def _split(self, seat: Seat, hand: Hand) -> bool:
        if not self._can_split_hand(seat, hand):
            return False
        index = seat.hands.index(hand)
        split_aces = hand.cards[0].is_ace
        partner = Hand(cards=[hand.cards.pop()], bet=hand.bet, from_split=True)
        hand.from_split = True
        seat.hands.insert(index + 1, partner)
        for split_hand in (hand, partner):
            split_hand.cards.append(self._draw())
            self._complete_if_final(split_hand)
            if split_aces:
                split_hand.is_complete = True
        return True

    def _human_turn(self, seat_id: Optional[str]) -> Tuple[Optional[Seat], Optional[Hand]]:
        seat = self.current_seat
        if seat is None or KIND_RULES[seat.kind].auto_play:
            return None, None
        if seat_id is not None and seat.seat_id != seat_id:
            return None, None
        if seat.status is not SeatStatus.PLAYING:
            return None, None
        hand = seat.active_hand
        if hand is None or hand.is_complete:
            return None, None
        return seat, hand

    def _human_action(self, action: ActionName, seat_id: Optional[str]) -> bool:
        seat, hand = self._human_turn(seat_id)
        if hand is None:
            return False
        if not self._apply(seat, hand, action):
            return False
        self._after_action(seat)
        return True

    def hit(self, seat_id: Optional[str] = None) -> bool:
        return self._human_action("hit", seat_id)

    def stand(self, seat_id: Optional[str] = None) -> bool:
        return self._human_action("stand", seat_id)

    def double_down(self, seat_id: Optional[str] = None) -> bool:
        return self._human_action("double", seat_id)

    def split(self, seat_id: Optional[str] = None) -> bool:
        return self._human_action("split", seat_id)

    # ------------------------------------------------------------------
    # Dealer and settlement
    # ------------------------------------------------------------------
    def _play_dealer(self) -> None:
        self._set_phase(Phase.DEALER)
        self.message = "Dealer playing..."
        self._reveal_hole_card()
        hands = [hand for seat in self.seats_in_round() for hand in seat.hands]
        if all(hand.value.busted for hand in hands):
            self._finish_round()
            return
        self._schedule(self.config.dealer_delay, self._dealer_step)

    def _dealer_step(self) -> None:
        if self.phase is not Phase.DEALER:
            return
        if dealer_action(self.dealer_hand.cards) == "hit":
            self.dealer_hand.cards.append(self._draw())
            self._schedule(self.config.dealer_delay, self._dealer_step)
            return
        self._finish_round()

    def _finish_round(self) -> None:
        self._set_phase(Phase.FINISHED)
        self.dealer_hand.is_complete = True
        dealer_blackjack = is_blackjack(self.dealer_hand.cards)
        ratio = self.config.blackjack_payout
        for seat in self.seats_in_round():
            for hand in seat.hands:
                hand.is_complete = True
                if hand.outcome is None and hand.is_natural and not dealer_blackjack:
                    # naturals pay regardless of how the dealer's hand ends
                    hand.outcome = Outcome.BLACKJACK
                if hand.outcome is None:
                    hand.outcome = hand_outcome(
                        hand.cards, self.dealer_hand.cards, hand.is_natural, dealer_blackjack
                    )
            net = sum(hand.bet * payout_multiplier(hand.outcome, ratio) for hand in seat.hands)
            seat.net_result = net
            if seat.is_main:
                self._settle_main_seat(seat, net)
            else:
                seat.bankroll += net
            seat.result_message = describe_result(seat)
            seat.status = SeatStatus.DONE
            LOGGER.info(
                "Settled %s: %s (net %+.2f, bankroll %.2f)",
                seat.name,
                [hand.outcome.value for hand in seat.hands],
                net,
                seat.bankroll,
            )
        main = self.main_seat
        self.message = main.result_message if main.in_round else "Round finished"
        self.clear_snapshot()

    def _settle_main_seat(self, seat: Seat, net: float) -> None:
        seat.bankroll += net
        total_bet = sum(hand.bet for hand in seat.hands)
        if self.account is not None:
            try:
                balance = self.account.adjust_bankroll(self.player_id, net)
                if balance is not None:
                    seat.bankroll = float(balance)
            except Exception:
                LOGGER.exception("Failed to adjust bankroll for player %s", self.player_id)
        if self.log_sink is not None:
            try:
                self.log_sink.append(
                    self.player_id,
                    [hand.to_dict() for hand in seat.hands],
                    overall_outcome(seat),
                    total_bet,
                    net,
                )
            except Exception:
                LOGGER.exception("Failed to log round for player %s", self.player_id)

    # ------------------------------------------------------------------
    # Round lifecycle
    # ------------------------------------------------------------------
    def _clear_round_state(self) -> None:
        self._round_id += 1
        for seat in self.seats:
            seat.clear_round()
        self.dealer_hand = Hand()
        self.current_seat_index = 0
        self.counter.reset_round()
        self._set_phase(Phase.BETTING)
        self.message = "Place your bet"

    def reset_round(self) -> bool:
        """Return to betting after a finished round; bankrolls and roster are kept."""
        if self.phase is Phase.BETTING:
            return True
        if self.phase is not Phase.FINISHED:
            return False
        self._clear_round_state()
        return True

    def force_new_round(self) -> None:
        """Abandon whatever is in flight without settling it."""
        if self.phase in ACTIVE_PHASES:
            LOGGER.warning("Abandoning round in phase %s", self.phase.value)
        self._clear_round_state()
        self.clear_snapshot()

    # ------------------------------------------------------------------
    # Roster management
    # ------------------------------------------------------------------
    def _free_seat_number(self) -> Optional[int]:
        taken = {seat.seat_number for seat in self.seats}
        for number in range(1, self.config.max_seats + 1):
            if number not in taken:
                return number
        return None

    def _sort_seats(self) -> None:
        self.seats.sort(key=lambda seat: seat.seat_number)

    def add_seat(
        self,
        name: Optional[str] = None,
        kind: SeatKind = SeatKind.BOT,
        bankroll: Optional[float] = None,
    ) -> Optional[Seat]:
        if self.phase not in ROSTER_PHASES:
            return None
        number = self._free_seat_number()
        if number is None:
            return None
        if name is None:
            name = generate_bot_name(self._names) if kind is SeatKind.BOT else f"Guest {number}"
        seat = Seat(
            seat_id=uuid.uuid4().hex,
            name=name,
            kind=kind,
            bankroll=float(self.config.bot_bankroll if bankroll is None else bankroll),
            seat_number=number,
        )
        self.seats.append(seat)
        self._sort_seats()
        LOGGER.debug("Seat %s added: %s (%s)", number, name, kind.value)
        return seat

    def remove_seat(self, seat_id: str) -> bool:
        seat = self.seat(seat_id)
        if seat is None or seat.is_main:
            return False
        if self.phase in ROSTER_PHASES:
            self.seats.remove(seat)
            return True
        if self.phase is not Phase.PLAYING:
            return False

        # Mid-round removal forfeits the seat's turn and its stake.
        index = self.seats.index(seat)
        self.seats.remove(seat)
        if index < self.current_seat_index:
            self.current_seat_index -= 1
        elif index == self.current_seat_index:
            self._schedule(0.0, self._resume_turn)
        LOGGER.info("Seat %s (%s) left mid-round", seat.seat_number, seat.name)
        return True

    def swap_seats(self, first_id: str, second_id: str) -> bool:
        if self.phase not in ROSTER_PHASES:
            return False
        first, second = self.seat(first_id), self.seat(second_id)
        if first is None or second is None or first is second:
            return False
        first.seat_number, second.seat_number = second.seat_number, first.seat_number
        self._sort_seats()
        return True

    def set_multiplayer(self, enabled: bool, bots: int = 2) -> bool:
        if self.phase not in ROSTER_PHASES:
            return False
        if not enabled:
            self.seats = [seat for seat in self.seats if seat.is_main]
            return True
        while len(self.seats) < 1 + bots:
            if self.add_seat() is None:
                break
        return True

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def update_settings(self, **changes: object) -> bool:
        """Apply and persist setting changes; only between rounds."""
        if self.phase not in ROSTER_PHASES:
            return False
        try:
            settings = self.settings.merged(changes)
        except (TypeError, ValueError):
            LOGGER.warning("Rejected settings update %s", changes)
            return False

        if settings.counting_system != self.counter.system.name:
            self.counter.set_system(settings.counting_system)
        new_config = settings.apply_to(self.config)
        if new_config.num_decks != self.config.num_decks:
            self.shoe = Shoe(new_config.num_decks, self.rng)
            self.counter = CardCounter(
                new_config.num_decks, get_counting_system(settings.counting_system)
            )
            self.counter.update_shoe(self.shoe.cards_remaining)
            self.shoe_id += 1
        self.config = new_config
        self.settings = settings

        if self.account is not None:
            try:
                self.account.put_settings(self.player_id, settings.to_dict())
            except Exception:
                LOGGER.exception("Failed to save settings for player %s", self.player_id)
        return True

    def change_counting_system(self, name: str) -> bool:
        return self.update_settings(counting_system=name)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self, now: Optional[float] = None) -> Dict[str, object]:
        state = {
            "phase": self.phase.value,
            "dealer_hand": self.dealer_hand.to_dict(),
            "seats": [seat.to_dict() for seat in self.seats],
            "current_seat_index": self.current_seat_index,
            "message": self.message,
            "last_bet": self.last_bet,
            "shoe_id": self.shoe_id,
            "shoe": self.shoe.to_dict(),
            "counter": self.counter.snapshot(),
        }
        return wrap_snapshot(state, now)

    def restore(self, snapshot: Mapping[str, object], now: Optional[float] = None) -> bool:
        """Load a saved round; stale snapshots are refused and nothing changes."""
        if not is_fresh(snapshot, self.config.snapshot_max_age, now):
            LOGGER.warning("Discarding stale round snapshot for player %s", self.player_id)
            return False
        state = unwrap_snapshot(snapshot)
        try:
            phase = Phase(state["phase"])
            seats = [Seat.from_dict(item) for item in state["seats"]]
            dealer_hand = Hand.from_dict(state["dealer_hand"])
            shoe = Shoe.from_dict(state["shoe"], self.rng)
            counter = CardCounter.restore(state["counter"])
            current_seat_index = int(state["current_seat_index"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SnapshotError(f"Malformed round snapshot: {exc}") from exc
        if sum(1 for seat in seats if seat.is_main) != 1:
            raise SnapshotError("Snapshot must contain exactly one main seat")

        self._round_id += 1
        self.phase = phase
        self.seats = sorted(seats, key=lambda seat: seat.seat_number)
        self.dealer_hand = dealer_hand
        self.shoe = shoe
        self.counter = counter
        self.current_seat_index = current_seat_index
        self.message = str(state.get("message", ""))
        self.last_bet = float(state.get("last_bet", self.config.default_bet))
        self.shoe_id = int(state.get("shoe_id", 0))
        if self.account is not None:
            try:
                self.main_seat.bankroll = float(self.account.get_bankroll(self.player_id))
            except Exception:
                LOGGER.exception("Could not refresh bankroll for player %s", self.player_id)
        LOGGER.info("Restored round in phase %s", phase.value)
        self._resume()
        return True

    def _resume(self) -> None:
        if self.phase is Phase.DEALING:
            self._schedule(0.0, self._deal_next)
        elif self.phase is Phase.PLAYING:
            self._schedule(0.0, self._start_turn, self.current_seat_index)
        elif self.phase is Phase.DEALER:
            self._schedule(0.0, self._play_dealer)

    def save_snapshot(self) -> bool:
        if self.snapshot_store is None:
            return False
        try:
            self.snapshot_store.save(self.snapshot_key, self.snapshot())
        except Exception:
            LOGGER.exception("Failed to save round snapshot for player %s", self.player_id)
            return False
        return True

    def clear_snapshot(self) -> None:
        if self.snapshot_store is None:
            return
        try:
            self.snapshot_store.clear(self.snapshot_key)
        except Exception:
            LOGGER.exception("Failed to clear round snapshot for player %s", self.player_id)

    def recover(self, now: Optional[float] = None) -> bool:
        """Resume a saved round if one exists and is fresh enough."""
        if self.snapshot_store is None:
            return False
        try:
            snapshot = self.snapshot_store.load(self.snapshot_key)
        except Exception:
            LOGGER.exception("Failed to load round snapshot for player %s", self.player_id)
            return False
        if snapshot is None:
            return False
        try:
            restored = self.restore(snapshot, now)
        except ValueError:
            LOGGER.exception("Ignoring unreadable round snapshot for player %s", self.player_id)
            restored = False
        if not restored:
            self.clear_snapshot()
        return restored

    def start_autosave(self) -> None:
        if self._autosaver is None:
            self._autosaver = Autosaver(self, self.scheduler, self.config.autosave_interval)
        self._autosaver.start()

    def stop_autosave(self) -> None:
        if self._autosaver is not None:
            self._autosaver.stop()


__all__ = [
    "ACTIVE_PHASES",
    "Hand",
    "KIND_RULES",
    "Phase",
    "ROSTER_PHASES",
    "Seat",
    "SeatKind",
    "SeatStatus",
    "Table",
    "describe_result",
    "overall_outcome",
]
