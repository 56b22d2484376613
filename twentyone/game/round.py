"""Blackjack round engine with state machine."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from transitions import Machine, MachineError

from twentyone.bankroll import Bankroll
from twentyone.cards import Card, CardSource
from twentyone.exceptions import (
    BlackjackError,
    IllegalAction,
    InvalidBet,
    InvalidPhaseTransition,
    ShoeExhausted,
)
from twentyone.game.actions import Action
from twentyone.game.events import EventEmitter, EventType, GameEvent
from twentyone.game.snapshot import HandView, RoundSnapshot
from twentyone.game.state import RoundPhase
from twentyone.hand import Hand, HandStatus
from twentyone.rules import RuleSet
from twentyone.settlement import InsuranceResult, SettlementResult, settle, settle_insurance

logger = logging.getLogger(__name__)

DEALER_HAND_ID = 0

_NON_WINNING = (HandStatus.BUSTED, HandStatus.SURRENDERED)


class Round:
    """
    One round of blackjack, from bets to settlement.

    The round owns every hand it deals and draws from a shoe it is given.
    Player decisions are applied one at a time; the last decision of the
    player turn runs the dealer and settlement in the same call.
    """

    # State machine states
    STATES = [p.name.lower() for p in RoundPhase]

    # State machine transitions
    TRANSITIONS = [
        {"trigger": "start_dealing", "source": "awaiting_bets", "dest": "dealing"},
        {"trigger": "open_insurance", "source": "dealing", "dest": "insurance_offer"},
        {
            "trigger": "begin_player_turn",
            "source": ["dealing", "insurance_offer"],
            "dest": "player_turn",
        },
        {"trigger": "begin_dealer_turn", "source": "player_turn", "dest": "dealer_turn"},
        {"trigger": "begin_settlement", "source": "dealer_turn", "dest": "settlement"},
        {"trigger": "complete", "source": "settlement", "dest": "round_complete"},
        {
            "trigger": "abort_round",
            "source": [
                "awaiting_bets",
                "dealing",
                "insurance_offer",
                "player_turn",
                "dealer_turn",
            ],
            "dest": "aborted",
        },
    ]

    def __init__(
        self,
        shoe: CardSource,
        rules: RuleSet | None = None,
        bankroll: Bankroll | None = None,
        events: EventEmitter | None = None,
    ) -> None:
        """
        Initialize a new round.

        Args:
            shoe: Card source, owned by this round until it ends
            rules: Table rules (defaults if not provided)
            bankroll: Collaborator told about every settled ledger line
            events: Event emitter to publish on (a new one if not provided)
        """
        self.rules = rules or RuleSet()
        self.shoe = shoe
        self.bankroll = bankroll
        self.events = events or EventEmitter()

        self.dealer_hand = Hand(hand_id=DEALER_HAND_ID)
        self._hands: list[Hand] = []
        self._bets: dict[str, Decimal] = {}
        self._insurance: dict[str, Decimal] = {}
        self._insurance_settled = False
        self._current_index = 0
        self._next_hand_id = DEALER_HAND_ID + 1
        self._hole_revealed = False
        self._cards_drawn = 0
        self._results: list[SettlementResult] = []
        self._insurance_results: list[InsuranceResult] = []
        self.abort_reason: str | None = None

        # Initialize state machine
        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial="awaiting_bets",
            auto_transitions=False,
            model_attribute="_machine_state",
            after_state_change="_on_phase_changed",
        )

    # -- Read-only views -------------------------------------------------

    @property
    def phase(self) -> RoundPhase:
        """Get current phase as enum."""
        return RoundPhase[self._machine_state.upper()]  # type: ignore[attr-defined]

    @property
    def hands(self) -> list[Hand]:
        """Player hands in play order."""
        return self._hands.copy()

    def hands_for(self, better_id: str) -> list[Hand]:
        return [hand for hand in self._hands if hand.better_id == better_id]

    @property
    def better_ids(self) -> list[str]:
        """Betters in the order their bets were placed."""
        return list(self._bets)

    @property
    def bets(self) -> dict[str, Decimal]:
        """Original bet per better."""
        return dict(self._bets)

    @property
    def insurance_bets(self) -> dict[str, Decimal]:
        """Insurance decision per better (zero when declined)."""
        return dict(self._insurance)

    @property
    def current_hand(self) -> Hand | None:
        """The hand awaiting a decision, if any."""
        if self.phase != RoundPhase.PLAYER_TURN:
            return None
        if 0 <= self._current_index < len(self._hands):
            return self._hands[self._current_index]
        return None

    @property
    def dealer_up_card(self) -> Card | None:
        return self.dealer_hand.cards[0] if self.dealer_hand.cards else None

    @property
    def dealer_visible_cards(self) -> list[Card]:
        """Dealer cards a player may see; the hole card stays hidden until revealed."""
        if self._hole_revealed:
            return list(self.dealer_hand.cards)
        return self.dealer_hand.cards[:1] + self.dealer_hand.cards[2:]

    @property
    def hole_card_revealed(self) -> bool:
        return self._hole_revealed

    @property
    def cards_drawn(self) -> int:
        """Number of cards this round has drawn from the shoe."""
        return self._cards_drawn

    @property
    def results(self) -> tuple[SettlementResult, ...]:
        return tuple(self._results)

    @property
    def insurance_results(self) -> tuple[InsuranceResult, ...]:
        return tuple(self._insurance_results)

    def net_by_better(self) -> dict[str, Decimal]:
        """Total bankroll movement per better, insurance included."""
        totals = {better_id: Decimal("0") for better_id in self._bets}
        for result in self._results:
            totals[result.better_id] += result.net
        for insurance in self._insurance_results:
            totals[insurance.better_id] += insurance.net
        return totals

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to round events."""
        self.events.subscribe(handler, event_type)

    def snapshot(self) -> RoundSnapshot:
        """Frozen view of the round for presentation layers."""
        current = self.current_hand
        visible = self.dealer_visible_cards
        return RoundSnapshot(
            phase=self.phase,
            dealer_cards=tuple(visible),
            dealer_value=Hand(cards=visible).value,
            hole_card_hidden=len(self.dealer_hand.cards) > 1 and not self._hole_revealed,
            hands=tuple(HandView.from_hand(hand) for hand in self._hands),
            current_hand_id=current.hand_id if current else None,
            legal_actions=self.legal_actions(),
            pending_insurance=tuple(
                better_id
                for better_id in self._bets
                if self.phase == RoundPhase.INSURANCE_OFFER and better_id not in self._insurance
            ),
            results=self.results,
            insurance_results=self.insurance_results,
        )

    # -- Betting ---------------------------------------------------------

    def place_bet(self, better_id: str, amount: Any) -> Hand:
        """
        Place a better's bet for this round.

        Args:
            better_id: Identifier of the better
            amount: Positive bet amount

        Returns:
            The better's (still empty) hand
        """
        self._require_phase(RoundPhase.AWAITING_BETS, "place a bet")

        stake = self._parse_amount(amount, better_id)
        if stake <= 0:
            raise self._reject(InvalidBet, f"Bet must be positive, got {stake}", better_id=better_id)
        if self.rules.min_bet is not None and stake < self.rules.min_bet:
            raise self._reject(
                InvalidBet, f"Bet must be at least {self.rules.min_bet}", better_id=better_id
            )
        if self.rules.max_bet is not None and stake > self.rules.max_bet:
            raise self._reject(
                InvalidBet, f"Bet must be at most {self.rules.max_bet}", better_id=better_id
            )
        if better_id in self._bets:
            raise self._reject(
                InvalidBet, f"{better_id} has already placed a bet", better_id=better_id
            )

        self._bets[better_id] = stake
        hand = self._new_hand(better_id, stake)
        self._hands.append(hand)

        self.events.emit_new(EventType.BET_PLACED, better_id=better_id, amount=stake)
        return hand

    # -- Dealing ---------------------------------------------------------

    def deal(self) -> None:
        """Close betting and deal two cards to every hand and the dealer."""
        self._require_phase(RoundPhase.AWAITING_BETS, "deal")
        if not self._bets:
            raise self._reject(InvalidBet, "At least one bet is required to deal")

        self._fire("start_dealing")
        self.events.emit_new(EventType.ROUND_STARTED, betters=self.better_ids)

        # Player hands, dealer up-card, player hands, dealer hole card
        for hand in self._hands:
            self._deal_card_to_hand(hand)
        self._deal_card_to_hand(self.dealer_hand)
        for hand in self._hands:
            self._deal_card_to_hand(hand)
        self._deal_card_to_hand(self.dealer_hand, face_up=False)

        for hand in self._hands:
            if hand.is_natural:
                self.events.emit_new(
                    EventType.PLAYER_NATURAL, better_id=hand.better_id, hand_id=hand.hand_id
                )

        up_card = self.dealer_up_card
        if self.rules.insurance_enabled and up_card is not None and up_card.is_ace:
            self._fire("open_insurance")
            self.events.emit_new(
                EventType.INSURANCE_OFFERED,
                max_amounts={better_id: bet / 2 for better_id, bet in self._bets.items()},
            )
            return

        self._start_player_turn()

    # -- Insurance -------------------------------------------------------

    def take_insurance(self, better_id: str, amount: Any = None) -> Decimal:
        """
        Place an insurance bet.

        Args:
            better_id: Better taking insurance
            amount: Up to half the original bet (defaults to exactly half)

        Returns:
            The insurance amount accepted
        """
        self._require_insurance_decision(better_id)

        max_amount = self._bets[better_id] / 2
        stake = max_amount if amount is None else self._parse_amount(amount, better_id)
        if stake <= 0 or stake > max_amount:
            raise self._reject(
                InvalidBet,
                f"Insurance must be between 0 and {max_amount}, got {stake}",
                better_id=better_id,
            )

        self._insurance[better_id] = stake
        self.events.emit_new(EventType.INSURANCE_TAKEN, better_id=better_id, amount=stake)
        self._close_insurance_if_decided()
        return stake

    def decline_insurance(self, better_id: str) -> None:
        """Decline the insurance offer."""
        self._require_insurance_decision(better_id)

        self._insurance[better_id] = Decimal("0")
        self.events.emit_new(EventType.INSURANCE_DECLINED, better_id=better_id)
        self._close_insurance_if_decided()

    def _require_insurance_decision(self, better_id: str) -> None:
        self._require_phase(RoundPhase.INSURANCE_OFFER, "decide on insurance")
        if better_id not in self._bets:
            raise self._reject(IllegalAction, f"{better_id} has no bet in this round")
        if better_id in self._insurance:
            raise self._reject(
                IllegalAction, f"{better_id} has already decided on insurance", better_id=better_id
            )

    def _close_insurance_if_decided(self) -> None:
        if all(better_id in self._insurance for better_id in self._bets):
            self._start_player_turn()

    def _settle_insurance(self) -> None:
        """Produce the insurance ledger lines, once."""
        if self._insurance_settled:
            return
        self._insurance_settled = True

        for better_id, amount in self._insurance.items():
            if amount <= 0:
                continue
            result = settle_insurance(better_id, amount, self.dealer_hand)
            self._insurance_results.append(result)
            self.events.emit_new(
                EventType.INSURANCE_WINS if result.won else EventType.INSURANCE_LOSES,
                better_id=better_id,
                amount=amount,
                net=result.net,
            )
            self._apply_to_bankroll(better_id, result.net)

    # -- Player turn -----------------------------------------------------

    def _start_player_turn(self) -> None:
        """Dealer peeks, naturals stand, and play moves to the first active hand."""
        dealer_natural = self.rules.dealer_peeks and self.dealer_hand.is_natural
        if dealer_natural:
            self.events.emit_new(EventType.DEALER_NATURAL)

        if self.rules.dealer_peeks and self.rules.insurance_settles_immediately:
            self._settle_insurance()

        self._fire("begin_player_turn")

        for hand in self._hands:
            if hand.is_natural or dealer_natural:
                hand.finish(HandStatus.STOOD)

        self._current_index = 0
        self._advance_hand()

    def legal_actions(self, hand: Hand | None = None) -> frozenset[Action]:
        """
        Actions legal for the hand awaiting a decision.

        Args:
            hand: Hand to check (the current hand if not provided). Any
                other hand has no legal actions.
        """
        current = self.current_hand
        if current is None or (hand is not None and hand is not current):
            return frozenset()
        if current.status.is_terminal:
            return frozenset()

        # Doubling draws a card too
        may_draw = self.rules.allow_hit_on_21 or current.value < 21

        actions = {Action.STAND}
        if may_draw:
            actions.add(Action.HIT)

        if len(current.cards) == 2:
            if may_draw and (not current.is_from_split or self.rules.double_after_split_allowed):
                actions.add(Action.DOUBLE)
            if self._can_split(current):
                actions.add(Action.SPLIT)
            if (
                self.rules.surrender_allowed
                and not current.is_from_split
                and current.decisions == 0
            ):
                actions.add(Action.SURRENDER)

        return frozenset(actions)

    def _can_split(self, hand: Hand) -> bool:
        if not hand.is_pair:
            return False
        if hand.split_depth >= self.rules.max_split_depth:
            return False
        # Every split adds one hand to the better's group
        if len(self.hands_for(hand.better_id)) - 1 >= self.rules.max_split_depth:
            return False
        if hand.cards[0].is_ace and hand.is_from_split and not self.rules.resplit_aces:
            return False
        return True

    def act(
        self,
        action: Action,
        *,
        better_id: str | None = None,
        hand_id: int | None = None,
    ) -> Hand:
        """
        Apply one decision to the current hand.

        Args:
            action: The decision
            better_id: If given, must own the current hand
            hand_id: If given, must be the current hand

        Returns:
            The hand the decision was applied to
        """
        self._require_phase(RoundPhase.PLAYER_TURN, f"{action}")
        hand = self.current_hand
        if hand is None:
            raise InvalidPhaseTransition("Player turn has no hand awaiting a decision")

        if better_id is not None and better_id != hand.better_id:
            raise self._reject(
                IllegalAction,
                f"It is {hand.better_id}'s turn, not {better_id}'s",
                better_id=better_id,
                action=str(action),
            )
        if hand_id is not None and hand_id != hand.hand_id:
            raise self._reject(
                IllegalAction,
                f"Hand {hand_id} is not the hand in play ({hand.hand_id})",
                hand_id=hand_id,
                action=str(action),
            )
        if not isinstance(action, Action):
            raise self._reject(IllegalAction, f"Unknown action {action!r}")

        legal = self.legal_actions()
        if action not in legal:
            raise self._reject(
                IllegalAction,
                f"Cannot {action} on hand {hand.hand_id}",
                hand_id=hand.hand_id,
                action=str(action),
                legal=sorted(str(a) for a in legal),
            )

        hand.decisions += 1
        if action is Action.HIT:
            self._hit(hand)
        elif action is Action.STAND:
            self._stand(hand)
        elif action is Action.DOUBLE:
            self._double_down(hand)
        elif action is Action.SPLIT:
            self._split(hand)
        elif action is Action.SURRENDER:
            self._surrender(hand)
        else:
            raise InvalidPhaseTransition(f"No handler for {action!r}")

        self._advance_hand()
        return hand

    def hit(self, **owner: Any) -> Hand:
        """Player hits (takes another card)."""
        return self.act(Action.HIT, **owner)

    def stand(self, **owner: Any) -> Hand:
        """Player stands (keeps current hand)."""
        return self.act(Action.STAND, **owner)

    def double_down(self, **owner: Any) -> Hand:
        """Player doubles the bet for exactly one more card."""
        return self.act(Action.DOUBLE, **owner)

    def split(self, **owner: Any) -> Hand:
        """Player splits a pair into two hands."""
        return self.act(Action.SPLIT, **owner)

    def surrender(self, **owner: Any) -> Hand:
        """Player gives up half the bet and leaves the hand."""
        return self.act(Action.SURRENDER, **owner)

    def _hit(self, hand: Hand) -> None:
        self._deal_card_to_hand(hand)
        self.events.emit_new(EventType.PLAYER_HIT, hand_id=hand.hand_id, hand_value=hand.value)
        if hand.is_bust:
            hand.finish(HandStatus.BUSTED)
            self.events.emit_new(EventType.PLAYER_BUSTS, hand_id=hand.hand_id)

    def _stand(self, hand: Hand) -> None:
        hand.finish(HandStatus.STOOD)
        self.events.emit_new(EventType.PLAYER_STAND, hand_id=hand.hand_id, hand_value=hand.value)

    def _double_down(self, hand: Hand) -> None:
        hand.bet *= 2
        hand.is_doubled = True

        self._deal_card_to_hand(hand)
        self.events.emit_new(
            EventType.PLAYER_DOUBLE,
            hand_id=hand.hand_id,
            hand_value=hand.value,
            new_bet=hand.bet,
        )

        if hand.is_bust:
            hand.finish(HandStatus.BUSTED)
            self.events.emit_new(EventType.PLAYER_BUSTS, hand_id=hand.hand_id)
        else:
            hand.finish(HandStatus.DOUBLED)

    def _split(self, hand: Hand) -> None:
        # New sibling takes the second card and plays right after its parent
        second_card = hand.cards.pop()
        hand.split_depth += 1
        hand.is_from_split = True
        sibling = self._new_hand(
            hand.better_id,
            hand.bet,
            parent_id=hand.hand_id,
            split_depth=hand.split_depth,
        )
        sibling.is_from_split = True
        sibling.add_card(second_card)
        self._hands.insert(self._current_index + 1, sibling)

        self._deal_card_to_hand(hand)
        self._deal_card_to_hand(sibling)

        self.events.emit_new(
            EventType.PLAYER_SPLIT,
            hand_id=hand.hand_id,
            new_hand_id=sibling.hand_id,
            hand1_value=hand.value,
            hand2_value=sibling.value,
        )

        if second_card.is_ace and not self.rules.hit_split_aces:
            hand.finish(HandStatus.STOOD)
            sibling.finish(HandStatus.STOOD)

    def _surrender(self, hand: Hand) -> None:
        hand.finish(HandStatus.SURRENDERED)
        self.events.emit_new(EventType.PLAYER_SURRENDER, hand_id=hand.hand_id)

    def _advance_hand(self) -> None:
        """Stay on the current hand while it is active, else move on."""
        while (
            self._current_index < len(self._hands)
            and self._hands[self._current_index].status.is_terminal
        ):
            self._current_index += 1

        if self._current_index >= len(self._hands):
            self._play_dealer()

    # -- Dealer turn -----------------------------------------------------

    def _play_dealer(self) -> None:
        """Dealer reveals and plays their hand, then the round settles."""
        self._fire("begin_dealer_turn")

        self._hole_revealed = True
        self.events.emit_new(
            EventType.DEALER_REVEALS,
            card=str(self.dealer_hand.cards[1]),
            hand_value=self.dealer_hand.value,
        )

        skip_draws = self.rules.dealer_skips_draw_if_all_players_resolved_nonwin and all(
            hand.status in _NON_WINNING for hand in self._hands
        )
        if skip_draws:
            logger.debug("every player hand busted or surrendered; dealer does not draw")
        else:
            while self._dealer_should_hit():
                self._deal_card_to_hand(self.dealer_hand)
                self.events.emit_new(EventType.DEALER_HITS, hand_value=self.dealer_hand.value)

        if self.dealer_hand.is_bust:
            self.dealer_hand.finish(HandStatus.BUSTED)
            self.events.emit_new(EventType.DEALER_BUSTS)
        else:
            self.dealer_hand.finish(HandStatus.STOOD)
            self.events.emit_new(EventType.DEALER_STANDS, hand_value=self.dealer_hand.value)

        self._settle_round()

    def _dealer_should_hit(self) -> bool:
        """Dealer hits below 17, and on soft 17 under H17 rules."""
        value = self.dealer_hand.value
        if value < 17:
            return True
        if value == 17 and self.dealer_hand.is_soft and self.rules.dealer_hits_soft_17:
            return True
        return False

    # -- Settlement ------------------------------------------------------

    def _settle_round(self) -> None:
        """Settle every player hand exactly once and report to the bankroll."""
        self._fire("begin_settlement")

        for hand in self._hands:
            result = settle(hand, self.dealer_hand, self.rules.natural_payout_ratio)
            hand.resolve()
            self._results.append(result)
            self.events.emit_new(
                EventType.HAND_SETTLED,
                better_id=result.better_id,
                hand_id=result.hand_id,
                outcome=result.outcome.name,
                net=result.net,
            )
            self._apply_to_bankroll(hand.better_id, result.net)

        self._settle_insurance()

        self._fire("complete")
        self.events.emit_new(EventType.ROUND_ENDED, results=self.net_by_better())

    def _apply_to_bankroll(self, better_id: str | None, delta: Decimal) -> None:
        if self.bankroll is not None and better_id is not None:
            self.bankroll.apply(better_id, delta)

    # -- Abort -----------------------------------------------------------

    def abort(self, reason: str = "aborted") -> None:
        """
        Abandon the round.

        Cards already drawn stay with their hands and nothing is settled.
        """
        if self.phase.is_terminal:
            raise self._reject(IllegalAction, f"Round is already {self.phase}")
        self._abort(reason)

    def _abort(self, reason: str) -> None:
        self.abort_reason = reason
        self._fire("abort_round")
        logger.warning("round aborted during play: %s", reason)
        self.events.emit_new(EventType.ROUND_ABORTED, reason=reason, cards_drawn=self._cards_drawn)

    # -- Helpers ---------------------------------------------------------

    def _new_hand(
        self,
        better_id: str | None,
        bet: Decimal,
        parent_id: int | None = None,
        split_depth: int = 0,
    ) -> Hand:
        hand = Hand(
            bet=bet,
            better_id=better_id,
            hand_id=self._next_hand_id,
            parent_id=parent_id,
            split_depth=split_depth,
        )
        self._next_hand_id += 1
        return hand

    def _draw(self) -> Card:
        """Draw from the shoe; an empty shoe ends the round."""
        try:
            card = self.shoe.draw()
        except ShoeExhausted:
            self._abort("shoe exhausted")
            raise
        self._cards_drawn += 1
        return card

    def _deal_card_to_hand(self, hand: Hand, face_up: bool = True) -> Card:
        """Deal a card to a hand."""
        card = self._draw()
        hand.add_card(card)
        is_dealer = hand is self.dealer_hand
        self.events.emit_new(
            EventType.CARD_DEALT,
            card=str(card) if face_up else "??",
            hand="dealer" if is_dealer else hand.hand_id,
            better_id=hand.better_id,
            hand_value=hand.value if not is_dealer or self._hole_revealed else None,
        )
        return card

    def _parse_amount(self, amount: Any, better_id: str) -> Decimal:
        if amount is None or isinstance(amount, bool):
            raise self._reject(InvalidBet, "A bet amount is required", better_id=better_id)
        try:
            stake = Decimal(str(amount))
        except (InvalidOperation, ValueError) as exc:
            raise self._reject(InvalidBet, f"Invalid amount {amount!r}", better_id=better_id) from exc
        if not stake.is_finite():
            raise self._reject(InvalidBet, f"Invalid amount {amount!r}", better_id=better_id)
        return stake

    def _require_phase(self, phase: RoundPhase, doing: str) -> None:
        if self.phase != phase:
            raise self._reject(
                IllegalAction,
                f"Cannot {doing} during {self.phase}",
                phase=self.phase.name,
            )

    def _reject(self, error: type[BlackjackError], message: str, **data: Any) -> BlackjackError:
        """Report an invalid request and build the error to raise."""
        self.events.emit_new(EventType.INVALID_ACTION, message=message, **data)
        logger.debug("rejected: %s", message)
        return error(message)

    def _fire(self, trigger: str) -> None:
        try:
            self.trigger(trigger)  # type: ignore[attr-defined]
        except MachineError as exc:
            raise InvalidPhaseTransition(f"{trigger!r} is not valid during {self.phase}") from exc

    def _on_phase_changed(self) -> None:
        logger.debug("round phase -> %s", self.phase.name)
        self.events.emit_new(EventType.PHASE_CHANGED, phase=self.phase.name)

    def __repr__(self) -> str:
        return f"Round(phase={self.phase.name}, hands={len(self._hands)})"
