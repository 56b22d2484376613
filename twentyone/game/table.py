"""Table driver that plays whole rounds through decision callbacks."""

import logging
from decimal import Decimal
from typing import Any, Callable, Mapping, NoReturn

from twentyone.bankroll import Bankroll
from twentyone.cards import CardSource, Shoe
from twentyone.exceptions import BlackjackError, IllegalAction, InvalidBet
from twentyone.game.actions import Action
from twentyone.game.events import EventEmitter, EventType, GameEvent
from twentyone.game.round import Round
from twentyone.game.snapshot import RoundSnapshot
from twentyone.game.state import RoundPhase
from twentyone.rules import RuleSet

logger = logging.getLogger(__name__)

# Asked for every player decision
DecisionCallback = Callable[[RoundSnapshot], Action]

# Asked once per better when insurance is offered; None or 0 declines
InsuranceCallback = Callable[[RoundSnapshot, str], Decimal | int | None]


class Table:
    """
    Runs rounds one after another against a single shoe.

    The table owns the shoe between rounds (reshuffling at the cut card)
    and lends it to each round while it is played.
    """

    def __init__(
        self,
        shoe: CardSource,
        rules: RuleSet | None = None,
        bankroll: Bankroll | None = None,
        low_card_threshold: int = 20,
        max_invalid_decisions: int = 3,
    ) -> None:
        """
        Initialize a table.

        Args:
            shoe: Card source shared by successive rounds
            rules: Table rules
            bankroll: Collaborator receiving settlement deltas
            low_card_threshold: Emit SHOE_LOW below this many cards
            max_invalid_decisions: Illegal decisions tolerated per hand decision
        """
        if max_invalid_decisions < 1:
            raise ValueError("max_invalid_decisions must be at least 1")

        self.shoe = shoe
        self.rules = rules or RuleSet()
        self.bankroll = bankroll
        self.low_card_threshold = low_card_threshold
        self.max_invalid_decisions = max_invalid_decisions
        self.events = EventEmitter()
        self.rounds_played = 0

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to events from every round played at this table."""
        self.events.subscribe(handler, event_type)

    def new_round(self) -> Round:
        """Prepare the shoe and open a round for betting."""
        if isinstance(self.shoe, Shoe) and self.shoe.needs_shuffle:
            self.shoe.shuffle()
            self.events.emit_new(EventType.SHOE_SHUFFLED, cards=self.shoe.remaining())

        if self.shoe.remaining() < self.low_card_threshold:
            self.events.emit_new(EventType.SHOE_LOW, remaining=self.shoe.remaining())

        return Round(self.shoe, rules=self.rules, bankroll=self.bankroll, events=self.events)

    def play_round(
        self,
        bets: Mapping[str, Any],
        decide: DecisionCallback,
        insure: InsuranceCallback | None = None,
    ) -> Round:
        """
        Play one full round.

        Args:
            bets: Bet amount per better, in seating order
            decide: Returns the action for the hand in the snapshot
            insure: Returns an insurance amount for a better, or None

        Returns:
            The finished round
        """
        round_ = self.new_round()
        for better_id, amount in bets.items():
            round_.place_bet(better_id, amount)
        round_.deal()

        if round_.phase == RoundPhase.INSURANCE_OFFER:
            for better_id in round_.better_ids:
                self._play_insurance(round_, better_id, insure)

        while round_.phase == RoundPhase.PLAYER_TURN:
            self._play_decision(round_, decide)

        self.rounds_played += 1
        return round_

    def _play_insurance(
        self,
        round_: Round,
        better_id: str,
        insure: InsuranceCallback | None,
    ) -> None:
        """Ask for an insurance amount until a valid one is given."""
        if insure is None:
            round_.decline_insurance(better_id)
            return

        for attempt in range(1, self.max_invalid_decisions + 1):
            amount = insure(round_.snapshot(), better_id)
            if not amount:
                round_.decline_insurance(better_id)
                return
            try:
                round_.take_insurance(better_id, amount)
                return
            except InvalidBet:
                logger.info(
                    "invalid insurance %s for %s (attempt %d)", amount, better_id, attempt
                )

        self._give_up(
            round_,
            InvalidBet(
                f"No valid insurance amount for {better_id} "
                f"after {self.max_invalid_decisions} attempts"
            ),
        )

    def _play_decision(self, round_: Round, decide: DecisionCallback) -> None:
        """Ask for a decision until a legal one is given."""
        hand = round_.current_hand
        if hand is None:
            return

        for attempt in range(1, self.max_invalid_decisions + 1):
            action = decide(round_.snapshot())
            try:
                round_.act(action, hand_id=hand.hand_id)
                return
            except IllegalAction:
                logger.info(
                    "illegal decision %s for hand %d (attempt %d)", action, hand.hand_id, attempt
                )

        self._give_up(
            round_,
            IllegalAction(
                f"No legal decision for hand {hand.hand_id} "
                f"after {self.max_invalid_decisions} attempts"
            ),
        )

    def _give_up(self, round_: Round, error: BlackjackError) -> NoReturn:
        """Abort a round whose callbacks keep giving invalid answers."""
        round_.abort(str(error))
        raise error
