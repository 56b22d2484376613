"""Read-only views of a round for presentation layers."""

from dataclasses import dataclass
from decimal import Decimal

from twentyone.cards import Card
from twentyone.game.actions import Action
from twentyone.game.state import RoundPhase
from twentyone.hand import Hand, HandStatus
from twentyone.settlement import InsuranceResult, SettlementResult


@dataclass(frozen=True)
class HandView:
    """Frozen copy of one player hand."""

    hand_id: int
    better_id: str | None
    cards: tuple[Card, ...]
    value: int
    is_soft: bool
    is_natural: bool
    status: HandStatus
    bet: Decimal
    split_depth: int
    parent_id: int | None
    is_doubled: bool

    @classmethod
    def from_hand(cls, hand: Hand) -> "HandView":
        return cls(
            hand_id=hand.hand_id,
            better_id=hand.better_id,
            cards=tuple(hand.cards),
            value=hand.value,
            is_soft=hand.is_soft,
            is_natural=hand.is_natural,
            status=hand.status,
            bet=hand.bet,
            split_depth=hand.split_depth,
            parent_id=hand.parent_id,
            is_doubled=hand.is_doubled,
        )


@dataclass(frozen=True)
class RoundSnapshot:
    """
    Everything a presentation layer may show about a round.

    The dealer's hole card is left out until it has been revealed.
    """

    phase: RoundPhase
    dealer_cards: tuple[Card, ...]
    dealer_value: int
    hole_card_hidden: bool
    hands: tuple[HandView, ...]
    current_hand_id: int | None
    legal_actions: frozenset[Action]
    pending_insurance: tuple[str, ...]
    results: tuple[SettlementResult, ...]
    insurance_results: tuple[InsuranceResult, ...]

    @property
    def current_hand(self) -> HandView | None:
        for view in self.hands:
            if view.hand_id == self.current_hand_id:
                return view
        return None

    def hands_for(self, better_id: str) -> tuple[HandView, ...]:
        return tuple(view for view in self.hands if view.better_id == better_id)
