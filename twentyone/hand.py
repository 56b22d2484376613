"""Hand evaluation for blackjack."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, auto
from typing import Iterable, Iterator

from twentyone.cards import Card
from twentyone.exceptions import IllegalAction, InvalidPhaseTransition


@dataclass(frozen=True, slots=True)
class HandValue:
    """Blackjack value of a set of cards."""

    hard: int
    best: int
    is_soft: bool
    is_bust: bool


def value_of(cards: Iterable[Card]) -> HandValue:
    """
    Compute the blackjack value of some cards.

    Every ace counts 1 towards the hard total. If there is at least one ace
    and the hard total plus 10 does not exceed 21, one ace is played as 11
    and the hand is soft. Only one ace can ever be promoted this way.
    """
    hard = 0
    has_ace = False
    for card in cards:
        hard += card.value
        has_ace = has_ace or card.is_ace

    if has_ace and hard + 10 <= 21:
        return HandValue(hard=hard, best=hard + 10, is_soft=True, is_bust=False)
    return HandValue(hard=hard, best=hard, is_soft=False, is_bust=hard > 21)


class HandStatus(Enum):
    """Lifecycle of a hand within a round."""

    ACTIVE = auto()
    STOOD = auto()
    DOUBLED = auto()
    SURRENDERED = auto()
    BUSTED = auto()
    RESOLVED = auto()

    @property
    def is_terminal(self) -> bool:
        """True once the hand accepts no more cards or decisions."""
        return self != HandStatus.ACTIVE

    def __str__(self) -> str:
        return self.name.title()


@dataclass
class Hand:
    """A blackjack hand with value calculation and split lineage."""

    cards: list[Card] = field(default_factory=list)
    bet: Decimal = Decimal("0")
    better_id: str | None = None
    hand_id: int = 0
    parent_id: int | None = None
    split_depth: int = 0
    is_from_split: bool = False
    is_doubled: bool = False
    status: HandStatus = HandStatus.ACTIVE
    decisions: int = 0

    def add_card(self, card: Card) -> None:
        """Add a card to the hand."""
        if self.status.is_terminal:
            raise IllegalAction(f"Hand {self.hand_id} is {self.status} and takes no cards")
        self.cards.append(card)

    def finish(self, status: HandStatus) -> None:
        """Move the hand to a terminal status."""
        if self.status.is_terminal:
            raise IllegalAction(f"Hand {self.hand_id} is already {self.status}")
        self.status = status

    def resolve(self) -> None:
        """Mark a finished hand as settled."""
        if self.status in (HandStatus.ACTIVE, HandStatus.RESOLVED):
            raise InvalidPhaseTransition(f"Hand {self.hand_id} cannot be resolved from {self.status}")
        self.status = HandStatus.RESOLVED

    @property
    def evaluation(self) -> HandValue:
        return value_of(self.cards)

    @property
    def hard_value(self) -> int:
        """Sum with every ace counted as 1."""
        return self.evaluation.hard

    @property
    def soft_value(self) -> int:
        """Sum with one ace counted as 11 when that does not bust."""
        return self.evaluation.best

    @property
    def value(self) -> int:
        """Best playable value."""
        return self.evaluation.best

    @property
    def is_soft(self) -> bool:
        return self.evaluation.is_soft

    @property
    def is_hard(self) -> bool:
        return not self.is_soft

    @property
    def is_bust(self) -> bool:
        return self.evaluation.is_bust

    @property
    def is_natural(self) -> bool:
        """Check if the hand is a natural blackjack (21 with 2 cards, not split)."""
        return (
            len(self.cards) == 2
            and self.value == 21
            and not self.is_from_split
        )

    @property
    def is_pair(self) -> bool:
        """Check if the hand is two cards of the same rank."""
        return (
            len(self.cards) == 2
            and self.cards[0].rank == self.cards[1].rank
        )

    @property
    def num_cards(self) -> int:
        return len(self.cards)

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __str__(self) -> str:
        cards_str = " ".join(str(card) for card in self.cards)
        value_str = f"({self.value})"
        if self.is_soft:
            value_str = f"(soft {self.value})"
        if self.is_natural:
            value_str = "(BLACKJACK)"
        if self.is_bust:
            value_str = "(BUST)"
        return f"{cards_str} {value_str}"

    def __repr__(self) -> str:
        return (
            f"Hand(id={self.hand_id}, {self.cards!r}, value={self.value}, "
            f"status={self.status.name})"
        )
