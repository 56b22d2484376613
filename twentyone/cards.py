"""Cards and the card sources a round draws from."""

from dataclasses import dataclass
from enum import Enum, auto
from random import Random
from typing import Iterable, Iterator, Protocol, runtime_checkable

from twentyone.exceptions import ShoeExhausted


class Suit(Enum):
    """Card suits. Irrelevant to scoring, kept for display and audit."""

    CLUBS = auto()
    DIAMONDS = auto()
    HEARTS = auto()
    SPADES = auto()

    def __str__(self) -> str:
        symbols = {
            Suit.CLUBS: "♣",
            Suit.DIAMONDS: "♦",
            Suit.HEARTS: "♥",
            Suit.SPADES: "♠",
        }
        return symbols[self]


class Rank(Enum):
    """Card ranks, ace low."""

    ACE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13

    def __str__(self) -> str:
        if 2 <= self.value <= 10:
            return str(self.value)
        return {
            Rank.ACE: "A",
            Rank.JACK: "J",
            Rank.QUEEN: "Q",
            Rank.KING: "K",
        }[self]

    @property
    def points(self) -> int:
        """Hard point value: aces count 1, face cards 10."""
        return min(self.value, 10)

    @property
    def is_ace(self) -> bool:
        return self == Rank.ACE

    @property
    def is_ten_value(self) -> bool:
        return self.points == 10


_RANK_MAP = {
    "A": Rank.ACE,
    "2": Rank.TWO,
    "3": Rank.THREE,
    "4": Rank.FOUR,
    "5": Rank.FIVE,
    "6": Rank.SIX,
    "7": Rank.SEVEN,
    "8": Rank.EIGHT,
    "9": Rank.NINE,
    "10": Rank.TEN,
    "T": Rank.TEN,
    "J": Rank.JACK,
    "Q": Rank.QUEEN,
    "K": Rank.KING,
}

_SUIT_MAP = {
    "C": Suit.CLUBS,
    "♣": Suit.CLUBS,
    "D": Suit.DIAMONDS,
    "♦": Suit.DIAMONDS,
    "H": Suit.HEARTS,
    "♥": Suit.HEARTS,
    "S": Suit.SPADES,
    "♠": Suit.SPADES,
}


@dataclass(frozen=True, slots=True)
class Card:
    """Immutable playing card."""

    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    def __repr__(self) -> str:
        return f"Card({self.rank.name}, {self.suit.name})"

    @property
    def value(self) -> int:
        """Return the hard point value (ace = 1)."""
        return self.rank.points

    @property
    def is_ace(self) -> bool:
        return self.rank.is_ace

    @property
    def is_ten_value(self) -> bool:
        return self.rank.is_ten_value

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Create a card from a string like '2♣', 'AS', 'Kh' or '10d'."""
        s = s.strip().upper()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s}")

        rank_str = s[:-1]
        suit_str = s[-1]

        if rank_str not in _RANK_MAP:
            raise ValueError(f"Invalid rank: {rank_str}")
        if suit_str not in _SUIT_MAP:
            raise ValueError(f"Invalid suit: {suit_str}")

        return cls(_RANK_MAP[rank_str], _SUIT_MAP[suit_str])


def parse_cards(text: str) -> list[Card]:
    """Parse a whitespace separated list of cards, e.g. ``"AS KH 10D"``."""
    return [Card.from_string(token) for token in text.split()]


@runtime_checkable
class CardSource(Protocol):
    """Ordered supply of cards a round draws from.

    Owned outside the round; the engine only ever draws and asks how many
    cards are left.
    """

    def draw(self) -> Card:
        """Deal the next card, raising ShoeExhausted when none remain."""
        ...

    def remaining(self) -> int:
        """Return the number of cards left to deal."""
        ...


class Shoe:
    """A multi-deck shoe for blackjack."""

    def __init__(
        self,
        num_decks: int = 6,
        penetration: float = 0.75,
        rng: Random | None = None,
    ) -> None:
        """
        Initialize a shoe with multiple decks.

        Args:
            num_decks: Number of decks in the shoe (typically 6 or 8)
            penetration: Fraction of shoe dealt before reshuffle (0.0-1.0)
            rng: Random number generator for shuffling
        """
        if num_decks < 1:
            raise ValueError("Shoe must have at least 1 deck")
        if not 0.0 < penetration <= 1.0:
            raise ValueError("Penetration must be between 0 and 1")

        self._num_decks = num_decks
        self._penetration = penetration
        self._rng = rng or Random()
        self._cards: list[Card] = []
        self._cut_card_position: int = 0
        self.reset()

    def reset(self) -> None:
        """Reset shoe to all cards from all decks, unshuffled."""
        self._cards = [
            Card(rank, suit)
            for _ in range(self._num_decks)
            for suit in Suit
            for rank in Rank
        ]
        self._cut_card_position = int(len(self._cards) * self._penetration)

    def shuffle(self) -> None:
        """Gather every card back and shuffle. Only valid between rounds."""
        self.reset()
        self._rng.shuffle(self._cards)

    def draw(self) -> Card:
        if not self._cards:
            raise ShoeExhausted("Cannot draw from an empty shoe")
        return self._cards.pop()

    def remaining(self) -> int:
        return len(self._cards)

    @property
    def needs_shuffle(self) -> bool:
        """Check if the cut card has been reached."""
        return self.cards_dealt >= self._cut_card_position

    @property
    def cards_dealt(self) -> int:
        return self.total_cards - len(self._cards)

    @property
    def total_cards(self) -> int:
        return self._num_decks * 52

    @property
    def num_decks(self) -> int:
        return self._num_decks

    @property
    def penetration(self) -> float:
        return self._penetration

    def __len__(self) -> int:
        return len(self._cards)


class StackedShoe:
    """
    A shoe that deals a fixed sequence of cards in the order given.

    Used to replay a known deal deterministically.
    """

    def __init__(self, cards: Iterable[Card]) -> None:
        # Stored reversed so draw() can pop from the end.
        self._cards = list(cards)[::-1]
        self._dealt: list[Card] = []

    @classmethod
    def from_strings(cls, text: str) -> "StackedShoe":
        """Build a stacked shoe from text such as ``"8S 6H 8D 10C"``."""
        return cls(parse_cards(text))

    def draw(self) -> Card:
        if not self._cards:
            raise ShoeExhausted(f"Stacked shoe exhausted after {len(self._dealt)} cards")
        card = self._cards.pop()
        self._dealt.append(card)
        return card

    def remaining(self) -> int:
        return len(self._cards)

    @property
    def dealt(self) -> list[Card]:
        """Cards dealt so far, in order."""
        return self._dealt.copy()

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[Card]:
        return reversed(self._cards)
