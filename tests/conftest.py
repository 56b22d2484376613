"""Pytest fixtures for round engine tests."""

import pytest
from decimal import Decimal
from random import Random

from hypothesis import strategies as st

from twentyone.bankroll import InMemoryBankroll
from twentyone.cards import Card, Rank, Shoe, StackedShoe, Suit, parse_cards
from twentyone.game import Round
from twentyone.hand import Hand
from twentyone.rules import RuleSet


def make_hand(text: str, **kwargs) -> Hand:
    """Build a hand from text such as ``"AS KH"``."""
    return Hand(cards=parse_cards(text), **kwargs)


def stacked_round(text: str, rules: RuleSet | None = None, **kwargs) -> Round:
    """A round drawing the given cards in order."""
    return Round(StackedShoe.from_strings(text), rules=rules or RuleSet(), **kwargs)


def cards_in_play(round_: Round) -> int:
    """Cards held by the dealer and every player hand."""
    return len(round_.dealer_hand) + sum(len(hand) for hand in round_.hands)


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def shoe(rng):
    """A shuffled 6-deck shoe."""
    s = Shoe(num_decks=6, penetration=0.75, rng=rng)
    s.shuffle()
    return s


@pytest.fixture
def rules():
    """Default ruleset."""
    return RuleSet()


@pytest.fixture
def bankroll():
    """Bankroll starting every better at 1000."""
    return InMemoryBankroll(default_balance=Decimal("1000"))


@pytest.fixture
def empty_hand():
    """An empty player hand."""
    return Hand()


@pytest.fixture
def natural_hand():
    """A natural blackjack hand."""
    return make_hand("AS KH")


@pytest.fixture
def soft_17_hand():
    """A soft 17 hand (A-6)."""
    return make_hand("AS 6H")


@pytest.fixture
def hard_16_hand():
    """A hard 16 hand (10-6)."""
    return make_hand("10S 6H")


@pytest.fixture
def pair_8s_hand():
    """A pair of 8s hand."""
    return make_hand("8S 8H")


@pytest.fixture
def bust_hand():
    """A busted hand."""
    return make_hand("10S 6H KC")


# Hypothesis strategies for property-based testing
cards = st.builds(Card, st.sampled_from(list(Rank)), st.sampled_from(list(Suit)))


@st.composite
def hands(draw, min_cards=0, max_cards=8):
    """Generate a random hand."""
    return Hand(cards=draw(st.lists(cards, min_size=min_cards, max_size=max_cards)))
