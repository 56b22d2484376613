"""Blackjack round engine - 100% UI-agnostic."""

from twentyone.bankroll import Bankroll, InMemoryBankroll
from twentyone.cards import Card, CardSource, Rank, Shoe, StackedShoe, Suit
from twentyone.exceptions import (
    BlackjackError,
    IllegalAction,
    InvalidBet,
    InvalidPhaseTransition,
    ShoeExhausted,
)
from twentyone.hand import Hand, HandStatus, HandValue, value_of
from twentyone.rules import RuleSet
from twentyone.settlement import InsuranceResult, Outcome, SettlementResult, settle

__all__ = [
    "Bankroll",
    "InMemoryBankroll",
    "Card",
    "CardSource",
    "Rank",
    "Shoe",
    "StackedShoe",
    "Suit",
    "BlackjackError",
    "IllegalAction",
    "InvalidBet",
    "InvalidPhaseTransition",
    "ShoeExhausted",
    "Hand",
    "HandStatus",
    "HandValue",
    "value_of",
    "RuleSet",
    "InsuranceResult",
    "Outcome",
    "SettlementResult",
    "settle",
]
