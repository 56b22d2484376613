"""Settlement of player hands against the dealer's final hand."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, auto

from twentyone.exceptions import InvalidPhaseTransition
from twentyone.hand import Hand, HandStatus


class Outcome(Enum):
    """Result of a player hand."""

    WIN = auto()
    NATURAL_WIN = auto()
    PUSH = auto()
    LOSS = auto()
    SURRENDERED = auto()

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass(frozen=True)
class SettlementResult:
    """
    Settlement of one player hand.

    ``multiplier`` follows the payout table: 1 for a win, the natural ratio
    for a natural, 0 for a push or a loss and 0.5 (the share of stake
    recovered) for a surrender. ``net`` is the signed amount the better's
    bankroll moves by.
    """

    better_id: str | None
    hand_id: int
    outcome: Outcome
    multiplier: Decimal
    bet: Decimal
    net: Decimal

    @property
    def returned(self) -> Decimal:
        """Amount handed back to the better, stake included."""
        return self.bet + self.net


@dataclass(frozen=True)
class InsuranceResult:
    """Settlement of an insurance side bet, a separate ledger line."""

    better_id: str
    amount: Decimal
    won: bool
    net: Decimal


def _result(hand: Hand, outcome: Outcome, multiplier: Decimal, net: Decimal) -> SettlementResult:
    return SettlementResult(
        better_id=hand.better_id,
        hand_id=hand.hand_id,
        outcome=outcome,
        multiplier=multiplier,
        bet=hand.bet,
        net=net,
    )


def settle(
    player_hand: Hand,
    dealer_hand: Hand,
    natural_payout_ratio: Decimal = Decimal("1.5"),
) -> SettlementResult:
    """
    Compare a finished player hand with the dealer's final hand.

    Args:
        player_hand: Hand in a terminal, not yet resolved, status
        dealer_hand: Dealer's final hand
        natural_payout_ratio: Payout for a player natural (3:2 = 1.5)

    Returns:
        The settlement for this hand
    """
    if player_hand.status == HandStatus.RESOLVED:
        raise InvalidPhaseTransition(f"Hand {player_hand.hand_id} has already been settled")
    if player_hand.status == HandStatus.ACTIVE:
        raise InvalidPhaseTransition(f"Hand {player_hand.hand_id} is still being played")

    bet = player_hand.bet

    if player_hand.status == HandStatus.SURRENDERED:
        return _result(player_hand, Outcome.SURRENDERED, Decimal("0.5"), -bet / 2)

    # Player bust loses even if the dealer busts too
    if player_hand.is_bust:
        return _result(player_hand, Outcome.LOSS, Decimal("0"), -bet)

    player_natural = player_hand.is_natural
    dealer_natural = dealer_hand.is_natural

    if player_natural and dealer_natural:
        return _result(player_hand, Outcome.PUSH, Decimal("0"), Decimal("0"))
    if player_natural:
        return _result(
            player_hand,
            Outcome.NATURAL_WIN,
            natural_payout_ratio,
            bet * natural_payout_ratio,
        )
    if dealer_natural:
        return _result(player_hand, Outcome.LOSS, Decimal("0"), -bet)

    if dealer_hand.is_bust:
        return _result(player_hand, Outcome.WIN, Decimal("1"), bet)

    player_value = player_hand.value
    dealer_value = dealer_hand.value
    if player_value > dealer_value:
        return _result(player_hand, Outcome.WIN, Decimal("1"), bet)
    if player_value < dealer_value:
        return _result(player_hand, Outcome.LOSS, Decimal("0"), -bet)
    return _result(player_hand, Outcome.PUSH, Decimal("0"), Decimal("0"))


def settle_insurance(better_id: str, amount: Decimal, dealer_hand: Hand) -> InsuranceResult:
    """Insurance pays 2:1 against a dealer natural and is lost otherwise."""
    if dealer_hand.is_natural:
        return InsuranceResult(better_id=better_id, amount=amount, won=True, net=amount * 2)
    return InsuranceResult(better_id=better_id, amount=amount, won=False, net=-amount)
