"""Round phase enumeration."""

from enum import Enum, auto


class RoundPhase(Enum):
    """
    Round state machine phases.

    Flow: AWAITING_BETS → DEALING → [INSURANCE_OFFER] → PLAYER_TURN →
    DEALER_TURN → SETTLEMENT → ROUND_COMPLETE, with ABORTED reachable from
    every phase before completion.
    """

    AWAITING_BETS = auto()
    DEALING = auto()
    INSURANCE_OFFER = auto()
    PLAYER_TURN = auto()
    DEALER_TURN = auto()
    SETTLEMENT = auto()
    ROUND_COMPLETE = auto()
    ABORTED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (RoundPhase.ROUND_COMPLETE, RoundPhase.ABORTED)

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()
