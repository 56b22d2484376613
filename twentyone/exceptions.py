"""Engine errors for a blackjack round."""


class BlackjackError(Exception):
    """Base class for all round engine errors."""


class InvalidBet(BlackjackError):
    """A bet is missing, non-positive, duplicated or outside table limits."""


class IllegalAction(BlackjackError):
    """The request is not legal for the current hand or phase.

    Recoverable: the round is left unchanged and the caller may retry.
    """


class ShoeExhausted(BlackjackError):
    """No cards are left to deal. Fatal to the round in progress."""


class InvalidPhaseTransition(BlackjackError):
    """Internal invariant violation; the round must be discarded."""
