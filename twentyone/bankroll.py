"""Bankroll collaborator that receives settlement deltas."""

import logging
from decimal import Decimal
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Bankroll(Protocol):
    """Receives one signed delta per settled ledger line.

    Stakes are never debited when a bet is placed; the delta is the net
    result of the line (``+bet`` for a win, ``-bet`` for a loss, ...).
    """

    def apply(self, better_id: str, delta: Decimal) -> None:
        ...


class InMemoryBankroll:
    """Per-better Decimal balances with a ledger of applied deltas."""

    def __init__(
        self,
        balances: dict[str, Decimal] | None = None,
        default_balance: Decimal = Decimal("0"),
    ) -> None:
        """
        Args:
            balances: Starting balance per better
            default_balance: Balance assumed for a better seen for the first time
        """
        self._balances = {k: Decimal(str(v)) for k, v in (balances or {}).items()}
        self._default_balance = default_balance
        self._ledger: list[tuple[str, Decimal]] = []

    def apply(self, better_id: str, delta: Decimal) -> None:
        self._balances[better_id] = self.balance(better_id) + delta
        self._ledger.append((better_id, delta))
        logger.debug("bankroll %s %+f -> %s", better_id, delta, self._balances[better_id])

    def balance(self, better_id: str) -> Decimal:
        return self._balances.get(better_id, self._default_balance)

    @property
    def ledger(self) -> list[tuple[str, Decimal]]:
        """Applied deltas, in order."""
        return self._ledger.copy()
