"""Blackjack rule variations."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from config import GameConfig


def parse_ratio(ratio: "Decimal | Fraction | int | float | str") -> Decimal:
    """
    Convert a payout ratio to a Decimal.

    Accepts numbers, Fractions and strings such as ``"1.5"``, ``"3:2"`` or
    ``"6/5"``.
    """
    if isinstance(ratio, Decimal):
        return ratio
    if isinstance(ratio, Fraction):
        return Decimal(ratio.numerator) / Decimal(ratio.denominator)
    if isinstance(ratio, str):
        text = ratio.strip().replace(":", "/")
        if "/" in text:
            numerator, _, denominator = text.partition("/")
            try:
                return Decimal(numerator.strip()) / Decimal(denominator.strip())
            except (InvalidOperation, ZeroDivisionError) as exc:
                raise ValueError(f"Invalid payout ratio: {ratio!r}") from exc
        try:
            return Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"Invalid payout ratio: {ratio!r}") from exc
    return Decimal(str(ratio))


@dataclass(frozen=True)
class RuleSet:
    """
    Blackjack table rules, fixed for the lifetime of a round.
    """

    # Betting limits (None = unlimited; funds are checked by the bankroll)
    min_bet: Decimal | None = None
    max_bet: Decimal | None = None

    # Dealer rules
    dealer_hits_soft_17: bool = True  # H17 vs S17
    dealer_peeks: bool = True  # US hole card; False = European no peek
    dealer_skips_draw_if_all_players_resolved_nonwin: bool = True

    # Natural payout (3:2 = 1.5, 6:5 = 1.2)
    natural_payout_ratio: Decimal = Decimal("1.5")

    # Player decisions
    allow_hit_on_21: bool = True
    double_after_split_allowed: bool = True  # DAS

    # Split rules
    max_split_depth: int = 3  # Splits per better; 3 = up to four hands
    resplit_aces: bool = True
    hit_split_aces: bool = True

    # Surrender (late, first decision only)
    surrender_allowed: bool = True

    # Insurance
    insurance_enabled: bool = True
    insurance_settles_immediately: bool = True

    def __post_init__(self) -> None:
        """Normalise and validate rule combinations."""
        object.__setattr__(self, "natural_payout_ratio", parse_ratio(self.natural_payout_ratio))
        if self.min_bet is not None:
            object.__setattr__(self, "min_bet", Decimal(str(self.min_bet)))
        if self.max_bet is not None:
            object.__setattr__(self, "max_bet", Decimal(str(self.max_bet)))

        if self.natural_payout_ratio < 1:
            raise ValueError("natural_payout_ratio must be at least 1")
        if self.max_split_depth < 0:
            raise ValueError("max_split_depth cannot be negative")
        if self.min_bet is not None and self.min_bet <= 0:
            raise ValueError("min_bet must be positive")
        if (
            self.min_bet is not None
            and self.max_bet is not None
            and self.max_bet < self.min_bet
        ):
            raise ValueError("max_bet must not be below min_bet")

    @classmethod
    def from_config(cls, game: "GameConfig") -> "RuleSet":
        """Build rules from the environment-backed game configuration."""
        return cls(
            min_bet=game.min_bet,
            max_bet=game.max_bet,
            dealer_hits_soft_17=game.dealer_hits_soft_17,
            dealer_peeks=game.dealer_peeks,
            dealer_skips_draw_if_all_players_resolved_nonwin=game.dealer_skips_draw_on_all_bust,
            natural_payout_ratio=game.natural_payout_ratio,
            allow_hit_on_21=game.allow_hit_on_21,
            double_after_split_allowed=game.double_after_split,
            max_split_depth=game.max_split_depth,
            resplit_aces=game.resplit_aces,
            hit_split_aces=game.hit_split_aces,
            surrender_allowed=game.surrender_allowed,
            insurance_enabled=game.insurance_enabled,
            insurance_settles_immediately=game.insurance_settles_immediately,
        )

    @classmethod
    def vegas_strip(cls) -> "RuleSet":
        """Standard Vegas Strip rules."""
        return cls(
            dealer_hits_soft_17=False,
            natural_payout_ratio=Decimal("1.5"),
            double_after_split_allowed=True,
            resplit_aces=False,
            hit_split_aces=False,
            surrender_allowed=True,
        )

    @classmethod
    def downtown_vegas(cls) -> "RuleSet":
        """Downtown Las Vegas rules (typically H17)."""
        return cls(
            dealer_hits_soft_17=True,
            natural_payout_ratio=Decimal("1.5"),
            double_after_split_allowed=True,
            resplit_aces=False,
            hit_split_aces=False,
            surrender_allowed=True,
        )

    @classmethod
    def single_deck(cls) -> "RuleSet":
        """Single deck rules, 6:5 naturals."""
        return cls(
            dealer_hits_soft_17=True,
            natural_payout_ratio=Decimal("1.2"),
            double_after_split_allowed=False,
            max_split_depth=1,
            resplit_aces=False,
            hit_split_aces=False,
            surrender_allowed=False,
        )

    @classmethod
    def atlantic_city(cls) -> "RuleSet":
        """Atlantic City rules."""
        return cls(
            dealer_hits_soft_17=False,
            natural_payout_ratio=Decimal("1.5"),
            double_after_split_allowed=True,
            resplit_aces=False,
            hit_split_aces=False,
            surrender_allowed=True,
        )
