"""Configuration management with environment variable support."""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal


def _env_flag(name: str, default: bool) -> bool:
    """Read a true/false environment variable."""
    return os.getenv(name, "true" if default else "false").lower() == "true"


def _env_decimal(name: str) -> Decimal | None:
    """Read an optional decimal environment variable."""
    raw = os.getenv(name)
    return Decimal(raw) if raw else None


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "WARNING").upper())
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class GameConfig:
    """Default table rules, overridable through BLACKJACK_* variables."""

    min_bet: Decimal | None = field(default_factory=lambda: _env_decimal("BLACKJACK_MIN_BET"))
    max_bet: Decimal | None = field(default_factory=lambda: _env_decimal("BLACKJACK_MAX_BET"))
    natural_payout_ratio: str = field(
        default_factory=lambda: os.getenv("BLACKJACK_NATURAL_PAYOUT", "3:2")
    )
    dealer_hits_soft_17: bool = field(
        default_factory=lambda: _env_flag("BLACKJACK_DEALER_HITS_SOFT_17", True)
    )
    dealer_peeks: bool = field(default_factory=lambda: _env_flag("BLACKJACK_DEALER_PEEKS", True))
    dealer_skips_draw_on_all_bust: bool = field(
        default_factory=lambda: _env_flag("BLACKJACK_DEALER_SKIPS_DRAW_ON_ALL_BUST", True)
    )
    allow_hit_on_21: bool = field(
        default_factory=lambda: _env_flag("BLACKJACK_ALLOW_HIT_ON_21", True)
    )
    double_after_split: bool = field(
        default_factory=lambda: _env_flag("BLACKJACK_DOUBLE_AFTER_SPLIT", True)
    )
    max_split_depth: int = field(
        default_factory=lambda: int(os.getenv("BLACKJACK_MAX_SPLIT_DEPTH", "3"))
    )
    resplit_aces: bool = field(default_factory=lambda: _env_flag("BLACKJACK_RESPLIT_ACES", True))
    hit_split_aces: bool = field(
        default_factory=lambda: _env_flag("BLACKJACK_HIT_SPLIT_ACES", True)
    )
    surrender_allowed: bool = field(
        default_factory=lambda: _env_flag("BLACKJACK_SURRENDER_ALLOWED", True)
    )
    insurance_enabled: bool = field(
        default_factory=lambda: _env_flag("BLACKJACK_INSURANCE_ENABLED", True)
    )
    insurance_settles_immediately: bool = field(
        default_factory=lambda: _env_flag("BLACKJACK_INSURANCE_SETTLES_IMMEDIATELY", True)
    )


@dataclass(frozen=True)
class ShoeConfig:
    """Default shoe used by the table driver."""

    num_decks: int = field(default_factory=lambda: int(os.getenv("BLACKJACK_NUM_DECKS", "6")))
    penetration: float = field(
        default_factory=lambda: float(os.getenv("BLACKJACK_PENETRATION", "0.75"))
    )
    low_card_threshold: int = field(
        default_factory=lambda: int(os.getenv("BLACKJACK_LOW_CARD_THRESHOLD", "20"))
    )


@dataclass(frozen=True)
class AppConfig:
    """Application configuration."""

    debug: bool = field(default_factory=lambda: _env_flag("DEBUG", False))
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    game: GameConfig = field(default_factory=GameConfig)
    shoe: ShoeConfig = field(default_factory=ShoeConfig)


def configure_logging(app_config: AppConfig | None = None) -> None:
    """Apply the configured log level to the root logger."""
    app_config = app_config or config
    level = "DEBUG" if app_config.debug else app_config.logging.level
    logging.basicConfig(level=level, format=app_config.logging.format)


# Global configuration instance
config = AppConfig()
