"""Player decisions."""

from enum import Enum


class Action(Enum):
    """The closed set of decisions a player can take on a hand."""

    HIT = "hit"
    STAND = "stand"
    DOUBLE = "double"
    SPLIT = "split"
    SURRENDER = "surrender"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "Action":
        """Parse an action from its name or one-letter shortcut."""
        key = text.strip().lower()
        aliases = {
            "h": cls.HIT,
            "s": cls.STAND,
            "d": cls.DOUBLE,
            "double down": cls.DOUBLE,
            "p": cls.SPLIT,
            "r": cls.SURRENDER,
        }
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown action: {text!r}") from None
