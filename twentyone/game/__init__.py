"""Round engine and state management."""

from twentyone.game.actions import Action
from twentyone.game.events import EventEmitter, EventType, GameEvent
from twentyone.game.state import RoundPhase
from twentyone.game.snapshot import HandView, RoundSnapshot
from twentyone.game.round import Round
from twentyone.game.table import Table

__all__ = [
    "Action",
    "EventEmitter",
    "EventType",
    "GameEvent",
    "RoundPhase",
    "HandView",
    "RoundSnapshot",
    "Round",
    "Table",
]
