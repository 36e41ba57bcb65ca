"""Models package for the card sync core."""

from .actions import (
    ActionType,
    ActionRecord,
    draw_action,
    discard_action,
    play_action,
    shuffle_action,
)
from .card_state import CardGameState, CardLocation, GameCard, SnapshotError, SyncedCard

__all__ = [
    "ActionType",
    "ActionRecord",
    "draw_action",
    "discard_action",
    "play_action",
    "shuffle_action",
    "CardGameState",
    "CardLocation",
    "GameCard",
    "SnapshotError",
    "SyncedCard",
]
