"""
Action records attached to card state snapshots.

An ActionRecord describes what changed between the previous broadcast and
the snapshot it travels with. Peers use it to trigger animations and for
logging only: the snapshot is authoritative and an action is never
re-applied on its own.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from deck import now_ms


class ActionType(str, Enum):
    """All action types that can produce a new card state."""

    DRAW = "draw"
    DISCARD = "discard"
    PLAY = "play"
    SHUFFLE = "shuffle"


@dataclass(frozen=True)
class ActionRecord:
    """
    Immutable description of one card action.

    Attributes:
        type: What kind of action happened.
        player_id: Player who performed the action.
        card_ids: Synced card IDs that moved (empty for a fresh deal).
        from_location: Container the cards left, if any.
        to_location: Container the cards entered, if any.
        timestamp: Epoch milliseconds when the action was computed.
    """

    type: ActionType
    player_id: str
    card_ids: tuple[str, ...] = ()
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        """Serialize to the wire format shared with other peers."""
        d = {
            "type": self.type.value,
            "playerId": self.player_id,
            "cardIds": list(self.card_ids),
            "timestamp": self.timestamp,
        }
        if self.from_location is not None:
            d["from"] = self.from_location
        if self.to_location is not None:
            d["to"] = self.to_location
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "ActionRecord":
        """
        Deserialize from the wire format.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If the action type is unknown.
        """
        return cls(
            type=ActionType(d["type"]),
            player_id=d["playerId"],
            card_ids=tuple(d.get("cardIds", [])),
            from_location=d.get("from"),
            to_location=d.get("to"),
            timestamp=d.get("timestamp", 0),
        )


# =============================================================================
# Action Factory Functions
# =============================================================================


def draw_action(player_id: str, card_ids: Sequence[str]) -> ActionRecord:
    """Cards moved from the deck into a player's hand."""
    return ActionRecord(
        type=ActionType.DRAW,
        player_id=player_id,
        card_ids=tuple(card_ids),
        from_location="deck",
        to_location="hand",
    )


def discard_action(player_id: str, card_id: str) -> ActionRecord:
    """A card moved from a player's hand onto the discard pile."""
    return ActionRecord(
        type=ActionType.DISCARD,
        player_id=player_id,
        card_ids=(card_id,),
        from_location="hand",
        to_location="discard",
    )


def play_action(player_id: str, card_id: str) -> ActionRecord:
    """A card moved from a player's hand onto the table."""
    return ActionRecord(
        type=ActionType.PLAY,
        player_id=player_id,
        card_ids=(card_id,),
        from_location="hand",
        to_location="table",
    )


def shuffle_action(player_id: str, card_ids: Sequence[str] = ()) -> ActionRecord:
    """
    A (re)shuffle.

    A fresh deal carries no card IDs; a discard reshuffle lists every card
    returned to the deck.
    """
    return ActionRecord(
        type=ActionType.SHUFFLE,
        player_id=player_id,
        card_ids=tuple(card_ids),
    )
