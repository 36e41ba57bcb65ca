"""
Replicated card game state.

CardGameState is the full document every participant of a room holds. It is
never patched in place: each action builds a new complete snapshot, and that
snapshot is what travels over the broadcast channel and into the room record.

Wire format uses the camelCase keys shared with browser clients:

    {
        "deckCards": [SyncedCard, ...],
        "discardPile": [SyncedCard, ...],
        "tableCards": [SyncedCard, ...],
        "playerHands": {"<player_id>": [SyncedCard, ...]},
        "currentDrawer": null,
        "lastAction": ActionRecord | null,
        "shuffleSeed": 1712345678901,
        "version": 3
    }
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from models.actions import ActionRecord


class SnapshotError(ValueError):
    """Raised when a received snapshot does not have the expected shape."""


class CardLocation(str, Enum):
    """Containers a synced card can sit in."""
    DECK = "deck"
    HAND = "hand"
    DISCARD = "discard"
    TABLE = "table"


@dataclass(frozen=True)
class GameCard:
    """
    A card as supplied by the surrounding application when a deck is dealt.

    Attributes:
        id: Card definition ID (the same definition may appear more than once).
        card_type: Optional card category, copied into metadata.
        file_name: Optional artwork file, copied into metadata.
    """
    id: str
    card_type: Optional[str] = None
    file_name: Optional[str] = None


@dataclass(frozen=True)
class SyncedCard:
    """
    One physical card inside the replicated state.

    Attributes:
        id: Unique ID of this physical card within the room.
        card_id: Card definition ID.
        owner_id: Player holding (or who played) the card.
        location: Container the card currently sits in.
        position: Index in the deck at deal time.
        is_flipped: Whether the card face is visible.
        metadata: Free-form data for display (card type, artwork, ...).
    """
    id: str
    card_id: str
    owner_id: Optional[str] = None
    location: CardLocation = CardLocation.DECK
    position: int = 0
    is_flipped: bool = False
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cardId": self.card_id,
            "ownerId": self.owner_id,
            "location": self.location.value,
            "position": self.position,
            "isFlipped": self.is_flipped,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "SyncedCard":
        """
        Deserialize a single card.

        Raises:
            SnapshotError: If required fields are missing or malformed.
        """
        if not isinstance(d, dict):
            raise SnapshotError(f"Card entry must be an object, got {type(d).__name__}")
        card_uid = d.get("id")
        card_id = d.get("cardId")
        if not isinstance(card_uid, str) or not isinstance(card_id, str):
            raise SnapshotError(f"Card entry missing id/cardId: {d!r}")
        try:
            location = CardLocation(d.get("location"))
        except ValueError:
            raise SnapshotError(f"Card {card_uid} has unknown location {d.get('location')!r}")
        position = d.get("position", 0)
        if isinstance(position, bool) or not isinstance(position, int):
            raise SnapshotError(f"Card {card_uid} position must be an integer")
        metadata = d.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise SnapshotError(f"Card {card_uid} metadata must be an object")
        return cls(
            id=card_uid,
            card_id=card_id,
            owner_id=d.get("ownerId"),
            location=location,
            position=position,
            is_flipped=bool(d.get("isFlipped", False)),
            metadata=metadata,
        )


def _cards_from_list(raw, field_name: str) -> list[SyncedCard]:
    if not isinstance(raw, list):
        raise SnapshotError(f"{field_name} must be a list")
    return [SyncedCard.from_dict(c) for c in raw]


@dataclass
class CardGameState:
    """
    Full replicated card state of a room.

    Attributes:
        deck_cards: Draw pile, next card first.
        discard_pile: Discarded cards, most recent first.
        table_cards: Played cards, oldest first.
        player_hands: Map of player_id -> cards in that player's hand.
        current_drawer: Player currently allowed to draw (unused by the core).
        last_action: Action that produced this snapshot.
        shuffle_seed: Seed of the most recent shuffle.
        version: Number of transitions applied since the room was created.
    """
    deck_cards: list[SyncedCard] = field(default_factory=list)
    discard_pile: list[SyncedCard] = field(default_factory=list)
    table_cards: list[SyncedCard] = field(default_factory=list)
    player_hands: dict[str, list[SyncedCard]] = field(default_factory=dict)
    current_drawer: Optional[str] = None
    last_action: Optional[ActionRecord] = None
    shuffle_seed: int = 0
    version: int = 0

    def hand(self, player_id: str) -> list[SyncedCard]:
        """Cards held by a player (empty if the player has none)."""
        return self.player_hands.get(player_id, [])

    def all_cards(self) -> list[SyncedCard]:
        """Every card in every container."""
        cards = [*self.deck_cards, *self.discard_pile, *self.table_cards]
        for hand in self.player_hands.values():
            cards.extend(hand)
        return cards

    def all_card_ids(self) -> list[str]:
        """Synced card IDs across all containers (duplicates kept)."""
        return [card.id for card in self.all_cards()]

    def find_duplicate_ids(self) -> list[str]:
        """Card IDs that appear in more than one slot."""
        counts = Counter(self.all_card_ids())
        return sorted(card_id for card_id, n in counts.items() if n > 1)

    def to_dict(self) -> dict:
        """Serialize to the wire format."""
        return {
            "deckCards": [c.to_dict() for c in self.deck_cards],
            "discardPile": [c.to_dict() for c in self.discard_pile],
            "tableCards": [c.to_dict() for c in self.table_cards],
            "playerHands": {
                player_id: [c.to_dict() for c in cards]
                for player_id, cards in self.player_hands.items()
            },
            "currentDrawer": self.current_drawer,
            "lastAction": self.last_action.to_dict() if self.last_action else None,
            "shuffleSeed": self.shuffle_seed,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CardGameState":
        """
        Deserialize and validate a snapshot.

        The whole snapshot is checked before anything is returned, so a
        caller can keep its previous state when this raises.

        Raises:
            SnapshotError: If the snapshot is malformed or duplicates a card.
        """
        if not isinstance(d, dict):
            raise SnapshotError(f"Snapshot must be an object, got {type(d).__name__}")

        missing = [
            key for key in ("deckCards", "discardPile", "tableCards", "playerHands", "shuffleSeed")
            if key not in d
        ]
        if missing:
            raise SnapshotError(f"Snapshot missing fields: {', '.join(missing)}")

        raw_hands = d["playerHands"]
        if not isinstance(raw_hands, dict):
            raise SnapshotError("playerHands must be an object")

        version = d.get("version", 0)
        if isinstance(version, bool) or not isinstance(version, int):
            raise SnapshotError(f"version must be an integer, got {version!r}")

        seed = d["shuffleSeed"]
        if isinstance(seed, bool) or not isinstance(seed, (int, float)):
            raise SnapshotError(f"shuffleSeed must be a number, got {seed!r}")

        last_action = None
        if d.get("lastAction") is not None:
            try:
                last_action = ActionRecord.from_dict(d["lastAction"])
            except (KeyError, TypeError, ValueError) as e:
                raise SnapshotError(f"Invalid lastAction: {e}")

        state = cls(
            deck_cards=_cards_from_list(d["deckCards"], "deckCards"),
            discard_pile=_cards_from_list(d["discardPile"], "discardPile"),
            table_cards=_cards_from_list(d["tableCards"], "tableCards"),
            player_hands={
                str(player_id): _cards_from_list(cards, f"playerHands[{player_id}]")
                for player_id, cards in raw_hands.items()
            },
            current_drawer=d.get("currentDrawer"),
            last_action=last_action,
            shuffle_seed=seed,
            version=version,
        )

        duplicates = state.find_duplicate_ids()
        if duplicates:
            raise SnapshotError(f"Snapshot duplicates cards: {', '.join(duplicates)}")

        return state
