"""
Physical deck model: a draw pile and a discard pile of card IDs.

Instead of drawing randomly with replacement, the deck behaves like a real
stack of cards. Drawn cards go onto the discard pile, and once the draw pile
runs out the discard pile is shuffled back in.

Every function here is pure: the input DeckState is never modified and a
fresh DeckState is returned. That lets the deck live inside a room's game
data and travel over the broadcast channel unchanged.

Usage:
    deck = initialize_deck(["storm", "paddle", "rapids"])
    result = draw_from_deck(deck)
    if result.card_id is None:
        ...  # no cards left anywhere
    deck = result.deck_state
"""

import random
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class DeckState:
    """
    Draw/discard state of a single deck.

    Attributes:
        draw_pile: Card IDs still to be drawn (top of deck = index 0).
        discard_pile: Card IDs already drawn, oldest first.
        total_cards: Number of unique cards in the full deck.
        last_shuffled: Epoch ms of the last (re)shuffle, used for animations.
        reshuffle_count: How many times the discard pile was shuffled back in.
    """

    draw_pile: list[str] = field(default_factory=list)
    discard_pile: list[str] = field(default_factory=list)
    total_cards: int = 0
    last_shuffled: int = 0
    reshuffle_count: int = 0

    def to_dict(self) -> dict:
        """Serialize using the camelCase keys stored in room game data."""
        return {
            "drawPile": list(self.draw_pile),
            "discardPile": list(self.discard_pile),
            "totalCards": self.total_cards,
            "lastShuffled": self.last_shuffled,
            "reshuffleCount": self.reshuffle_count,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "DeckState":
        """Deserialize from room game data."""
        draw_pile = list(d.get("drawPile", []))
        discard_pile = list(d.get("discardPile", []))
        return cls(
            draw_pile=draw_pile,
            discard_pile=discard_pile,
            total_cards=d.get("totalCards", len(draw_pile) + len(discard_pile)),
            last_shuffled=d.get("lastShuffled", 0),
            reshuffle_count=d.get("reshuffleCount", 0),
        )


@dataclass
class DrawResult:
    """
    Outcome of a single draw.

    Attributes:
        card_id: The drawn card, or None if both piles were empty.
        deck_state: Deck state after the draw.
        reshuffled: Whether the discard pile was shuffled back in first.
    """

    card_id: Optional[str]
    deck_state: DeckState
    reshuffled: bool = False


def fisher_yates_shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> list[T]:
    """
    Return a uniformly shuffled copy of items.

    Walks from the last index down to 1, swapping each slot with a slot
    picked uniformly from [0, i].

    Args:
        items: Sequence to shuffle (left untouched).
        rng: Optional random source. Defaults to the process-wide RNG.
    """
    rand = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rand.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def initialize_deck(card_ids: Sequence[str], rng: Optional[random.Random] = None) -> DeckState:
    """
    Create a fresh deck with every card shuffled into the draw pile.

    This is the first-time randomization path, so the shuffle is not seeded
    and cannot be replayed.
    """
    return DeckState(
        draw_pile=fisher_yates_shuffle(card_ids, rng),
        discard_pile=[],
        total_cards=len(card_ids),
        last_shuffled=now_ms(),
        reshuffle_count=0,
    )


def draw_from_deck(deck: DeckState, rng: Optional[random.Random] = None) -> DrawResult:
    """
    Draw the top card of the draw pile onto the discard pile.

    If the draw pile is empty the discard pile is shuffled back in first.
    If both piles are empty the result has card_id None and an unchanged
    copy of the state; that is deck exhaustion, not an error.
    """
    draw_pile = list(deck.draw_pile)
    discard_pile = list(deck.discard_pile)
    last_shuffled = deck.last_shuffled
    reshuffle_count = deck.reshuffle_count
    reshuffled = False

    if not draw_pile:
        if not discard_pile:
            return DrawResult(
                card_id=None,
                deck_state=DeckState(
                    draw_pile=draw_pile,
                    discard_pile=discard_pile,
                    total_cards=deck.total_cards,
                    last_shuffled=last_shuffled,
                    reshuffle_count=reshuffle_count,
                ),
                reshuffled=False,
            )

        draw_pile = fisher_yates_shuffle(discard_pile, rng)
        discard_pile = []
        reshuffled = True
        last_shuffled = now_ms()
        reshuffle_count += 1

    card_id = draw_pile.pop(0)
    discard_pile.append(card_id)

    return DrawResult(
        card_id=card_id,
        deck_state=DeckState(
            draw_pile=draw_pile,
            discard_pile=discard_pile,
            total_cards=deck.total_cards,
            last_shuffled=last_shuffled,
            reshuffle_count=reshuffle_count,
        ),
        reshuffled=reshuffled,
    )


def is_deck_empty(deck: DeckState) -> bool:
    """True if the draw pile is empty (the next draw will reshuffle)."""
    return len(deck.draw_pile) == 0


def cards_remaining(deck: DeckState) -> int:
    """Number of cards left in the draw pile."""
    return len(deck.draw_pile)


def cards_discarded(deck: DeckState) -> int:
    """Number of cards in the discard pile."""
    return len(deck.discard_pile)
