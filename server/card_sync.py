"""
Card state transitions for the replicated game state.

Each apply_* function takes the current CardGameState plus the inputs of one
action and returns a brand new CardGameState with last_action set to the
matching ActionRecord and version bumped by one. Nothing here touches the
network; CardSyncSession hands the result to the replication layer.

A precondition failure (not enough cards, card not in hand, nothing to
reshuffle) returns None and leaves the input untouched, so a failed action
is never broadcast.

The deal shuffle is seeded: two peers calling shuffle_with_seed() with the
same cards and seed get the same order, which is what makes a shuffle
reproducible from its seed alone.
"""

import math
from dataclasses import replace
from typing import Optional, Sequence, TypeVar, Union

from deck import now_ms
from models.actions import draw_action, discard_action, play_action, shuffle_action
from models.card_state import CardGameState, CardLocation, GameCard, SyncedCard

T = TypeVar("T")

CardInput = Union[str, GameCard]


# =============================================================================
# Seeded shuffle
# =============================================================================


def seeded_random(seed: float) -> float:
    """
    Deterministic pseudo-random value in [0, 1) for a numeric seed.

    Uses the fractional part of sin(seed) * 10000.
    """
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def shuffle_with_seed(items: Sequence[T], seed: float) -> list[T]:
    """
    Fisher-Yates shuffle driven by seeded_random().

    The seed advances by one for every swap, starting at the given value.
    The input sequence is not modified.
    """
    shuffled = list(items)
    current_seed = seed
    for i in range(len(shuffled) - 1, 0, -1):
        j = math.floor(seeded_random(current_seed) * (i + 1))
        current_seed += 1
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


# =============================================================================
# Deal
# =============================================================================


def _synced_card(card: CardInput, index: int) -> SyncedCard:
    if isinstance(card, GameCard):
        metadata = {}
        if card.card_type is not None:
            metadata["cardType"] = card.card_type
        if card.file_name is not None:
            metadata["fileName"] = card.file_name
        card_id = card.id
    else:
        metadata = {}
        card_id = card
    return SyncedCard(
        id=f"{card_id}-{index}",
        card_id=card_id,
        owner_id=None,
        location=CardLocation.DECK,
        position=index,
        is_flipped=False,
        metadata=metadata,
    )


def build_initial_state(
    cards: Sequence[CardInput],
    seed: Optional[int] = None,
    version: int = 0,
) -> CardGameState:
    """
    Deal a fresh deck.

    Every card becomes a face-down deck card, the deck is shuffled with the
    seed and positions are re-indexed to the shuffled order. All other
    containers start empty.

    Args:
        cards: Card IDs or GameCard definitions, in catalogue order.
        seed: Shuffle seed. Defaults to the current time in milliseconds.
        version: Version of the state being replaced; the deal gets version + 1.
    """
    shuffle_seed = seed if seed is not None else now_ms()
    synced = [_synced_card(card, idx) for idx, card in enumerate(cards)]
    shuffled = [
        replace(card, position=i)
        for i, card in enumerate(shuffle_with_seed(synced, shuffle_seed))
    ]
    return CardGameState(
        deck_cards=shuffled,
        discard_pile=[],
        table_cards=[],
        player_hands={},
        current_drawer=None,
        last_action=None,
        shuffle_seed=shuffle_seed,
        version=version + 1,
    )


# =============================================================================
# Actions
# =============================================================================


def apply_draw(
    state: CardGameState,
    player_id: str,
    count: int = 1,
) -> Optional[tuple[CardGameState, list[SyncedCard]]]:
    """
    Move the top `count` deck cards into a player's hand, face up.

    Returns:
        (new_state, drawn_cards), or None if count < 1 or the deck holds
        fewer than `count` cards.
    """
    if count < 1 or len(state.deck_cards) < count:
        return None

    drawn = [
        replace(card, owner_id=player_id, location=CardLocation.HAND, is_flipped=True)
        for card in state.deck_cards[:count]
    ]
    hands = dict(state.player_hands)
    hands[player_id] = [*state.hand(player_id), *drawn]

    new_state = replace(
        state,
        deck_cards=state.deck_cards[count:],
        player_hands=hands,
        last_action=draw_action(player_id, [c.id for c in drawn]),
        version=state.version + 1,
    )
    return new_state, drawn


def _take_from_hand(
    state: CardGameState,
    player_id: str,
    card_id: str,
) -> Optional[tuple[SyncedCard, dict[str, list[SyncedCard]]]]:
    """Find a card in a player's hand; return it and the hands without it."""
    hand = state.hand(player_id)
    card = next((c for c in hand if c.id == card_id), None)
    if card is None:
        return None
    hands = dict(state.player_hands)
    hands[player_id] = [c for c in hand if c.id != card_id]
    return card, hands


def apply_discard(state: CardGameState, player_id: str, card_id: str) -> Optional[CardGameState]:
    """
    Move a card from a player's hand to the top of the discard pile.

    The card loses its owner and stays face up. Returns None if the card is
    not in that player's hand.
    """
    taken = _take_from_hand(state, player_id, card_id)
    if taken is None:
        return None
    card, hands = taken

    discarded = replace(card, location=CardLocation.DISCARD, owner_id=None, is_flipped=True)
    return replace(
        state,
        discard_pile=[discarded, *state.discard_pile],
        player_hands=hands,
        last_action=discard_action(player_id, card_id),
        version=state.version + 1,
    )


def apply_play(state: CardGameState, player_id: str, card_id: str) -> Optional[CardGameState]:
    """
    Move a card from a player's hand to the end of the table.

    Unlike a discard, the card keeps its owner so the table shows who played
    it. Returns None if the card is not in that player's hand.
    """
    taken = _take_from_hand(state, player_id, card_id)
    if taken is None:
        return None
    card, hands = taken

    played = replace(card, location=CardLocation.TABLE, is_flipped=True)
    return replace(
        state,
        table_cards=[*state.table_cards, played],
        player_hands=hands,
        last_action=play_action(player_id, card_id),
        version=state.version + 1,
    )


def apply_reshuffle(
    state: CardGameState,
    player_id: str,
    seed: Optional[int] = None,
) -> Optional[CardGameState]:
    """
    Return the discard pile to the bottom of the deck.

    Cards keep their discard-pile order: only the shuffle seed is renewed,
    the moved cards are not reordered. Returns None if the discard pile is
    empty.
    """
    if not state.discard_pile:
        return None

    returned = [
        replace(card, location=CardLocation.DECK, is_flipped=False, owner_id=None)
        for card in state.discard_pile
    ]
    return replace(
        state,
        deck_cards=[*state.deck_cards, *returned],
        discard_pile=[],
        shuffle_seed=seed if seed is not None else now_ms(),
        last_action=shuffle_action(player_id, [c.id for c in returned]),
        version=state.version + 1,
    )
