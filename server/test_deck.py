"""
Test suite for the draw/discard deck model.

Covers:
- Fisher-Yates shuffle order and permutation guarantees
- Deck initialization
- Drawing, reshuffle on exhaustion, and full exhaustion
- Query helpers

Run with: pytest test_deck.py -v
"""

import random

import pytest

from deck import (
    DeckState,
    cards_discarded,
    cards_remaining,
    draw_from_deck,
    fisher_yates_shuffle,
    initialize_deck,
    is_deck_empty,
)


class AlwaysZero:
    """Random source that always picks index 0."""

    def randint(self, a, b):
        return a


CARDS = ["storm", "paddle", "rapids", "beaver", "canoe", "leak"]


# =============================================================================
# Shuffle Tests
# =============================================================================

class TestFisherYates:

    def test_is_permutation(self):
        shuffled = fisher_yates_shuffle(CARDS, random.Random(1))
        assert sorted(shuffled) == sorted(CARDS)

    def test_input_untouched(self):
        cards = list(CARDS)
        fisher_yates_shuffle(cards, random.Random(1))
        assert cards == CARDS

    def test_iterates_from_last_index_down(self):
        """With j always 0: swap(3,0), swap(2,0), swap(1,0)."""
        assert fisher_yates_shuffle(["a", "b", "c", "d"], AlwaysZero()) == ["b", "c", "d", "a"]

    def test_empty_and_single(self):
        assert fisher_yates_shuffle([]) == []
        assert fisher_yates_shuffle(["only"]) == ["only"]


# =============================================================================
# Initialization Tests
# =============================================================================

class TestInitializeDeck:

    def test_all_cards_in_draw_pile(self):
        deck = initialize_deck(CARDS, random.Random(3))
        assert sorted(deck.draw_pile) == sorted(CARDS)
        assert deck.discard_pile == []
        assert deck.total_cards == len(CARDS)
        assert deck.reshuffle_count == 0
        assert deck.last_shuffled > 0

    def test_empty_deck(self):
        deck = initialize_deck([])
        assert deck.draw_pile == []
        assert deck.total_cards == 0


# =============================================================================
# Draw Tests
# =============================================================================

class TestDrawFromDeck:

    def test_draws_head_onto_discard(self):
        deck = DeckState(draw_pile=["A", "B", "C"], total_cards=3, last_shuffled=1)
        result = draw_from_deck(deck)

        assert result.card_id == "A"
        assert result.reshuffled is False
        assert result.deck_state.draw_pile == ["B", "C"]
        assert result.deck_state.discard_pile == ["A"]
        assert result.deck_state.last_shuffled == 1

    def test_input_state_not_modified(self):
        deck = DeckState(draw_pile=["A", "B"], discard_pile=["C"], total_cards=3)
        draw_from_deck(deck)
        assert deck.draw_pile == ["A", "B"]
        assert deck.discard_pile == ["C"]

    def test_reshuffles_discard_when_draw_pile_empty(self):
        deck = DeckState(draw_pile=[], discard_pile=["A", "B", "C"], total_cards=3, last_shuffled=1)
        result = draw_from_deck(deck, random.Random(5))

        assert result.reshuffled is True
        assert result.card_id in {"A", "B", "C"}
        assert result.deck_state.reshuffle_count == 1
        assert result.deck_state.last_shuffled > 1
        # The reshuffled pile minus the drawn card stays in the draw pile
        assert len(result.deck_state.draw_pile) == 2
        assert result.deck_state.discard_pile == [result.card_id]

    def test_fully_empty_deck_returns_none(self):
        deck = DeckState(draw_pile=[], discard_pile=[], total_cards=0, last_shuffled=7)
        result = draw_from_deck(deck)

        assert result.card_id is None
        assert result.reshuffled is False
        assert result.deck_state == deck

    def test_conservation_over_many_draws(self):
        rng = random.Random(11)
        deck = initialize_deck(CARDS, rng)
        reshuffles = 0
        for _ in range(40):
            result = draw_from_deck(deck, rng)
            assert result.card_id is not None
            deck = result.deck_state
            reshuffles += result.reshuffled
            assert sorted(deck.draw_pile + deck.discard_pile) == sorted(CARDS)
            assert len(deck.draw_pile) + len(deck.discard_pile) == deck.total_cards
        assert deck.reshuffle_count == reshuffles
        assert reshuffles == 6


# =============================================================================
# Helper Tests
# =============================================================================

class TestDeckHelpers:

    def test_counts(self):
        deck = DeckState(draw_pile=["A"], discard_pile=["B", "C"], total_cards=3)
        assert cards_remaining(deck) == 1
        assert cards_discarded(deck) == 2
        assert is_deck_empty(deck) is False

    def test_is_empty(self):
        assert is_deck_empty(DeckState(discard_pile=["A"], total_cards=1)) is True

    def test_dict_uses_camel_case_keys(self):
        deck = DeckState(draw_pile=["A"], discard_pile=["B"], total_cards=2, last_shuffled=5, reshuffle_count=1)
        d = deck.to_dict()
        assert d == {
            "drawPile": ["A"],
            "discardPile": ["B"],
            "totalCards": 2,
            "lastShuffled": 5,
            "reshuffleCount": 1,
        }
        assert DeckState.from_dict(d) == deck

    @pytest.mark.parametrize("draws", [0, 1, 6])
    def test_remaining_plus_discarded_is_total(self, draws):
        deck = initialize_deck(CARDS, random.Random(2))
        for _ in range(draws):
            deck = draw_from_deck(deck).deck_state
        assert cards_remaining(deck) + cards_discarded(deck) == len(CARDS)
