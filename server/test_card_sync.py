"""
Test suite for replicated card state transitions.

Covers:
- Seeded shuffle determinism
- Dealing a deck
- Draw / discard / play / reshuffle transitions and their failures
- Conservation of cards over random action sequences
- Snapshot validation

Run with: pytest test_card_sync.py -v
"""

import copy
import random

import pytest

from card_sync import (
    apply_discard,
    apply_draw,
    apply_play,
    apply_reshuffle,
    build_initial_state,
    seeded_random,
    shuffle_with_seed,
)
from models.actions import ActionRecord, ActionType
from models.card_state import CardGameState, CardLocation, GameCard, SnapshotError


def dealt(cards=("c1", "c2", "c3"), seed=42) -> CardGameState:
    return build_initial_state(list(cards), seed=seed)


# =============================================================================
# Seeded Shuffle Tests
# =============================================================================

class TestSeededShuffle:

    def test_seeded_random_in_unit_interval(self):
        for seed in [0, 1, 42, -7, 1712345678901]:
            value = seeded_random(seed)
            assert 0 <= value < 1

    def test_same_seed_same_order(self):
        items = [f"card-{i}" for i in range(20)]
        assert shuffle_with_seed(items, 1234) == shuffle_with_seed(items, 1234)

    def test_different_seeds_give_different_orders(self):
        items = [f"card-{i}" for i in range(10)]
        orders = {tuple(shuffle_with_seed(items, seed)) for seed in range(1, 6)}
        assert len(orders) > 1

    def test_is_permutation_and_input_untouched(self):
        items = ["a", "b", "c", "d", "e"]
        shuffled = shuffle_with_seed(items, 99)
        assert sorted(shuffled) == items
        assert items == ["a", "b", "c", "d", "e"]

    def test_known_orders(self):
        """Pinned orders so every peer implementation agrees."""
        # sin(42)*10000 has fractional part ~0.785 -> j = 1, no swap
        assert shuffle_with_seed(["a", "b"], 42) == ["a", "b"]
        # sin(3)*10000 has fractional part ~0.200 -> j = 0, swap
        assert shuffle_with_seed(["a", "b"], 3) == ["b", "a"]


# =============================================================================
# Deal Tests
# =============================================================================

class TestBuildInitialState:

    def test_all_cards_in_deck_face_down(self):
        state = dealt()
        assert len(state.deck_cards) == 3
        assert state.discard_pile == []
        assert state.table_cards == []
        assert state.player_hands == {}
        assert state.last_action is None
        assert state.shuffle_seed == 42
        for card in state.deck_cards:
            assert card.location == CardLocation.DECK
            assert card.owner_id is None
            assert card.is_flipped is False

    def test_positions_follow_shuffled_order(self):
        state = dealt(cards=[f"c{i}" for i in range(8)], seed=7)
        assert [c.position for c in state.deck_cards] == list(range(8))

    def test_synced_ids_are_unique_per_copy(self):
        state = build_initial_state(["ace", "ace", "king"], seed=1)
        ids = sorted(c.id for c in state.deck_cards)
        assert ids == ["ace-0", "ace-1", "king-2"]

    def test_deal_order_with_seed_42(self):
        state = dealt()
        assert [c.id for c in state.deck_cards] == ["c2-1", "c1-0", "c3-2"]

    def test_game_card_metadata(self):
        state = build_initial_state(
            [GameCard(id="storm", card_type="hazard", file_name="storm.png")],
            seed=5,
        )
        card = state.deck_cards[0]
        assert card.card_id == "storm"
        assert card.metadata == {"cardType": "hazard", "fileName": "storm.png"}

    def test_default_seed_is_timestamp(self):
        state = build_initial_state(["a", "b"])
        assert state.shuffle_seed > 1_600_000_000_000

    def test_version_follows_previous(self):
        assert build_initial_state(["a"], seed=1, version=4).version == 5


# =============================================================================
# Draw Tests
# =============================================================================

class TestApplyDraw:

    def test_draw_moves_top_card_to_hand(self):
        state = dealt()
        top = state.deck_cards[0]

        new_state, drawn = apply_draw(state, "p1", 1)

        assert len(new_state.deck_cards) == 2
        assert len(new_state.player_hands["p1"]) == 1
        card = new_state.player_hands["p1"][0]
        assert card.id == top.id
        assert card.location == CardLocation.HAND
        assert card.owner_id == "p1"
        assert card.is_flipped is True
        assert drawn == [card]

    def test_draw_records_action(self):
        new_state, drawn = apply_draw(dealt(), "p1", 2)
        action = new_state.last_action
        assert action.type == ActionType.DRAW
        assert action.player_id == "p1"
        assert list(action.card_ids) == [c.id for c in drawn]
        assert action.from_location == "deck"
        assert action.to_location == "hand"

    def test_draw_appends_to_existing_hand(self):
        state, first = apply_draw(dealt(), "p1", 1)
        state, second = apply_draw(state, "p1", 1)
        assert [c.id for c in state.player_hands["p1"]] == [first[0].id, second[0].id]

    def test_draw_too_many_fails(self):
        state = dealt()
        assert apply_draw(state, "p1", 4) is None
        assert len(state.deck_cards) == 3

    def test_draw_zero_fails(self):
        assert apply_draw(dealt(), "p1", 0) is None

    def test_draw_does_not_mutate_input(self):
        state = dealt()
        before = copy.deepcopy(state.to_dict())
        apply_draw(state, "p1", 2)
        assert state.to_dict() == before

    def test_draw_bumps_version(self):
        state = dealt()
        new_state, _ = apply_draw(state, "p1")
        assert new_state.version == state.version + 1


# =============================================================================
# Discard / Play Tests
# =============================================================================

class TestApplyDiscardAndPlay:

    @pytest.fixture
    def in_hand(self):
        state, drawn = apply_draw(dealt(), "p1", 2)
        return state, drawn

    def test_discard_goes_to_front_of_pile(self, in_hand):
        state, drawn = in_hand
        state = apply_discard(state, "p1", drawn[0].id)
        state = apply_discard(state, "p1", drawn[1].id)

        assert state.player_hands["p1"] == []
        assert [c.id for c in state.discard_pile] == [drawn[1].id, drawn[0].id]
        top = state.discard_pile[0]
        assert top.location == CardLocation.DISCARD
        assert top.owner_id is None
        assert top.is_flipped is True
        assert state.last_action.type == ActionType.DISCARD
        assert list(state.last_action.card_ids) == [drawn[1].id]

    def test_discard_unknown_card_fails(self, in_hand):
        state, _ = in_hand
        before = copy.deepcopy(state.to_dict())
        assert apply_discard(state, "p1", "nonexistent-id") is None
        assert state.to_dict() == before

    def test_discard_other_players_card_fails(self, in_hand):
        state, drawn = in_hand
        assert apply_discard(state, "p2", drawn[0].id) is None

    def test_play_goes_to_end_of_table_and_keeps_owner(self, in_hand):
        state, drawn = in_hand
        state = apply_play(state, "p1", drawn[0].id)
        state = apply_play(state, "p1", drawn[1].id)

        assert [c.id for c in state.table_cards] == [drawn[0].id, drawn[1].id]
        played = state.table_cards[0]
        assert played.location == CardLocation.TABLE
        assert played.owner_id == "p1"
        assert played.is_flipped is True
        assert state.last_action.type == ActionType.PLAY
        assert state.last_action.to_location == "table"

    def test_play_unknown_card_fails(self, in_hand):
        state, _ = in_hand
        assert apply_play(state, "p1", "nonexistent-id") is None


# =============================================================================
# Reshuffle Tests
# =============================================================================

class TestApplyReshuffle:

    def test_reshuffle_empty_discard_is_noop(self):
        assert apply_reshuffle(dealt(), "p1") is None

    def test_reshuffle_appends_discard_in_order(self):
        state, drawn = apply_draw(dealt(), "p1", 2)
        state = apply_discard(state, "p1", drawn[0].id)
        state = apply_discard(state, "p1", drawn[1].id)
        discard_order = [c.id for c in state.discard_pile]
        remaining_deck = [c.id for c in state.deck_cards]

        new_state = apply_reshuffle(state, "p2", seed=777)

        assert new_state.discard_pile == []
        assert [c.id for c in new_state.deck_cards] == remaining_deck + discard_order
        for card in new_state.deck_cards[len(remaining_deck):]:
            assert card.location == CardLocation.DECK
            assert card.is_flipped is False
            assert card.owner_id is None
        assert new_state.shuffle_seed == 777
        assert new_state.last_action.type == ActionType.SHUFFLE
        assert new_state.last_action.player_id == "p2"
        assert list(new_state.last_action.card_ids) == discard_order


# =============================================================================
# Conservation Tests
# =============================================================================

class TestConservation:

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_random_action_sequences_conserve_cards(self, seed):
        rng = random.Random(seed)
        cards = [f"card{i}" for i in range(12)]
        state = build_initial_state(cards, seed=seed)
        original = sorted(state.all_card_ids())
        players = ["p1", "p2", "p3"]

        for _ in range(200):
            player = rng.choice(players)
            action = rng.choice(["draw", "discard", "play", "reshuffle"])
            hand = state.hand(player)
            if action == "draw":
                result = apply_draw(state, player, rng.randint(1, 3))
                new_state = result[0] if result else None
            elif action == "discard" and hand:
                new_state = apply_discard(state, player, rng.choice(hand).id)
            elif action == "play" and hand:
                new_state = apply_play(state, player, rng.choice(hand).id)
            elif action == "reshuffle":
                new_state = apply_reshuffle(state, player, seed=rng.randint(0, 10_000))
            else:
                new_state = None

            if new_state is not None:
                state = new_state
            assert sorted(state.all_card_ids()) == original
            assert state.find_duplicate_ids() == []


# =============================================================================
# Snapshot Validation Tests
# =============================================================================

class TestSnapshotValidation:

    def test_round_trip(self):
        state, drawn = apply_draw(dealt(), "p1", 1)
        state = apply_play(state, "p1", drawn[0].id)
        restored = CardGameState.from_dict(state.to_dict())
        assert restored == state

    def test_missing_field_rejected(self):
        d = dealt().to_dict()
        del d["deckCards"]
        with pytest.raises(SnapshotError, match="deckCards"):
            CardGameState.from_dict(d)

    def test_bad_location_rejected(self):
        d = dealt().to_dict()
        d["deckCards"][0]["location"] = "pocket"
        with pytest.raises(SnapshotError):
            CardGameState.from_dict(d)

    def test_duplicate_card_rejected(self):
        d = dealt().to_dict()
        d["discardPile"] = [dict(d["deckCards"][0], location="discard")]
        with pytest.raises(SnapshotError, match="duplicates"):
            CardGameState.from_dict(d)

    def test_non_dict_rejected(self):
        with pytest.raises(SnapshotError):
            CardGameState.from_dict(["not", "a", "snapshot"])

    def test_missing_version_defaults_to_zero(self):
        d = dealt().to_dict()
        del d["version"]
        assert CardGameState.from_dict(d).version == 0

    def test_action_record_wire_keys(self):
        action = ActionRecord(
            type=ActionType.DISCARD,
            player_id="p1",
            card_ids=("c1-0",),
            from_location="hand",
            to_location="discard",
            timestamp=123,
        )
        assert action.to_dict() == {
            "type": "discard",
            "playerId": "p1",
            "cardIds": ["c1-0"],
            "from": "hand",
            "to": "discard",
            "timestamp": 123,
        }
        assert ActionRecord.from_dict(action.to_dict()) == action
