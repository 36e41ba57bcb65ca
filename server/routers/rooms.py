"""
Room card state API router.

Read access to the persisted room record, for clients that want the last
known card state without opening a WebSocket session, plus a reset endpoint
that drops the record so the next deal starts clean.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from constants import CARD_STATE_FIELD, GAME_DATA_FIELD, UPDATED_AT_FIELD
from models.card_state import CardGameState, SnapshotError
from stores.room_store import RoomStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])


# =============================================================================
# Response Models
# =============================================================================


class CardStateSummary(BaseModel):
    """Container sizes of a snapshot."""
    deck: int
    discard: int
    table: int
    hands: dict[str, int]
    version: int


class RoomCardStateResponse(BaseModel):
    """Persisted card state of a room."""
    room_id: str
    updated_at: Optional[str] = None
    summary: CardStateSummary
    card_state: dict[str, Any]


# =============================================================================
# Dependencies
# =============================================================================

# Set by main.py during startup
_room_store: Optional[RoomStore] = None


def set_room_store(store: Optional[RoomStore]) -> None:
    """Set the room store instance (called from main.py)."""
    global _room_store
    _room_store = store


def get_room_store_dep() -> RoomStore:
    """Dependency to get the room store."""
    if _room_store is None:
        raise HTTPException(status_code=503, detail="Room store not initialized")
    return _room_store


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/{room_id}/cards", response_model=RoomCardStateResponse)
async def get_room_cards(room_id: str, store: RoomStore = Depends(get_room_store_dep)):
    """Return the last persisted card state of a room."""
    record = await store.get_room_record(room_id) or {}
    game_data = record.get(GAME_DATA_FIELD)
    raw = game_data.get(CARD_STATE_FIELD) if isinstance(game_data, dict) else None
    if raw is None:
        raise HTTPException(status_code=404, detail="No card state for this room")

    try:
        state = CardGameState.from_dict(raw)
    except SnapshotError as e:
        logger.warning(f"Persisted card state for {room_id} is malformed: {e}")
        raise HTTPException(status_code=409, detail="Persisted card state is malformed")

    return RoomCardStateResponse(
        room_id=room_id,
        updated_at=record.get(UPDATED_AT_FIELD),
        summary=CardStateSummary(
            deck=len(state.deck_cards),
            discard=len(state.discard_pile),
            table=len(state.table_cards),
            hands={player_id: len(cards) for player_id, cards in state.player_hands.items()},
            version=state.version,
        ),
        card_state=state.to_dict(),
    )


@router.delete("/{room_id}/cards")
async def reset_room_cards(room_id: str, store: RoomStore = Depends(get_room_store_dep)):
    """Drop the persisted room record."""
    await store.delete_room(room_id)
    logger.info(f"Room record {room_id} reset")
    return {"room_id": room_id, "deleted": True}
