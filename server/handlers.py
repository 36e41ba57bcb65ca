"""WebSocket message handlers for card rooms.

Each handler corresponds to a single message type from the client and calls
exactly one CardSyncSession operation. Handlers are dispatched via the
HANDLERS dict in main.py.

State changes (local or from other participants) are pushed to the client
separately as "card_state" messages by the session's state listener.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import WebSocket
from pydantic import BaseModel, Field, ValidationError

from constants import DEFAULT_DRAW_COUNT
from models.actions import ActionRecord
from models.card_state import CardGameState, GameCard
from services.card_session import CardSyncSession

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: str
    room_id: str
    session: CardSyncSession


# ---------------------------------------------------------------------------
# Client message models
# ---------------------------------------------------------------------------

class CardDefinition(BaseModel):
    """Card as described by the client when dealing."""
    id: str
    card_type: Optional[str] = None
    file_name: Optional[str] = None


class InitDeckRequest(BaseModel):
    cards: list[Union[str, CardDefinition]]
    seed: Optional[int] = None


class DrawRequest(BaseModel):
    count: int = Field(default=DEFAULT_DRAW_COUNT, ge=1)


class CardRequest(BaseModel):
    card_id: str


async def send_error(ctx: ConnectionContext, message: str) -> None:
    await ctx.websocket.send_json({"type": "error", "message": message})


def make_state_pusher(websocket: WebSocket):
    """Build a session state listener that forwards snapshots to a client."""

    async def push_state(state: CardGameState, action: Optional[ActionRecord]) -> None:
        await websocket.send_json({
            "type": "card_state",
            "state": state.to_dict(),
            "action": action.to_dict() if action else None,
        })

    return push_state


# ---------------------------------------------------------------------------
# Card handlers
# ---------------------------------------------------------------------------

async def handle_init_deck(data: dict, ctx: ConnectionContext, **kw) -> None:
    try:
        req = InitDeckRequest.model_validate(data)
    except ValidationError as e:
        await send_error(ctx, f"Invalid init_deck request: {e.error_count()} error(s)")
        return

    cards = [
        card if isinstance(card, str)
        else GameCard(id=card.id, card_type=card.card_type, file_name=card.file_name)
        for card in req.cards
    ]
    state = await ctx.session.initialize_deck(cards, req.seed)
    await ctx.websocket.send_json({
        "type": "deck_initialized",
        "card_count": len(state.deck_cards),
        "seed": state.shuffle_seed,
    })


async def handle_draw(data: dict, ctx: ConnectionContext, **kw) -> None:
    try:
        req = DrawRequest.model_validate(data)
    except ValidationError:
        await send_error(ctx, "count must be a positive integer")
        return

    drawn = await ctx.session.draw_card(req.count)
    await ctx.websocket.send_json({
        "type": "draw_result",
        "success": drawn is not None,
        "cards": [card.to_dict() for card in drawn or []],
    })


async def handle_discard(data: dict, ctx: ConnectionContext, **kw) -> None:
    try:
        req = CardRequest.model_validate(data)
    except ValidationError:
        await send_error(ctx, "card_id is required")
        return

    success = await ctx.session.discard_card(req.card_id)
    await ctx.websocket.send_json({
        "type": "action_result",
        "action": "discard",
        "card_id": req.card_id,
        "success": success,
    })


async def handle_play(data: dict, ctx: ConnectionContext, **kw) -> None:
    try:
        req = CardRequest.model_validate(data)
    except ValidationError:
        await send_error(ctx, "card_id is required")
        return

    success = await ctx.session.play_card(req.card_id)
    await ctx.websocket.send_json({
        "type": "action_result",
        "action": "play",
        "card_id": req.card_id,
        "success": success,
    })


async def handle_reshuffle(data: dict, ctx: ConnectionContext, **kw) -> None:
    success = await ctx.session.reshuffle_discard()
    await ctx.websocket.send_json({
        "type": "action_result",
        "action": "shuffle",
        "success": success,
    })


async def handle_get_state(data: dict, ctx: ConnectionContext, **kw) -> None:
    await ctx.websocket.send_json({
        "type": "card_state",
        "state": ctx.session.state.to_dict(),
        "action": None,
        "initialized": ctx.session.is_initialized,
        "syncing": ctx.session.is_syncing,
    })


HANDLERS = {
    "init_deck": handle_init_deck,
    "draw": handle_draw,
    "discard": handle_discard,
    "play": handle_play,
    "reshuffle": handle_reshuffle,
    "get_state": handle_get_state,
}
