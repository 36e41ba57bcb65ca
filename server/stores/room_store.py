"""
Redis-backed room record.

The room record is the fallback read path for card state: a participant who
joins late or reconnects reads the last persisted snapshot here instead of
replaying every broadcast it missed.

The record is a single JSON document per room:

    cards:room:{room_id} -> {
        "game_data": {"cardState": {...snapshot...}},
        "updated_at": "2026-01-01T12:00:00+00:00",
        ...other room fields are preserved...
    }

Writes are read-merge-write with no locking. Two participants saving at the
same time means the last writer wins, the same rule the broadcast channel
follows.
"""

import json
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

import redis.asyncio as redis

from config import config
from constants import ROOM_RECORD_KEY, GAME_DATA_FIELD, CARD_STATE_FIELD, UPDATED_AT_FIELD

logger = logging.getLogger(__name__)


class RoomStore:
    """Redis-backed room record holding the persisted card state."""

    def __init__(self, redis_client: redis.Redis, ttl: Optional[timedelta] = None):
        """
        Initialize room store with Redis client.

        Args:
            redis_client: Async Redis client.
            ttl: Expiry of idle room records (defaults to config.ROOM_RECORD_TTL_HOURS).
        """
        self.redis = redis_client
        self.ttl = ttl or timedelta(hours=config.ROOM_RECORD_TTL_HOURS)

    def _key(self, room_id: str) -> str:
        return ROOM_RECORD_KEY.format(room_id=room_id)

    # -------------------------------------------------------------------------
    # Room Record
    # -------------------------------------------------------------------------

    async def get_room_record(self, room_id: str) -> Optional[dict]:
        """
        Get the full room document.

        Args:
            room_id: Room to look up.

        Returns:
            Room document, or None if the room has no record (or it is not JSON).
        """
        data = await self.redis.get(self._key(room_id))
        if not data:
            return None
        if isinstance(data, bytes):
            data = data.decode()
        try:
            record = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning(f"Room record for {room_id} is not valid JSON: {e}")
            return None
        return record if isinstance(record, dict) else None

    async def get_card_state(self, room_id: str) -> Optional[dict]:
        """
        Get the persisted card state snapshot.

        Args:
            room_id: Room to look up.

        Returns:
            Raw snapshot dict (game_data.cardState), or None if absent.
        """
        record = await self.get_room_record(room_id)
        if not record:
            return None
        game_data = record.get(GAME_DATA_FIELD)
        if not isinstance(game_data, dict):
            return None
        return game_data.get(CARD_STATE_FIELD)

    async def save_card_state(self, room_id: str, state: dict) -> None:
        """
        Persist a card state snapshot (get, merge, set).

        Other fields of the room document are preserved; updated_at is
        stamped and the record TTL refreshed.

        Args:
            room_id: Room to write.
            state: Snapshot dict (CardGameState.to_dict()).
        """
        record = await self.get_room_record(room_id) or {}
        game_data = record.get(GAME_DATA_FIELD)
        if not isinstance(game_data, dict):
            game_data = {}
        game_data[CARD_STATE_FIELD] = state
        record[GAME_DATA_FIELD] = game_data
        record[UPDATED_AT_FIELD] = datetime.now(timezone.utc).isoformat()

        await self.redis.set(
            self._key(room_id),
            json.dumps(record),
            ex=int(self.ttl.total_seconds()),
        )
        logger.debug(f"Persisted card state for room {room_id}")

    async def delete_room(self, room_id: str) -> None:
        """
        Delete a room record.

        Args:
            room_id: Room to delete.
        """
        await self.redis.delete(self._key(room_id))
        logger.debug(f"Deleted room record {room_id}")
