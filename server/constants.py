"""
Shared constants for the card sync core.

Wire names here are shared with browser clients and other servers, so
changing any of them breaks compatibility with peers already in a room.
"""

# =============================================================================
# Broadcast channel
# =============================================================================

# Event name carried in every broadcast envelope
CARD_ACTION_EVENT = "card_action"

# =============================================================================
# Room record
# =============================================================================

# Key pattern for the persisted room document
ROOM_RECORD_KEY = "cards:room:{room_id}"

# Nested location of the snapshot inside the room document
GAME_DATA_FIELD = "game_data"
CARD_STATE_FIELD = "cardState"
UPDATED_AT_FIELD = "updated_at"

# Default number of cards taken by a single draw
DEFAULT_DRAW_COUNT = 1
