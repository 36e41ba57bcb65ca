"""Stores package for card room replication."""

from .room_store import RoomStore
from .pubsub import CardPubSub, PubSubMessage, MessageType

__all__ = [
    # Room record
    "RoomStore",
    # Pub/sub
    "CardPubSub",
    "PubSubMessage",
    "MessageType",
]
