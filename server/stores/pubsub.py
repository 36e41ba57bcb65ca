"""
Redis pub/sub broadcast channel for card rooms.

Every room has one channel, ``cards:{room_id}``. After a participant changes
the card state it publishes the full snapshot together with the action that
produced it; every other participant subscribed to that room receives it.

Delivery is best effort: only currently subscribed peers receive a message,
and there is no ordering across publishers.

This module provides:
- Pub/sub channels per room
- The card_action message envelope
- Async listener loop for handling incoming messages
- Clean subscription management

Usage:
    pubsub = CardPubSub(redis_client, sender_id=session_id)
    await pubsub.start()

    async def handle_message(msg: PubSubMessage):
        print(f"Received: {msg.type} for room {msg.room_id}")

    await pubsub.subscribe("lobby-1", handle_message)

    await pubsub.publish(PubSubMessage(
        type=MessageType.CARD_ACTION,
        room_id="lobby-1",
        payload={"action": {...}, "state": {...}},
    ))

    await pubsub.stop()
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Awaitable, Optional

import redis.asyncio as redis

from config import config
from constants import CARD_ACTION_EVENT

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """Types of messages that can be published on a room channel."""

    # Card state changed; payload carries {"action", "state"}
    CARD_ACTION = CARD_ACTION_EVENT


@dataclass
class PubSubMessage:
    """
    Message sent on a room channel.

    Attributes:
        type: Message type (determines how handlers process it).
        room_id: Room this message is for.
        payload: Message payload (type-specific).
        sender_id: Session ID of the publisher (to avoid echo).
    """

    type: MessageType
    room_id: str
    payload: dict = field(default_factory=dict)
    sender_id: Optional[str] = None

    def to_json(self) -> str:
        """Serialize to JSON for Redis."""
        return json.dumps({
            "type": self.type.value,
            "room_id": self.room_id,
            "payload": self.payload,
            "sender_id": self.sender_id,
        })

    @classmethod
    def from_json(cls, raw: str) -> "PubSubMessage":
        """
        Deserialize from JSON.

        Raises:
            json.JSONDecodeError: If raw is not JSON.
            KeyError: If type or room_id is missing.
            ValueError: If the message type is unknown.
        """
        d = json.loads(raw)
        return cls(
            type=MessageType(d["type"]),
            room_id=d["room_id"],
            payload=d.get("payload") or {},
            sender_id=d.get("sender_id"),
        )


# Type alias for message handlers
MessageHandler = Callable[[PubSubMessage], Awaitable[None]]


class CardPubSub:
    """
    Redis pub/sub for card room broadcasts.

    Manages subscriptions to room channels and dispatches incoming
    messages to registered handlers.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        sender_id: str = "default",
        channel_prefix: Optional[str] = None,
    ):
        """
        Initialize pub/sub with Redis client.

        Args:
            redis_client: Async Redis client.
            sender_id: Unique ID of the publisher using this instance.
            channel_prefix: Channel name prefix (defaults to config.CHANNEL_PREFIX).
        """
        self.redis = redis_client
        self.sender_id = sender_id
        self.channel_prefix = channel_prefix if channel_prefix is not None else config.CHANNEL_PREFIX
        self.pubsub = redis_client.pubsub()
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def _channel(self, room_id: str) -> str:
        """Get Redis channel name for a room."""
        return f"{self.channel_prefix}{room_id}"

    def is_subscribed(self, room_id: str) -> bool:
        """Whether this instance currently listens to a room."""
        return self._channel(room_id) in self._handlers

    async def subscribe(
        self,
        room_id: str,
        handler: MessageHandler,
    ) -> None:
        """
        Subscribe to room events.

        Returns once Redis has accepted the subscription.

        Args:
            room_id: Room to subscribe to.
            handler: Async function to call on each message.
        """
        channel = self._channel(room_id)
        if channel not in self._handlers:
            await self.pubsub.subscribe(channel)
            self._handlers[channel] = []
            logger.debug(f"Subscribed to channel {channel}")
        self._handlers[channel].append(handler)

    async def unsubscribe(self, room_id: str) -> None:
        """
        Unsubscribe from room events.

        Args:
            room_id: Room to unsubscribe from.
        """
        channel = self._channel(room_id)
        if channel in self._handlers:
            del self._handlers[channel]
            await self.pubsub.unsubscribe(channel)
            logger.debug(f"Unsubscribed from channel {channel}")

    async def publish(self, message: PubSubMessage) -> int:
        """
        Publish a message to a room's channel.

        Args:
            message: Message to publish.

        Returns:
            Number of subscribers that received the message.

        Raises:
            redis.RedisError: If Redis rejects or cannot deliver the publish.
        """
        # Add sender ID so we can filter out our own messages
        message.sender_id = self.sender_id
        channel = self._channel(message.room_id)
        count = await self.redis.publish(channel, message.to_json())
        logger.debug(f"Published {message.type.value} to {channel} ({count} receivers)")
        return count

    async def start(self) -> None:
        """Start listening for messages."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._listen())
        logger.debug(f"CardPubSub listener started ({self.sender_id})")

    async def stop(self) -> None:
        """Stop listening and clean up."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        for channel in list(self._handlers):
            await self.pubsub.unsubscribe(channel)
        self._handlers.clear()
        await self.pubsub.close()
        logger.debug(f"CardPubSub listener stopped ({self.sender_id})")

    async def _listen(self) -> None:
        """Main listener loop."""
        while self._running:
            try:
                # get_message() raises while nothing is subscribed yet
                if not self._handlers:
                    await asyncio.sleep(0.1)
                    continue

                message = await self.pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message and message["type"] == "message":
                    await self._handle_message(message)

            except asyncio.CancelledError:
                break
            except redis.ConnectionError as e:
                logger.error(f"PubSub connection error: {e}")
                await asyncio.sleep(1)
            except Exception as e:
                logger.error(f"PubSub listener error: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def _handle_message(self, raw_message: dict) -> None:
        """Handle an incoming Redis message."""
        try:
            channel = raw_message["channel"]
            if isinstance(channel, bytes):
                channel = channel.decode()

            data = raw_message["data"]
            if isinstance(data, bytes):
                data = data.decode()

            msg = PubSubMessage.from_json(data)

            # Skip messages from ourselves
            if msg.sender_id == self.sender_id:
                return

            handlers = self._handlers.get(channel, [])
            for handler in handlers:
                try:
                    await handler(msg)
                except Exception as e:
                    logger.error(f"Error in pubsub handler: {e}", exc_info=True)

        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in pubsub message: {e}")
        except (KeyError, ValueError) as e:
            logger.warning(f"Malformed pubsub message: {e}")
        except Exception as e:
            logger.error(f"Error processing pubsub message: {e}", exc_info=True)
