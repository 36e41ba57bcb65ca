"""
Shared test fixtures.

FakeRedis is a small in-memory stand-in for the parts of redis.asyncio the
card sync code uses: GET/SET/DELETE/EXPIRE for room records and
PUBLISH/SUBSCRIBE for room channels. Every client created from the same
FakeRedis shares one broker, so two sessions built on it really exchange
messages through their listener loops.
"""

import asyncio
import json

import pytest


class FakePubSub:
    """In-memory replacement for redis.asyncio.client.PubSub."""

    def __init__(self, broker: "FakeRedis"):
        self.broker = broker
        self.channels: set[str] = set()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels):
        for channel in channels:
            self.channels.add(channel)
            self.broker.subscribers.setdefault(channel, set()).add(self)

    async def unsubscribe(self, *channels):
        for channel in channels or list(self.channels):
            self.channels.discard(channel)
            self.broker.subscribers.get(channel, set()).discard(self)

    async def get_message(self, ignore_subscribe_messages=False, timeout=None):
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def close(self):
        await self.unsubscribe()
        self.closed = True


class FakeRedis:
    """In-memory replacement for redis.asyncio.Redis."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.expiries: dict[str, int] = {}
        self.subscribers: dict[str, set[FakePubSub]] = {}
        self.published: list[tuple[str, dict]] = []

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))
        receivers = list(self.subscribers.get(channel, set()))
        for sub in receivers:
            sub.queue.put_nowait({
                "type": "message",
                "channel": channel.encode(),
                "data": message.encode(),
            })
        return len(receivers)

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value.encode() if isinstance(value, str) else value
        if ex is not None:
            self.expiries[key] = ex

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)
            self.expiries.pop(key, None)

    async def expire(self, key, seconds):
        self.expiries[key] = seconds

    async def ping(self):
        return True

    async def close(self):
        pass

    def record(self, room_id: str):
        """Decoded room record, for assertions."""
        raw = self.data.get(f"cards:room:{room_id}")
        return json.loads(raw) if raw else None


async def wait_until(predicate, timeout: float = 2.0):
    """Poll until predicate() is true or fail after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def fake_redis():
    """Fresh in-memory Redis broker."""
    return FakeRedis()


@pytest.fixture
def waiter():
    """Expose wait_until as a fixture."""
    return wait_until
