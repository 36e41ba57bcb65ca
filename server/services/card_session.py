"""
Card sync session: one participant's view of a room's card state.

A CardSyncSession owns the broadcast channel subscription for a single
participant in a single room. The caller creates it on room entry and closes
it on room exit, preferably with ``async with`` so the subscription is always
released:

    async with CardSyncSession(redis_client, room_id, player_id) as session:
        await session.initialize_deck(["c1", "c2", "c3"], seed=42)
        drawn = await session.draw_card()
        await session.discard_card(drawn[0].id)

Replication rules:
- Every successful local action replaces the local state, broadcasts
  ``{action, state}`` on the room channel, then persists the state into the
  room record. The two writes are independent; a failure in either is
  logged and the local state stands.
- Every valid snapshot received from another participant is passed to the
  reconciliation strategy, and whatever it returns replaces the local state
  wholesale. There is no merge.
- On open, after the subscription is confirmed, the room record is read and
  a persisted snapshot is adopted so late joiners catch up.
"""

import asyncio
import inspect
import uuid
from typing import Awaitable, Callable, Optional, Sequence, Union

import redis.asyncio as redis

from card_sync import (
    CardInput,
    apply_discard,
    apply_draw,
    apply_play,
    apply_reshuffle,
    build_initial_state,
)
from config import config
from constants import DEFAULT_DRAW_COUNT
from deck import now_ms
from logging_config import get_logger
from models.actions import ActionRecord, shuffle_action
from models.card_state import CardGameState, SnapshotError, SyncedCard
from reconciliation import ReconciliationStrategy, get_strategy
from stores.pubsub import CardPubSub, MessageType, PubSubMessage
from stores.room_store import RoomStore

# Called with (new_state, action) whenever the local state is replaced
StateListener = Callable[[CardGameState, Optional[ActionRecord]], Union[Awaitable[None], None]]

# Errors that mean Redis could not be reached or refused the command
TRANSPORT_ERRORS = (redis.RedisError, OSError)


class CardSyncSession:
    """
    Replicated card state for one participant in one room.

    Attributes:
        room_id: Room this session is scoped to.
        player_id: Participant performing local actions.
        session_id: Unique ID used as the broadcast sender ID.
        strategy: How inbound snapshots are reconciled with local state.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        room_id: str,
        player_id: str,
        *,
        strategy: Optional[ReconciliationStrategy] = None,
        on_state_change: Optional[StateListener] = None,
        session_id: Optional[str] = None,
        room_store: Optional[RoomStore] = None,
        pubsub: Optional[CardPubSub] = None,
    ):
        """
        Create a closed session.

        Args:
            redis_client: Async Redis client for channel and record.
            room_id: Room to join.
            player_id: Local participant ID.
            strategy: Reconciliation strategy (defaults to config.RECONCILIATION_STRATEGY).
            on_state_change: Optional callback for every state replacement.
            session_id: Sender ID on the channel (random if omitted).
            room_store: Room record store (built from redis_client if omitted).
            pubsub: Channel (built from redis_client if omitted).
        """
        self.room_id = room_id
        self.player_id = player_id
        self.session_id = session_id or str(uuid.uuid4())
        self.strategy = strategy or get_strategy(config.RECONCILIATION_STRATEGY)
        self.on_state_change = on_state_change
        self.room_store = room_store or RoomStore(redis_client)
        self.pubsub = pubsub or CardPubSub(redis_client, sender_id=self.session_id)

        self._state = CardGameState(shuffle_seed=now_ms())
        self._initialized = False
        self._syncing = False
        self._open = False
        self._received_remote = False
        self._lock = asyncio.Lock()
        self.log = get_logger(__name__).with_context(
            room_id=room_id,
            player_id=player_id,
            session_id=self.session_id,
        )

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CardGameState:
        """Current local snapshot."""
        return self._state

    @property
    def is_initialized(self) -> bool:
        """Whether a deck has been dealt or adopted."""
        return self._initialized

    @property
    def is_syncing(self) -> bool:
        """Whether a local change is being broadcast/persisted right now."""
        return self._syncing

    @property
    def is_open(self) -> bool:
        return self._open

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        """
        Subscribe to the room channel and catch up from the room record.

        Raises:
            redis.RedisError: If the subscription itself fails.
        """
        if self._open:
            return

        await self.pubsub.start()
        try:
            await self.pubsub.subscribe(self.room_id, self.handle_message)
            self._open = True
            self.log.info("Card sync session opened")

            await self._load_persisted_state()
        except BaseException:
            # The caller never gets an open session to close
            self._open = False
            await self.pubsub.stop()
            raise

    async def close(self) -> None:
        """Unsubscribe and stop listening. Safe to call more than once."""
        if not self._open:
            return
        self._open = False
        try:
            await self.pubsub.stop()
        except TRANSPORT_ERRORS as e:
            self.log.warning(f"Error while closing channel: {e}")
        self.log.info("Card sync session closed")

    async def __aenter__(self) -> "CardSyncSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _load_persisted_state(self) -> None:
        """Adopt the snapshot stored in the room record, if any."""
        try:
            raw = await self.room_store.get_card_state(self.room_id)
        except TRANSPORT_ERRORS as e:
            self.log.error(f"Failed to read room record: {e}", exc_info=True)
            return

        if raw is None:
            self.log.debug("No persisted card state")
            return

        try:
            persisted = CardGameState.from_dict(raw)
        except SnapshotError as e:
            self.log.warning(f"Ignoring malformed persisted card state: {e}")
            return

        # A broadcast received while the record was loading is newer
        if self._received_remote:
            self.log.debug("Skipping persisted state, broadcast already applied")
            return

        self._initialized = True
        await self._replace_state(persisted, persisted.last_action)
        self.log.info(f"Recovered persisted card state (v{persisted.version})")

    # -------------------------------------------------------------------------
    # Local actions
    # -------------------------------------------------------------------------

    async def initialize_deck(
        self,
        cards: Sequence[CardInput],
        seed: Optional[int] = None,
    ) -> CardGameState:
        """
        Deal a fresh, seeded-shuffled deck and broadcast it.

        Args:
            cards: Card IDs or GameCard definitions.
            seed: Shuffle seed (defaults to the current time in ms).

        Returns:
            The new state.
        """
        async with self._lock:
            new_state = build_initial_state(cards, seed, version=self._state.version)
            self._initialized = True
            action = shuffle_action(self.player_id)
            await self._replace_state(new_state, action)
            self.log.info(f"Dealt {len(new_state.deck_cards)} cards (seed={new_state.shuffle_seed})")
            await self._broadcast(action, new_state)
            return new_state

    async def draw_card(self, count: int = DEFAULT_DRAW_COUNT) -> Optional[list[SyncedCard]]:
        """
        Draw cards from the top of the deck into the local player's hand.

        Returns:
            The drawn cards, or None if the deck is uninitialized or short.
        """
        async with self._lock:
            if not self._initialized:
                self.log.debug("Draw rejected: deck not initialized")
                return None
            result = apply_draw(self._state, self.player_id, count)
            if result is None:
                self.log.debug(f"Draw rejected: {count} requested, {len(self._state.deck_cards)} in deck")
                return None
            new_state, drawn = result
            await self._commit(new_state)
            return drawn

    async def discard_card(self, card_id: str) -> bool:
        """
        Discard a card from the local player's hand.

        Returns:
            False if the card is not in the player's hand.
        """
        async with self._lock:
            if not self._initialized:
                return False
            new_state = apply_discard(self._state, self.player_id, card_id)
            if new_state is None:
                self.log.debug(f"Discard rejected: {card_id} not in hand")
                return False
            await self._commit(new_state)
            return True

    async def play_card(self, card_id: str) -> bool:
        """
        Play a card from the local player's hand onto the table.

        Returns:
            False if the card is not in the player's hand.
        """
        async with self._lock:
            if not self._initialized:
                return False
            new_state = apply_play(self._state, self.player_id, card_id)
            if new_state is None:
                self.log.debug(f"Play rejected: {card_id} not in hand")
                return False
            await self._commit(new_state)
            return True

    async def reshuffle_discard(self) -> bool:
        """
        Return the discard pile to the deck.

        Returns:
            False (and nothing is broadcast) if the discard pile is empty.
        """
        async with self._lock:
            if not self._initialized:
                return False
            new_state = apply_reshuffle(self._state, self.player_id)
            if new_state is None:
                return False
            await self._commit(new_state)
            return True

    async def _commit(self, new_state: CardGameState) -> None:
        """Adopt a locally computed state and replicate it."""
        await self._replace_state(new_state, new_state.last_action)
        self.log.debug(
            f"Applied {new_state.last_action.type.value} "
            f"({len(new_state.last_action.card_ids)} cards, v{new_state.version})"
        )
        await self._broadcast(new_state.last_action, new_state)

    # -------------------------------------------------------------------------
    # Replication
    # -------------------------------------------------------------------------

    async def _broadcast(self, action: ActionRecord, state: CardGameState) -> None:
        """
        Publish {action, state} on the channel, then persist the state.

        Neither failure is raised: the local state has already changed and
        stays changed.
        """
        if not self._open:
            self.log.debug("Session not open, change kept local")
            return

        self._syncing = True
        payload = {"action": action.to_dict(), "state": state.to_dict()}
        try:
            try:
                await self.pubsub.publish(PubSubMessage(
                    type=MessageType.CARD_ACTION,
                    room_id=self.room_id,
                    payload=payload,
                ))
            except TRANSPORT_ERRORS as e:
                self.log.error(f"Failed to broadcast {action.type.value}: {e}", exc_info=True)

            try:
                await self.room_store.save_card_state(self.room_id, payload["state"])
            except TRANSPORT_ERRORS as e:
                self.log.error(f"Failed to persist card state: {e}", exc_info=True)
        finally:
            self._syncing = False

    async def handle_message(self, msg: PubSubMessage) -> None:
        """
        Apply a snapshot broadcast by another participant.

        Malformed snapshots are logged and ignored; the previous local state
        is kept.
        """
        if msg.type != MessageType.CARD_ACTION:
            return

        raw_state = msg.payload.get("state")
        if raw_state is None:
            return

        try:
            incoming = CardGameState.from_dict(raw_state)
        except SnapshotError as e:
            self.log.warning(f"Ignoring malformed snapshot from {msg.sender_id}: {e}")
            return

        action = None
        raw_action = msg.payload.get("action")
        if raw_action is not None:
            try:
                action = ActionRecord.from_dict(raw_action)
            except (KeyError, TypeError, ValueError) as e:
                self.log.debug(f"Snapshot carried an unreadable action: {e}")

        resolved = self.strategy.resolve(self._state, incoming, action)
        if resolved is None:
            return

        self._received_remote = True
        self._initialized = True
        self._syncing = False
        await self._replace_state(resolved, action)

    async def _replace_state(self, new_state: CardGameState, action: Optional[ActionRecord]) -> None:
        self._state = new_state
        if self.on_state_change is None:
            return
        try:
            result = self.on_state_change(new_state, action)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.log.error(f"State listener failed: {e}", exc_info=True)
