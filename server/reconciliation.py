"""
Reconciliation strategies for inbound card state snapshots.

When a snapshot arrives from another participant the session asks its
strategy what the new local state should be. A strategy returns the state to
adopt, or None to keep the current one.

Strategies:
    last_broadcast_wins  Every valid snapshot replaces local state. Two
                         concurrent writers can lose each other's update.
    reject_stale         Snapshots with a lower version than the local state
                         are dropped. Equal versions still replace, so
                         concurrent writers fall back to last-broadcast-wins.
                         A fresh deal restarts the room and is always adopted.
"""

import logging
from typing import Optional

from models.actions import ActionRecord, ActionType
from models.card_state import CardGameState

logger = logging.getLogger(__name__)


class ReconciliationStrategy:
    """Decides which state to keep when a remote snapshot arrives."""

    name = "base"

    def resolve(
        self,
        local: CardGameState,
        incoming: CardGameState,
        action: Optional[ActionRecord] = None,
    ) -> Optional[CardGameState]:
        """
        Pick the state to adopt.

        Args:
            local: Current local state.
            incoming: Validated snapshot from the channel.
            action: Action that produced the snapshot, if it was sent.

        Returns:
            The state to adopt, or None to ignore the snapshot.
        """
        raise NotImplementedError


def is_fresh_deal(action: Optional[ActionRecord]) -> bool:
    """A deal is a shuffle that moved no existing cards."""
    return action is not None and action.type == ActionType.SHUFFLE and not action.card_ids


class LastBroadcastWins(ReconciliationStrategy):
    """Adopt every snapshot unconditionally."""

    name = "last_broadcast_wins"

    def resolve(self, local, incoming, action=None):
        return incoming


class RejectStaleSnapshots(ReconciliationStrategy):
    """Drop snapshots older than the local state."""

    name = "reject_stale"

    def resolve(self, local, incoming, action=None):
        if is_fresh_deal(action):
            return incoming
        if incoming.version < local.version:
            logger.info(
                f"Ignoring stale snapshot v{incoming.version} "
                f"(local v{local.version}, action={action.type.value if action else None})"
            )
            return None
        return incoming


STRATEGIES: dict[str, type[ReconciliationStrategy]] = {
    LastBroadcastWins.name: LastBroadcastWins,
    RejectStaleSnapshots.name: RejectStaleSnapshots,
}


def get_strategy(name: str) -> ReconciliationStrategy:
    """
    Build a strategy by its configured name.

    Raises:
        ValueError: If the name is not registered.
    """
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown reconciliation strategy {name!r} "
            f"(expected one of: {', '.join(sorted(STRATEGIES))})"
        )
