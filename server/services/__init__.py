"""Services package for card room replication."""

from .card_session import CardSyncSession, StateListener

__all__ = [
    "CardSyncSession",
    "StateListener",
]
