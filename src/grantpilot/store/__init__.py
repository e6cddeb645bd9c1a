"""
GrantPilot Storage

    from grantpilot.store import InMemoryStore

    store = InMemoryStore()
    store.add_application(Application(id=1, track=Track.FOUNDATION))
"""
from __future__ import annotations

from .base import ApplicationStore, RowMutation, RowPredicate
from .memory import InMemoryStore

__all__ = [
    "ApplicationStore",
    "InMemoryStore",
    "RowMutation",
    "RowPredicate",
]
