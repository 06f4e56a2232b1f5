"""Persistent key-value state for predictions, progress and accuracy."""

from fixturecast.storage.base import StateStore, StateStoreError
from fixturecast.storage.memory import InMemoryStateStore
from fixturecast.storage.sql_store import SQLStateStore

__all__ = [
    "StateStore",
    "StateStoreError",
    "InMemoryStateStore",
    "SQLStateStore",
]
