"""Sync-state stores."""

from annosync.store.base import SyncStateStore
from annosync.store.memory import InMemoryStore
from annosync.store.sql import SqlSyncStore

__all__ = ["InMemoryStore", "SqlSyncStore", "SyncStateStore"]
