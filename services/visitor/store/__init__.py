"""
Record Store
============

Persistence and change notification behind two small contracts so the
workflow can run against memory (development, tests) or PostgreSQL with
Redis pub/sub (production).
"""

from services.visitor.store.base import (
    ChangeEvent,
    ChangeFeed,
    ChangeOp,
    Store,
    matches_where,
)
from services.visitor.store.feed import InMemoryChangeFeed, RedisChangeFeed
from services.visitor.store.memory import InMemoryStore
from services.visitor.store.sql import SqlStore

__all__ = [
    "Store",
    "ChangeFeed",
    "ChangeEvent",
    "ChangeOp",
    "matches_where",
    "InMemoryStore",
    "SqlStore",
    "InMemoryChangeFeed",
    "RedisChangeFeed",
]
