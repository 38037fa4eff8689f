"""
Database Module
===============

Async clients for the SiteGate data stores.

Clients:
- PostgreSQL (asyncpg + SQLAlchemy Core): persistent record store
- Redis (redis.asyncio): change notification pub/sub

Usage:
    from shared.database import PostgresClient, RedisClient

    engine = PostgresClient.get_engine()
    feed = RedisChangeFeed(RedisClient.get_client(), "sitegate")
"""

from shared.database.postgres import (
    Base,
    PostgresClient,
)
from shared.database.redis import (
    RedisClient,
)


__all__ = [
    # PostgreSQL
    "PostgresClient",
    "Base",
    # Redis
    "RedisClient",
]
