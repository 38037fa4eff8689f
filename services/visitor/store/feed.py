"""
Change Feeds
============

- InMemoryChangeFeed: asyncio queues, one per subscriber, same process.
- RedisChangeFeed: Redis pub/sub, one channel per collection, so every
  terminal and API worker sees writes made by the others.

Version: 0.1.0
"""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from collections.abc import AsyncIterator
from datetime import date, datetime
from typing import Any

from redis.asyncio import Redis

from services.visitor.store.base import ChangeEvent, ChangeFeed, ChangeOp, Where
from shared.logging import get_logger


logger = get_logger(__name__)


class InMemoryChangeFeed(ChangeFeed):
    """Fan-out of change events to in-process subscribers."""

    def __init__(self, max_queue_size: int = 1000) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: dict[str, set[asyncio.Queue[ChangeEvent]]] = defaultdict(set)

    @property
    def subscriber_count(self) -> int:
        return sum(len(queues) for queues in self._subscribers.values())

    async def publish(self, event: ChangeEvent) -> None:
        for queue in list(self._subscribers[event.collection]):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "change_feed_subscriber_lagging",
                    collection=event.collection,
                    record_id=event.record_id,
                )

    async def subscribe(
        self,
        collection: str,
        where: Where | None = None,
    ) -> AsyncIterator[ChangeEvent]:
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers[collection].add(queue)
        try:
            while True:
                event = await queue.get()
                if event.matches(where):
                    yield event
        finally:
            self._subscribers[collection].discard(queue)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class RedisChangeFeed(ChangeFeed):
    """
    Change events over Redis pub/sub channels `<prefix>:<collection>`.

    The client is borrowed from `RedisClient`, which closes it on shutdown.
    """

    def __init__(self, client: Redis, channel_prefix: str = "sitegate") -> None:  # type: ignore[type-arg]
        self._client = client
        self._prefix = channel_prefix

    def channel(self, collection: str) -> str:
        return f"{self._prefix}:{collection}"

    @staticmethod
    def encode(event: ChangeEvent) -> str:
        return json.dumps(
            {
                "collection": event.collection,
                "op": event.op.value,
                "record_id": event.record_id,
                "row": event.row,
            },
            default=_json_default,
        )

    @staticmethod
    def decode(payload: str | bytes) -> ChangeEvent:
        data = json.loads(payload)
        return ChangeEvent(
            collection=data["collection"],
            op=ChangeOp(data["op"]),
            record_id=data["record_id"],
            row=data.get("row") or {},
        )

    async def publish(self, event: ChangeEvent) -> None:
        await self._client.publish(self.channel(event.collection), self.encode(event))

    async def subscribe(
        self,
        collection: str,
        where: Where | None = None,
    ) -> AsyncIterator[ChangeEvent]:
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self.channel(collection))
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = self.decode(message["data"])
                except (ValueError, KeyError) as e:
                    logger.warning("change_feed_message_invalid", collection=collection, error=str(e))
                    continue
                if event.matches(where):
                    yield event
        finally:
            await pubsub.unsubscribe(self.channel(collection))
            await pubsub.aclose()
