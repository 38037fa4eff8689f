"""
Store and Change Feed Contracts
===============================

The workflow talks to persistence only through these two collaborators:

- `Store`: per-collection get / find / insert / conditional update.
  `update(..., expected=...)` is a compare-and-swap: the patch applies only
  while every `expected` field still holds its expected value, otherwise
  `ConcurrentUpdate` is raised and nothing is written.
- `ChangeFeed`: publish/subscribe of insert and update events so readers
  can re-run queries instead of polling.

Filters (`where`) are equality maps: a `None` value matches NULL and a
list/tuple/set value matches any of its members.

Version: 0.1.0
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from services.visitor.errors import NotFound
from services.visitor.models.base import Record, plain_value
from shared.logging import get_logger


logger = get_logger(__name__)

R = TypeVar("R", bound=Record)

Where = dict[str, Any]


class ChangeOp(str, Enum):
    """Kinds of write announced on the change feed."""

    INSERT = "insert"
    UPDATE = "update"


def matches_where(row: dict[str, Any], where: Where | None) -> bool:
    """Check a stored row against an equality filter."""
    if not where:
        return True
    for key, expected in where.items():
        actual = row.get(key)
        if expected is None:
            if actual is not None:
                return False
        elif isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in {plain_value(v) for v in expected}:
                return False
        elif actual != plain_value(expected):
            return False
    return True


@dataclass(frozen=True)
class ChangeEvent:
    """One write to one record."""

    collection: str
    op: ChangeOp
    record_id: str
    row: dict[str, Any] = field(default_factory=dict)

    def matches(self, where: Where | None) -> bool:
        return matches_where(self.row, where)


class ChangeFeed(ABC):
    """Push channel for record changes."""

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None:
        """Announce a change to current subscribers."""

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        where: Where | None = None,
    ) -> AsyncIterator[ChangeEvent]:
        """Stream changes to a collection, filtered by `where`."""

    async def close(self) -> None:
        """Release feed resources."""
        return None


class Store(ABC):
    """Persistent record store with conditional updates."""

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        self.feed = feed

    @abstractmethod
    async def get(self, model: type[R], record_id: str) -> R | None:
        """Fetch one record by ID, or None."""

    @abstractmethod
    async def find(
        self,
        model: type[R],
        where: Where | None = None,
        predicate: Callable[[R], bool] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[R]:
        """
        Query records of one collection.

        Args:
            model: Record type (selects the collection)
            where: Equality filter evaluated by the store
            predicate: Extra in-process filter on validated records
            order_by: Field to sort by
            descending: Reverse the sort
            limit: Maximum records returned (applied after `predicate`)
        """

    @abstractmethod
    async def insert(self, record: R) -> R:
        """Insert a new record."""

    @abstractmethod
    async def insert_many(self, records: Sequence[R]) -> list[R]:
        """Insert several records of the same type atomically."""

    @abstractmethod
    async def insert_unique(self, record: R, conflict_where: Where) -> R:
        """
        Insert unless a record matching `conflict_where` already exists.

        Raises:
            ConcurrentUpdate: a conflicting record exists
        """

    @abstractmethod
    async def update(
        self,
        model: type[R],
        record_id: str,
        patch: dict[str, Any],
        expected: Where | None = None,
    ) -> R:
        """
        Apply `patch` if the record still matches `expected`.

        Raises:
            NotFound: no record with this ID
            ConcurrentUpdate: the record no longer matches `expected`
        """

    async def require(self, model: type[R], record_id: str) -> R:
        """Fetch a record or raise NotFound."""
        record = await self.get(model, record_id)
        if record is None:
            raise NotFound(model.__name__, record_id)
        return record

    async def close(self) -> None:
        """Release store resources."""
        return None

    async def _publish(self, collection: str, op: ChangeOp, row: dict[str, Any]) -> None:
        """Announce a committed write; feed failures never undo the write."""
        if self.feed is None:
            return
        try:
            await self.feed.publish(
                ChangeEvent(collection=collection, op=op, record_id=row["id"], row=row)
            )
        except Exception as e:
            logger.warning(
                "change_feed_publish_failed",
                collection=collection,
                record_id=row.get("id"),
                error=str(e),
            )


def plain_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Unwrap enum values in a patch."""
    return {key: plain_value(value) for key, value in patch.items()}


def sort_key(order_by: str) -> Callable[[Record], tuple[bool, Any]]:
    """Sort key that places missing values last."""

    def key(record: Record) -> tuple[bool, Any]:
        value = getattr(record, order_by)
        return (value is None, value if value is not None else 0)

    return key
