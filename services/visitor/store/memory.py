"""
In-Memory Store
===============

Single-process store used in development and tests. Each operation
yields to the event loop first, so concurrent commands interleave at
store calls the same way they would against a remote database.

Version: 0.1.0
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable, Sequence
from copy import deepcopy
from typing import Any

from services.visitor.errors import ConcurrentUpdate, NotFound
from services.visitor.store.base import (
    ChangeFeed,
    ChangeOp,
    R,
    Store,
    Where,
    matches_where,
    plain_patch,
    sort_key,
)
from shared.logging import get_logger


logger = get_logger(__name__)


class InMemoryStore(Store):
    """Dict-backed store with compare-and-swap updates."""

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        super().__init__(feed)
        self._tables: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def get(self, model: type[R], record_id: str) -> R | None:
        await asyncio.sleep(0)
        async with self._lock:
            row = self._tables[model.__collection__].get(record_id)
            return model.model_validate(deepcopy(row)) if row is not None else None

    async def find(
        self,
        model: type[R],
        where: Where | None = None,
        predicate: Callable[[R], bool] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[R]:
        await asyncio.sleep(0)
        async with self._lock:
            rows = [
                deepcopy(row)
                for row in self._tables[model.__collection__].values()
                if matches_where(row, where)
            ]

        records = [model.model_validate(row) for row in rows]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        if order_by:
            records.sort(key=sort_key(order_by), reverse=descending)
        if limit is not None:
            records = records[:limit]
        return records

    async def insert(self, record: R) -> R:
        return (await self.insert_many([record]))[0]

    async def insert_many(self, records: Sequence[R]) -> list[R]:
        if not records:
            return []
        await asyncio.sleep(0)
        collection = records[0].__collection__
        rows = [r.to_row() for r in records]
        async with self._lock:
            table = self._tables[collection]
            for row in rows:
                if row["id"] in table:
                    raise ConcurrentUpdate(f"{collection} {row['id']} already exists")
            for row in rows:
                table[row["id"]] = deepcopy(row)

        for row in rows:
            await self._publish(collection, ChangeOp.INSERT, row)
        return [type(r).model_validate(row) for r, row in zip(records, rows)]

    async def insert_unique(self, record: R, conflict_where: Where) -> R:
        await asyncio.sleep(0)
        collection = record.__collection__
        row = record.to_row()
        async with self._lock:
            table = self._tables[collection]
            if any(matches_where(existing, conflict_where) for existing in table.values()):
                raise ConcurrentUpdate(
                    f"A conflicting {collection} record already exists",
                    conflict=conflict_where,
                )
            table[row["id"]] = deepcopy(row)

        await self._publish(collection, ChangeOp.INSERT, row)
        return type(record).model_validate(row)

    async def update(
        self,
        model: type[R],
        record_id: str,
        patch: dict[str, Any],
        expected: Where | None = None,
    ) -> R:
        await asyncio.sleep(0)
        collection = model.__collection__
        async with self._lock:
            table = self._tables[collection]
            current = table.get(record_id)
            if current is None:
                raise NotFound(model.__name__, record_id)
            if not matches_where(current, expected):
                logger.debug(
                    "conditional_update_rejected",
                    collection=collection,
                    record_id=record_id,
                    expected=plain_patch(expected or {}),
                )
                raise ConcurrentUpdate(record_id=record_id)

            updated = model.model_validate({**deepcopy(current), **plain_patch(patch)})
            row = updated.to_row()
            table[record_id] = deepcopy(row)

        await self._publish(collection, ChangeOp.UPDATE, row)
        return updated
