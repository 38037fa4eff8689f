"""
SQL Store
=========

PostgreSQL-backed store on SQLAlchemy 2.0 Core. Conditional updates are a
single `UPDATE ... WHERE id = :id AND <expected> RETURNING *`, so two
sessions racing on the same row cannot both succeed.

Version: 0.1.0
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import Table, func, insert, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql.elements import ColumnElement

from services.visitor.errors import ConcurrentUpdate, NotFound, StoreUnavailable
from services.visitor.models.base import plain_value
from services.visitor.store.base import (
    ChangeFeed,
    ChangeOp,
    R,
    Store,
    Where,
    plain_patch,
    sort_key,
)
from services.visitor.store.tables import TABLES
from shared.logging import get_logger


logger = get_logger(__name__)


def where_clause(table: Table, where: Where | None) -> list[ColumnElement[bool]]:
    """Translate an equality filter into column conditions."""
    conditions: list[ColumnElement[bool]] = []
    for key, expected in (where or {}).items():
        column = table.c[key]
        if expected is None:
            conditions.append(column.is_(None))
        elif isinstance(expected, (list, tuple, set, frozenset)):
            conditions.append(column.in_([plain_value(v) for v in expected]))
        else:
            conditions.append(column == plain_value(expected))
    return conditions


class SqlStore(Store):
    """
    Store backed by an async SQLAlchemy engine.

    The engine is borrowed from `PostgresClient`, which disposes it on shutdown.
    """

    def __init__(self, engine: AsyncEngine, feed: ChangeFeed | None = None) -> None:
        super().__init__(feed)
        self._engine = engine

    @staticmethod
    def table_for(model: type[R]) -> Table:
        return TABLES[model.__collection__]

    @asynccontextmanager
    async def _transaction(self) -> AsyncGenerator[AsyncConnection, None]:
        """Open a transaction, mapping driver failures to StoreUnavailable."""
        try:
            async with self._engine.begin() as conn:
                yield conn
        except IntegrityError:
            raise
        except (DBAPIError, OSError, TimeoutError) as e:
            logger.error("store_unavailable", error=str(e))
            raise StoreUnavailable(error=str(e)) from e

    async def get(self, model: type[R], record_id: str) -> R | None:
        table = self.table_for(model)
        async with self._transaction() as conn:
            result = await conn.execute(select(table).where(table.c.id == record_id))
            row = result.mappings().first()
        return model.model_validate(dict(row)) if row is not None else None

    async def find(
        self,
        model: type[R],
        where: Where | None = None,
        predicate: Callable[[R], bool] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[R]:
        table = self.table_for(model)
        stmt = select(table).where(*where_clause(table, where))
        if order_by:
            column = table.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None and predicate is None:
            stmt = stmt.limit(limit)

        async with self._transaction() as conn:
            result = await conn.execute(stmt)
            rows = result.mappings().all()

        records = [model.model_validate(dict(row)) for row in rows]
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
        table = self.table_for(type(records[0]))
        rows = [r.to_row() for r in records]
        try:
            async with self._transaction() as conn:
                await conn.execute(insert(table), rows)
        except IntegrityError as e:
            raise ConcurrentUpdate(f"{table.name} insert conflicts with an existing record") from e

        for row in rows:
            await self._publish(table.name, ChangeOp.INSERT, row)
        return list(records)

    async def insert_unique(self, record: R, conflict_where: Where) -> R:
        table = self.table_for(type(record))
        row = record.to_row()
        try:
            async with self._transaction() as conn:
                # Partial unique indexes close the race the pre-check leaves open
                existing = await conn.execute(
                    select(func.count()).select_from(table).where(*where_clause(table, conflict_where))
                )
                if existing.scalar_one() > 0:
                    raise ConcurrentUpdate(
                        f"A conflicting {table.name} record already exists",
                        conflict=plain_patch(conflict_where),
                    )
                await conn.execute(insert(table).values(**row))
        except IntegrityError as e:
            raise ConcurrentUpdate(
                f"A conflicting {table.name} record already exists",
                conflict=plain_patch(conflict_where),
            ) from e

        await self._publish(table.name, ChangeOp.INSERT, row)
        return record

    async def update(
        self,
        model: type[R],
        record_id: str,
        patch: dict[str, Any],
        expected: Where | None = None,
    ) -> R:
        table = self.table_for(model)
        stmt = (
            update(table)
            .where(table.c.id == record_id, *where_clause(table, expected))
            .values(**plain_patch(patch))
            .returning(*table.c)
        )
        async with self._transaction() as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
            if row is None:
                exists = await conn.execute(select(table.c.id).where(table.c.id == record_id))
                if exists.first() is None:
                    raise NotFound(model.__name__, record_id)
                raise ConcurrentUpdate(record_id=record_id)

        updated = model.model_validate(dict(row))
        await self._publish(table.name, ChangeOp.UPDATE, updated.to_row())
        return updated
