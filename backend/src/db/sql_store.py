"""
Document store backed by SQLAlchemy.

Collections map to tables of the same name in ``Base.metadata``; document keys map
to column names. Missing document fields are stored as NULL, so ``$exists`` becomes
an ``IS [NOT] NULL`` check.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy import ColumnElement, Table, and_, delete, func, insert, select, text, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.store import (
    ASCENDING,
    Cursor,
    Document,
    DocumentNotFoundError,
    Filter,
    Patch,
    SortSpec,
    StoreError,
    validate_filter,
)
from models.base import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


def escape_like(value: str) -> str:
    r"""
    Escape special LIKE/ILIKE characters so they match literally.

    ``%`` and ``_`` are wildcards and ``\`` is the escape character.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlAlchemyStore:
    """Store implementation on top of an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        operation_timeout: float | None = None,
        read_retries: int = 1,
    ) -> None:
        self._session_factory = session_factory
        self._operation_timeout = operation_timeout or None
        self._read_retries = read_retries

    # --- Helpers ---

    def _table(self, collection: str) -> Table:
        try:
            return Base.metadata.tables[collection]
        except KeyError:
            raise StoreError(f"Unknown collection: {collection}") from None

    def _build_where(self, table: Table, query: Filter) -> ColumnElement[bool]:
        validate_filter(query)
        clauses: list[ColumnElement[bool]] = []
        for key, condition in query.items():
            column = table.c[key]
            if not isinstance(condition, dict):
                clauses.append(column == condition)
                continue
            if "$exists" in condition:
                clauses.append(column.is_not(None) if condition["$exists"] else column.is_(None))
            if "$gte" in condition:
                clauses.append(column >= condition["$gte"])
            if "$lt" in condition:
                clauses.append(column < condition["$lt"])
            if "$lte" in condition:
                clauses.append(column <= condition["$lte"])
            if "$contains" in condition:
                pattern = f"%{escape_like(condition['$contains'])}%"
                if "i" in condition.get("$options", ""):
                    clauses.append(column.ilike(pattern, escape="\\"))
                else:
                    clauses.append(column.like(pattern, escape="\\"))
        return and_(True, *clauses)

    def _to_document(self, table: Table, row: Any) -> Document:
        mapping = row._mapping
        return {
            column.name: mapping[column]
            for column in table.columns
            if mapping[column] is not None
        }

    @asynccontextmanager
    async def _deadline(self) -> AsyncIterator[None]:
        if self._operation_timeout is None:
            yield
            return
        async with asyncio.timeout(self._operation_timeout):
            yield

    async def _read(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            try:
                async with self._deadline(), self._session_factory() as session:
                    return await operation(session)
            except OperationalError:
                if attempt >= self._read_retries:
                    raise
                attempt += 1
                logger.warning("Retrying store read after operational error (attempt %d)", attempt)

    async def _write(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._deadline(), self._session_factory() as session:
            try:
                result = await operation(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            return result

    # --- Store interface ---

    async def count(self, collection: str, query: Filter) -> int:
        table = self._table(collection)
        stmt = select(func.count()).select_from(table).where(self._build_where(table, query))

        async def _count(session: AsyncSession) -> int:
            result = await session.execute(stmt)
            return int(result.scalar_one())

        return await self._read(_count)

    async def insert_one(self, collection: str, document: Document) -> None:
        table = self._table(collection)
        stmt = insert(table).values(**document)

        async def _insert(session: AsyncSession) -> None:
            await session.execute(stmt)

        await self._write(_insert)

    async def update_one(self, collection: str, query: Filter, patch: Patch) -> None:
        table = self._table(collection)
        values: dict[str, Any] = dict(patch.get("$set", {}))
        for key in patch.get("$unset", []):
            values[key] = None
        if not values:
            return

        # Restrict to the first matching primary key to keep single-document semantics.
        first_key = (
            select(table.c["_id"]).where(self._build_where(table, query)).limit(1).scalar_subquery()
        )
        stmt = update(table).where(table.c["_id"] == first_key).values(**values)

        async def _update(session: AsyncSession) -> None:
            await session.execute(stmt)

        await self._write(_update)

    async def delete_one(self, collection: str, query: Filter) -> None:
        table = self._table(collection)
        first_key = (
            select(table.c["_id"]).where(self._build_where(table, query)).limit(1).scalar_subquery()
        )
        stmt = delete(table).where(table.c["_id"] == first_key)

        async def _delete(session: AsyncSession) -> None:
            await session.execute(stmt)

        await self._write(_delete)

    async def delete_many(self, collection: str, query: Filter) -> int:
        table = self._table(collection)
        stmt = delete(table).where(self._build_where(table, query))

        async def _delete(session: AsyncSession) -> int:
            result = await session.execute(stmt)
            return result.rowcount

        return await self._write(_delete)

    async def find_one(self, collection: str, query: Filter) -> Document:
        table = self._table(collection)
        stmt = select(table).where(self._build_where(table, query)).limit(1)

        async def _find_one(session: AsyncSession) -> Document:
            row = (await session.execute(stmt)).first()
            if row is None:
                raise DocumentNotFoundError(collection)
            return self._to_document(table, row)

        return await self._read(_find_one)

    async def find(
        self,
        collection: str,
        query: Filter,
        sort: SortSpec | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> Cursor:
        table = self._table(collection)
        stmt = select(table).where(self._build_where(table, query))
        for key, direction in sort or []:
            column = table.c[key]
            if direction == ASCENDING:
                stmt = stmt.order_by(column.asc().nulls_first())
            else:
                stmt = stmt.order_by(column.desc().nulls_last())
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        async def _find(session: AsyncSession) -> list[Document]:
            result = await session.execute(stmt)
            return [self._to_document(table, row) for row in result]

        return Cursor(await self._read(_find))

    async def drain(self, cursor: Cursor) -> list[Document]:
        return await cursor.to_list()

    async def ping(self) -> None:
        async def _ping(session: AsyncSession) -> None:
            await session.execute(text("SELECT 1"))

        await self._read(_ping)
