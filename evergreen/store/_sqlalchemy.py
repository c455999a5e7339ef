"""
SQLAlchemy document store.

Two tables:
- documents(collection, key, body JSON)
- counters(name, value)

Usage:
    store = await SQLAlchemyDocumentStore.create("sqlite+aiosqlite:///:memory:")
    await store.put("orders", order_id, {...})
    seq = await store.increment("order:2024")
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Integer, String, delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from evergreen.store._base import Document, StoreError


# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════

class Base(DeclarativeBase):
    pass


class DocumentTable(Base):
    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)


class CounterTable(Base):
    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════

class SQLAlchemyDocumentStore:
    """DocumentStore over an async SQLAlchemy engine."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    async def create(cls, url: str = "sqlite+aiosqlite:///:memory:") -> SQLAlchemyDocumentStore:
        """Create engine, tables, and the store."""
        engine = create_async_engine(url, echo=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        return cls(async_sessionmaker(engine, expire_on_commit=False), engine)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def get(self, collection: str, key: str) -> Document | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(DocumentTable, (collection, key))
                return dict(row.body) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"get {collection}/{key} failed: {e}") from e

    async def put(self, collection: str, key: str, document: Document) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                await session.merge(DocumentTable(collection=collection, key=key, body=document))
        except SQLAlchemyError as e:
            raise StoreError(f"put {collection}/{key} failed: {e}") from e

    async def delete(self, collection: str, key: str) -> bool:
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(DocumentTable)
                    .where(DocumentTable.collection == collection)
                    .where(DocumentTable.key == key)
                    .returning(DocumentTable.key)
                )
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise StoreError(f"delete {collection}/{key} failed: {e}") from e

    async def find(self, collection: str) -> list[Document]:
        try:
            async with self._session_factory() as session:
                rows = await session.execute(
                    select(DocumentTable.body).where(DocumentTable.collection == collection)
                )
                return [dict(body) for body in rows.scalars()]
        except SQLAlchemyError as e:
            raise StoreError(f"find {collection} failed: {e}") from e

    async def increment(self, counter: str) -> int:
        """Single UPDATE ... RETURNING; first use inserts the row."""
        for _ in range(2):
            try:
                async with self._session_factory() as session, session.begin():
                    result = await session.execute(
                        update(CounterTable)
                        .where(CounterTable.name == counter)
                        .values(value=CounterTable.value + 1)
                        .returning(CounterTable.value)
                    )
                    value = result.scalar_one_or_none()
                    if value is not None:
                        return value
                    session.add(CounterTable(name=counter, value=1))
                return 1
            except IntegrityError:
                # Concurrent first insert won; the row exists now.
                continue
            except SQLAlchemyError as e:
                raise StoreError(f"increment {counter} failed: {e}") from e
        raise StoreError(f"increment {counter} failed: counter row contention")


__all__ = ("Base", "DocumentTable", "CounterTable", "SQLAlchemyDocumentStore")
