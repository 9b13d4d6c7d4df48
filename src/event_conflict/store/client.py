"""Retrying table-scoped access to the persistent store.

The engine's components only ever need two things from storage: read the
rows of a table that match a predicate, and upsert rows by their natural
key.  ``RetryingStore`` provides exactly that over an async SQLAlchemy
session factory, retrying transient connection failures with a linear
backoff before giving up with ``StoreError``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from event_conflict.engine.config import StoreConfig
from event_conflict.errors import StoreError
from event_conflict.models.base import Base

logger = structlog.get_logger()

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=Base)


def _is_transient(error: DBAPIError) -> bool:
    return isinstance(error, (OperationalError, InterfaceError)) or bool(
        error.connection_invalidated
    )


def _key_clause(model: type[Base], column: str, value: Any):
    attr = getattr(model, column)
    return attr.is_(None) if value is None else attr == value


class RetryingStore:
    """Table-scoped read/upsert/delete with retries.

    Args:
        session_factory: Async session factory for the target database.
        config: Retry policy (attempt count, base delay).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: StoreConfig | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or StoreConfig()

    async def _run(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` with up to ``max_retries`` attempts.

        Delay before attempt ``n + 1`` is ``retry_delay_seconds * n``.
        Non-transient database errors are not retried.
        """
        attempts = max(1, self._config.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                return await fn()
            except DBAPIError as e:
                if not _is_transient(e) or attempt == attempts:
                    logger.error(
                        "store_operation_failed",
                        operation=operation,
                        attempt=attempt,
                        error=str(e),
                    )
                    raise StoreError(f"{operation} failed: {e}") from e
                delay = self._config.retry_delay_seconds * attempt
                logger.warning(
                    "store_operation_retry",
                    operation=operation,
                    attempt=attempt,
                    delay_seconds=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    async def select_rows(self, model: type[ModelT], **filters: Any) -> list[ModelT]:
        """Rows whose columns equal the given values (``None`` matches NULL)."""
        criteria = [_key_clause(model, column, value) for column, value in filters.items()]
        return await self.select_where(model, *criteria)

    async def select_where(self, model: type[ModelT], *criteria: Any) -> list[ModelT]:
        """Rows matching arbitrary column criteria, ordered by primary key."""

        async def run() -> list[ModelT]:
            async with self._session_factory() as session:
                stmt = select(model).where(*criteria).order_by(
                    *model.__table__.primary_key.columns
                )
                result = await session.execute(stmt)
                return list(result.scalars().all())

        return await self._run(f"select:{model.__tablename__}", run)

    async def upsert(
        self,
        model: type[Base],
        rows: list[dict[str, Any]],
        conflict_keys: list[str],
    ) -> int:
        """Insert rows, updating existing rows that share the natural key.

        All rows are written in one transaction.

        Args:
            model: Target ORM model.
            rows: Column -> value dicts.
            conflict_keys: Columns forming the natural key.

        Returns:
            Number of rows written.
        """
        if not rows:
            return 0

        async def run() -> int:
            async with self._session_factory() as session, session.begin():
                for row in rows:
                    criteria = [_key_clause(model, k, row.get(k)) for k in conflict_keys]
                    result = await session.execute(select(model).where(*criteria))
                    existing = result.scalars().first()
                    if existing is None:
                        session.add(model(**row))
                    else:
                        for column, value in row.items():
                            setattr(existing, column, value)
            return len(rows)

        return await self._run(f"upsert:{model.__tablename__}", run)

    async def delete_where(self, model: type[Base], *criteria: Any) -> int:
        """Delete rows matching the criteria; returns the number removed."""

        async def run() -> int:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(delete(model).where(*criteria))
                return result.rowcount or 0

        return await self._run(f"delete:{model.__tablename__}", run)


async def create_all(engine: AsyncEngine) -> None:
    """Create every engine table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
