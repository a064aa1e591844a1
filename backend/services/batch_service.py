"""Chunked batch execution against the relational store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy.dialects import postgresql, sqlite

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Executable, Table
    from sqlalchemy.dialects.postgresql import Insert as PostgresInsert
    from sqlalchemy.dialects.sqlite import Insert as SqliteInsert
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split *items* into consecutive lists of at most *size* elements.

    An empty input returns an empty list (not ``[[]]``).
    """
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


async def execute_in_chunks(
    session: AsyncSession,
    statement: Executable,
    params: Sequence[dict[str, Any]],
    max_chunk: int,
) -> int:
    """Execute *statement* once per parameter set, committing every *max_chunk* rows.

    Each chunk is its own transaction. If a chunk fails, chunks committed
    before it stay committed and the error propagates to the caller.

    Returns the number of parameter sets executed.
    """
    executed = 0
    for chunk in chunked(params, max_chunk):
        try:
            await session.execute(statement, chunk)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.error(
                "Batch write failed after %d of %d rows were committed", executed, len(params)
            )
            raise
        executed += len(chunk)
    return executed


def upsert_insert(session: AsyncSession, table: Table) -> SqliteInsert | PostgresInsert:
    """Return a dialect-specific INSERT that supports ``on_conflict_do_update``."""
    bind = session.bind
    dialect = bind.dialect.name if bind is not None else "sqlite"
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise ValueError(f"Upserts are not supported for database dialect {dialect!r}")
