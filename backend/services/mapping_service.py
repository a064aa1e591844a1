"""Group to board mapping lookups."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from backend.exceptions import BoardMappingNotFoundError
from backend.models.mapping import BoardMapping
from backend.services.batch_service import upsert_insert
from backend.services.datetime_service import format_timestamp, now_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def resolve_board_id(session: AsyncSession, group_id: str) -> str:
    """Return the board id mapped to *group_id*.

    Raises BoardMappingNotFoundError if the group was never mapped.
    """
    board_id = await session.scalar(
        select(BoardMapping.board_id).where(BoardMapping.group_id == group_id)
    )
    if board_id is None:
        raise BoardMappingNotFoundError(group_id)
    return board_id


async def upsert_mapping(session: AsyncSession, group_id: str, board_id: str) -> None:
    """Create or replace the mapping for *group_id* (last write wins)."""
    now = format_timestamp(now_utc())
    table = BoardMapping.__table__
    stmt = upsert_insert(session, table).values(
        group_id=group_id, board_id=board_id, created_at=now, updated_at=now
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.group_id],
        set_={"board_id": stmt.excluded.board_id, "updated_at": stmt.excluded.updated_at},
    )
    await session.execute(stmt)
    await session.commit()


async def try_upsert_mapping(session: AsyncSession, group_id: str, board_id: str) -> bool:
    """Best-effort mapping upsert. Logs and returns False on failure."""
    try:
        await upsert_mapping(session, group_id, board_id)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.warning("Failed to upsert mapping %s -> %s: %s", group_id, board_id, exc)
        return False
    return True


async def list_mappings(session: AsyncSession) -> list[BoardMapping]:
    """Return all mappings ordered by group id."""
    result = await session.execute(select(BoardMapping).order_by(BoardMapping.group_id))
    return list(result.scalars())
