"""Snapshot store: the persisted last-known state of every board item."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import bindparam, select, update

from backend.models.board import BoardItem
from backend.services.batch_service import execute_in_chunks, upsert_insert

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class StoredItem:
    """Snapshot row as loaded for diffing (content left serialized)."""

    item_id: str
    type: str
    content: str
    fingerprint: str
    first_seen_at: str
    last_seen_at: str
    deleted_at: str | None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass
class ItemSnapshot:
    """Snapshot row as returned to readers."""

    id: str
    type: str
    data: dict[str, Any]
    fingerprint: str
    first_seen_at: str
    last_seen_at: str
    deleted_at: str | None


def decode_content(content: str, item_id: str = "") -> dict[str, Any] | None:
    """Decode stored item JSON, returning None if it is unreadable."""
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        logger.warning("Stored content for item %s is not valid JSON", item_id)
        return None
    if not isinstance(data, dict):
        logger.warning("Stored content for item %s is not a JSON object", item_id)
        return None
    return data


def _to_snapshot(row: BoardItem) -> ItemSnapshot:
    return ItemSnapshot(
        id=row.item_id,
        type=row.type,
        data=decode_content(row.content, row.item_id) or {},
        fingerprint=row.fingerprint,
        first_seen_at=row.first_seen_at,
        last_seen_at=row.last_seen_at,
        deleted_at=row.deleted_at,
    )


async def load_snapshots(session: AsyncSession, board_id: str) -> dict[str, StoredItem]:
    """Load every snapshot row of a board, deleted ones included, keyed by item id."""
    result = await session.execute(
        select(
            BoardItem.item_id,
            BoardItem.type,
            BoardItem.content,
            BoardItem.fingerprint,
            BoardItem.first_seen_at,
            BoardItem.last_seen_at,
            BoardItem.deleted_at,
        ).where(BoardItem.board_id == board_id)
    )
    return {
        row.item_id: StoredItem(
            item_id=row.item_id,
            type=row.type,
            content=row.content,
            fingerprint=row.fingerprint,
            first_seen_at=row.first_seen_at,
            last_seen_at=row.last_seen_at,
            deleted_at=row.deleted_at,
        )
        for row in result
    }


async def get_item(session: AsyncSession, board_id: str, item_id: str) -> ItemSnapshot | None:
    """Return one snapshot row, or None if the item was never seen."""
    row = await session.get(BoardItem, (board_id, item_id))
    return _to_snapshot(row) if row is not None else None


async def list_items(
    session: AsyncSession,
    board_id: str,
    *,
    include_deleted: bool = False,
    limit: int = 200,
    offset: int = 0,
) -> list[ItemSnapshot]:
    """List snapshot rows of a board, most recently seen first."""
    stmt = select(BoardItem).where(BoardItem.board_id == board_id)
    if not include_deleted:
        stmt = stmt.where(BoardItem.deleted_at.is_(None))
    stmt = (
        stmt.order_by(BoardItem.last_seen_at.desc(), BoardItem.item_id)
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return [_to_snapshot(row) for row in result.scalars()]


async def upsert_snapshots(
    session: AsyncSession, rows: Sequence[dict[str, Any]], batch_size: int
) -> int:
    """Insert or refresh snapshot rows for items seen in a fetch.

    Existing rows keep their ``first_seen_at`` and have ``deleted_at``
    cleared.
    """
    if not rows:
        return 0
    table = BoardItem.__table__
    stmt = upsert_insert(session, table)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.board_id, table.c.item_id],
        set_={
            "type": stmt.excluded.type,
            "content": stmt.excluded.content,
            "fingerprint": stmt.excluded.fingerprint,
            "last_seen_at": stmt.excluded.last_seen_at,
            "deleted_at": None,
        },
    )
    return await execute_in_chunks(session, stmt, rows, batch_size)


async def mark_deleted(
    session: AsyncSession,
    board_id: str,
    item_ids: Sequence[str],
    deleted_at: str,
    batch_size: int,
) -> int:
    """Soft-delete items that vanished from the board."""
    if not item_ids:
        return 0
    table = BoardItem.__table__
    stmt = (
        update(table)
        .where(
            table.c.board_id == bindparam("b_board_id"),
            table.c.item_id == bindparam("b_item_id"),
        )
        .values(deleted_at=bindparam("b_deleted_at"), last_seen_at=bindparam("b_deleted_at"))
    )
    params = [
        {"b_board_id": board_id, "b_item_id": item_id, "b_deleted_at": deleted_at}
        for item_id in item_ids
    ]
    return await execute_in_chunks(session, stmt, params, batch_size)
