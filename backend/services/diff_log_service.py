"""Diff log store: one immutable change record per synchronization run."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from backend.models.board import BoardDiff
from backend.services.batch_service import execute_in_chunks, upsert_insert
from backend.services.datetime_service import normalize_timestamp

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class DiffCounts:
    """Cardinalities of one or more diff records."""

    added: int = 0
    updated: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.added + self.updated + self.deleted


@dataclass
class DiffRecord:
    """Classified result of one synchronization run."""

    board_id: str
    diff_at: str
    added: list[dict[str, Any]] = field(default_factory=list)
    updated: list[dict[str, Any]] = field(default_factory=list)
    deleted: list[dict[str, Any]] = field(default_factory=list)

    @property
    def counts(self) -> DiffCounts:
        return DiffCounts(
            added=len(self.added), updated=len(self.updated), deleted=len(self.deleted)
        )

    @property
    def is_empty(self) -> bool:
        return self.counts.total == 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["counts"] = asdict(self.counts)
        return data


def _dumps(value: list[dict[str, Any]]) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _loads_list(text: str, board_id: str, diff_at: str, column: str) -> list[dict[str, Any]]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        logger.warning("Diff %s@%s has unreadable %s column", board_id, diff_at, column)
        return []
    if not isinstance(value, list):
        logger.warning("Diff %s@%s has non-list %s column", board_id, diff_at, column)
        return []
    return value


def _to_record(row: BoardDiff) -> DiffRecord:
    return DiffRecord(
        board_id=row.board_id,
        diff_at=row.diff_at,
        added=_loads_list(row.added, row.board_id, row.diff_at, "added"),
        updated=_loads_list(row.updated, row.board_id, row.diff_at, "updated"),
        deleted=_loads_list(row.deleted, row.board_id, row.diff_at, "deleted"),
    )


async def save_diff(session: AsyncSession, record: DiffRecord, batch_size: int = 1) -> None:
    """Persist a diff record, replacing any record with the same key."""
    table = BoardDiff.__table__
    stmt = upsert_insert(session, table)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.board_id, table.c.diff_at],
        set_={
            "added": stmt.excluded.added,
            "updated": stmt.excluded.updated,
            "deleted": stmt.excluded.deleted,
        },
    )
    row = {
        "board_id": record.board_id,
        "diff_at": record.diff_at,
        "added": _dumps(record.added),
        "updated": _dumps(record.updated),
        "deleted": _dumps(record.deleted),
    }
    await execute_in_chunks(session, stmt, [row], batch_size)


async def get_diff(session: AsyncSession, board_id: str, diff_at: str) -> DiffRecord | None:
    """Return the diff record written at exactly *diff_at*, if any."""
    row = await session.get(BoardDiff, (board_id, normalize_timestamp(diff_at)))
    return _to_record(row) if row is not None else None


def _window(
    stmt: Any, since: str | datetime | None, until: str | datetime | None
) -> Any:
    if since is not None:
        stmt = stmt.where(BoardDiff.diff_at >= normalize_timestamp(since))
    if until is not None:
        stmt = stmt.where(BoardDiff.diff_at <= normalize_timestamp(until))
    return stmt


async def list_diffs(
    session: AsyncSession,
    board_id: str,
    *,
    since: str | datetime | None = None,
    until: str | datetime | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[DiffRecord]:
    """List diff records of a board, newest first, within an inclusive time window."""
    stmt = _window(select(BoardDiff).where(BoardDiff.board_id == board_id), since, until)
    stmt = stmt.order_by(BoardDiff.diff_at.desc()).limit(limit).offset(offset)
    result = await session.execute(stmt)
    return [_to_record(row) for row in result.scalars()]


async def summarize_activity(
    session: AsyncSession,
    board_id: str,
    *,
    since: str | datetime | None = None,
    until: str | datetime | None = None,
) -> DiffCounts:
    """Sum added/updated/deleted cardinalities over a window of diff records."""
    stmt = _window(select(BoardDiff).where(BoardDiff.board_id == board_id), since, until)
    totals = DiffCounts()
    result = await session.execute(stmt)
    for row in result.scalars():
        counts = _to_record(row).counts
        totals.added += counts.added
        totals.updated += counts.updated
        totals.deleted += counts.deleted
    return totals
