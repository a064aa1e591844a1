"""Tests for the diff log store."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from backend.services.diff_log_service import (
    DiffCounts,
    DiffRecord,
    get_diff,
    list_diffs,
    save_diff,
    summarize_activity,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


def _ts(hour: int) -> str:
    return f"2026-03-01T{hour:02d}:00:00.000000+00:00"


def _record(hour: int, added: int = 0, updated: int = 0, deleted: int = 0) -> DiffRecord:
    return DiffRecord(
        board_id="b1",
        diff_at=_ts(hour),
        added=[{"id": f"a{n}"} for n in range(added)],
        updated=[{"id": f"u{n}", "changed_paths": []} for n in range(updated)],
        deleted=[{"id": f"d{n}", "type": "card"} for n in range(deleted)],
    )


async def _seed(session: AsyncSession) -> None:
    await save_diff(session, _record(9, added=3))
    await save_diff(session, _record(10, updated=1))
    await save_diff(session, _record(11, deleted=2))
    await save_diff(session, _record(12))


class TestDiffRecord:
    def test_counts_and_dict(self) -> None:
        record = _record(9, added=2, deleted=1)
        assert record.counts == DiffCounts(added=2, updated=0, deleted=1)
        assert not record.is_empty
        assert record.to_dict()["counts"] == {"added": 2, "updated": 0, "deleted": 1}

    def test_empty(self) -> None:
        assert _record(9).is_empty


class TestListDiffs:
    async def test_newest_first(self, db_session: AsyncSession) -> None:
        await _seed(db_session)
        records = await list_diffs(db_session, "b1")
        assert [r.diff_at for r in records] == [_ts(12), _ts(11), _ts(10), _ts(9)]
        assert records[3].added == [{"id": "a0"}, {"id": "a1"}, {"id": "a2"}]

    async def test_window_is_inclusive(self, db_session: AsyncSession) -> None:
        await _seed(db_session)
        records = await list_diffs(db_session, "b1", since=_ts(10), until=_ts(11))
        assert [r.diff_at for r in records] == [_ts(11), _ts(10)]

    async def test_window_accepts_other_offsets(self, db_session: AsyncSession) -> None:
        await _seed(db_session)
        records = await list_diffs(db_session, "b1", since="2026-03-01T12:00:00+02:00")
        assert [r.diff_at for r in records] == [_ts(12), _ts(11), _ts(10)]

    async def test_limit_and_offset(self, db_session: AsyncSession) -> None:
        await _seed(db_session)
        records = await list_diffs(db_session, "b1", limit=2, offset=1)
        assert [r.diff_at for r in records] == [_ts(11), _ts(10)]

    async def test_other_board_is_empty(self, db_session: AsyncSession) -> None:
        await _seed(db_session)
        assert await list_diffs(db_session, "b2") == []

    async def test_invalid_bound_raises(self, db_session: AsyncSession) -> None:
        with pytest.raises(ValueError):
            await list_diffs(db_session, "b1", since="not a date")


class TestGetDiff:
    async def test_round_trip(self, db_session: AsyncSession) -> None:
        record = _record(9, added=1, updated=1, deleted=1)
        await save_diff(db_session, record)
        assert await get_diff(db_session, "b1", _ts(9)) == record

    async def test_missing(self, db_session: AsyncSession) -> None:
        assert await get_diff(db_session, "b1", _ts(9)) is None

    async def test_same_key_is_replaced(self, db_session: AsyncSession) -> None:
        await save_diff(db_session, _record(9, added=1))
        await save_diff(db_session, _record(9, deleted=2))
        stored = await get_diff(db_session, "b1", _ts(9))
        assert stored is not None
        assert stored.counts == DiffCounts(added=0, updated=0, deleted=2)


class TestSummarizeActivity:
    async def test_totals(self, db_session: AsyncSession) -> None:
        await _seed(db_session)
        assert await summarize_activity(db_session, "b1") == DiffCounts(3, 1, 2)

    async def test_windowed(self, db_session: AsyncSession) -> None:
        await _seed(db_session)
        counts = await summarize_activity(db_session, "b1", since=_ts(10))
        assert counts == DiffCounts(added=0, updated=1, deleted=2)
        assert counts.total == 3
