"""Tests for the snapshot store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select

from backend.models.board import BoardItem
from backend.services.snapshot_service import (
    decode_content,
    get_item,
    list_items,
    mark_deleted,
    upsert_snapshots,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


def _ts(second: int) -> str:
    return f"2026-03-01T09:00:{second:02d}.000000+00:00"


def _row(item_id: str, seen: int, board_id: str = "b1") -> dict[str, object]:
    return {
        "board_id": board_id,
        "item_id": item_id,
        "type": "card",
        "content": f'{{"id": "{item_id}", "title": "Card {item_id}"}}',
        "fingerprint": "0" * 64,
        "first_seen_at": _ts(seen),
        "last_seen_at": _ts(seen),
        "deleted_at": None,
    }


class TestListItems:
    async def test_orders_by_last_seen_desc(self, db_session: AsyncSession) -> None:
        await upsert_snapshots(db_session, [_row("a", 1), _row("b", 3), _row("c", 2)], 10)

        items = await list_items(db_session, "b1")

        assert [item.id for item in items] == ["b", "c", "a"]
        assert items[0].data == {"id": "b", "title": "Card b"}

    async def test_excludes_deleted_unless_requested(self, db_session: AsyncSession) -> None:
        await upsert_snapshots(db_session, [_row("a", 1), _row("b", 2)], 10)
        await mark_deleted(db_session, "b1", ["a"], _ts(5), 10)

        visible = await list_items(db_session, "b1")
        everything = await list_items(db_session, "b1", include_deleted=True)

        assert [item.id for item in visible] == ["b"]
        assert [item.id for item in everything] == ["a", "b"]
        assert everything[0].deleted_at == _ts(5)
        assert everything[0].last_seen_at == _ts(5)

    async def test_pagination(self, db_session: AsyncSession) -> None:
        await upsert_snapshots(db_session, [_row(str(n), n) for n in range(5)], 2)

        page = await list_items(db_session, "b1", limit=2, offset=1)

        assert [item.id for item in page] == ["3", "2"]

    async def test_partitioned_by_board(self, db_session: AsyncSession) -> None:
        await upsert_snapshots(db_session, [_row("a", 1), _row("z", 1, board_id="b2")], 10)
        assert [item.id for item in await list_items(db_session, "b2")] == ["z"]


class TestUpsert:
    async def test_upsert_keeps_first_seen_and_clears_deleted(
        self, db_session: AsyncSession
    ) -> None:
        await upsert_snapshots(db_session, [_row("a", 1)], 10)
        await mark_deleted(db_session, "b1", ["a"], _ts(2), 10)

        refreshed = _row("a", 3)
        refreshed["first_seen_at"] = _ts(3)
        refreshed["type"] = "shape"
        await upsert_snapshots(db_session, [refreshed], 10)

        item = await get_item(db_session, "b1", "a")
        assert item is not None
        assert item.first_seen_at == _ts(1)
        assert item.last_seen_at == _ts(3)
        assert item.deleted_at is None
        assert item.type == "shape"

    async def test_one_row_per_item(self, db_session: AsyncSession) -> None:
        await upsert_snapshots(db_session, [_row("a", 1)], 10)
        await upsert_snapshots(db_session, [_row("a", 2)], 10)
        count = await db_session.scalar(select(func.count()).select_from(BoardItem))
        assert count == 1

    async def test_empty_inputs_are_noops(self, db_session: AsyncSession) -> None:
        assert await upsert_snapshots(db_session, [], 10) == 0
        assert await mark_deleted(db_session, "b1", [], _ts(1), 10) == 0


class TestGetItem:
    async def test_missing_item(self, db_session: AsyncSession) -> None:
        assert await get_item(db_session, "b1", "nope") is None


class TestDecodeContent:
    def test_invalid_json(self) -> None:
        assert decode_content("{not json", "x") is None

    def test_non_object(self) -> None:
        assert decode_content("[1, 2]", "x") is None
