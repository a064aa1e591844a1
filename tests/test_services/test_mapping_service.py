"""Tests for group to board mappings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError

from backend.exceptions import BoardMappingNotFoundError
from backend.services import mapping_service
from backend.services.mapping_service import (
    list_mappings,
    resolve_board_id,
    try_upsert_mapping,
    upsert_mapping,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def test_resolve_unknown_group_raises(db_session: AsyncSession) -> None:
    with pytest.raises(BoardMappingNotFoundError) as exc_info:
        await resolve_board_id(db_session, "team-x")
    assert exc_info.value.group_id == "team-x"


async def test_upsert_then_resolve(db_session: AsyncSession) -> None:
    await upsert_mapping(db_session, "team-x", "board-1")
    assert await resolve_board_id(db_session, "team-x") == "board-1"


async def test_last_write_wins_and_keeps_created_at(db_session: AsyncSession) -> None:
    await upsert_mapping(db_session, "team-x", "board-1")
    [first] = await list_mappings(db_session)
    created_at = first.created_at

    await upsert_mapping(db_session, "team-x", "board-2")
    db_session.expire_all()
    [mapping] = await list_mappings(db_session)

    assert mapping.board_id == "board-2"
    assert mapping.created_at == created_at
    assert mapping.updated_at >= created_at


async def test_list_ordered_by_group(db_session: AsyncSession) -> None:
    await upsert_mapping(db_session, "zeta", "b2")
    await upsert_mapping(db_session, "alpha", "b1")
    assert [m.group_id for m in await list_mappings(db_session)] == ["alpha", "zeta"]


async def test_try_upsert_reports_success(db_session: AsyncSession) -> None:
    assert await try_upsert_mapping(db_session, "team-x", "board-1") is True


async def test_try_upsert_swallows_database_errors(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def failing(*args: object) -> None:
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(mapping_service, "upsert_mapping", failing)

    assert await try_upsert_mapping(db_session, "team-x", "board-1") is False
    assert await list_mappings(db_session) == []
