"""Board mirror API endpoints: trigger syncs and read the mirror and diff log."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import get_board_client, get_session, get_settings, require_api_token
from backend.board_api.base import ItemFetcher
from backend.config import Settings
from backend.schemas.board import (
    ActivityResponse,
    DiffCountsResponse,
    DiffRecordResponse,
    ItemSnapshotResponse,
    MappingResponse,
    SyncRequest,
)
from backend.services.board_sync_service import sync_board
from backend.services.diff_log_service import (
    DiffRecord,
    list_diffs,
    summarize_activity,
)
from backend.services.mapping_service import (
    list_mappings,
    resolve_board_id,
    try_upsert_mapping,
)
from backend.services.snapshot_service import ItemSnapshot, get_item, list_items

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/board", tags=["board"])

# Single-flight per board within this process. Runs across processes must be
# serialized by the scheduler. An entry lives only while some request holds or
# awaits its lock.
_board_locks: dict[str, asyncio.Lock] = {}
_board_lock_users: dict[str, int] = {}


@asynccontextmanager
async def _board_lock(board_id: str) -> AsyncGenerator[None]:
    lock = _board_locks.setdefault(board_id, asyncio.Lock())
    _board_lock_users[board_id] = _board_lock_users.get(board_id, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _board_lock_users[board_id] -= 1
        if not _board_lock_users[board_id]:
            del _board_lock_users[board_id]
            del _board_locks[board_id]


async def _resolve_board(
    session: AsyncSession, group_id: str | None, board_id: str | None
) -> str:
    if board_id:
        return board_id
    if group_id:
        return await resolve_board_id(session, group_id)
    raise ValueError("Either group_id or board_id is required")


def _record_response(record: DiffRecord) -> DiffRecordResponse:
    return DiffRecordResponse(
        board_id=record.board_id,
        diff_at=record.diff_at,
        counts=DiffCountsResponse(**asdict(record.counts)),
        added=record.added,
        updated=record.updated,
        deleted=record.deleted,
    )


def _item_response(item: ItemSnapshot) -> ItemSnapshotResponse:
    return ItemSnapshotResponse(**asdict(item))


# ── Endpoints ────────────────────────────────────────


@router.post("/sync", response_model=DiffRecordResponse)
async def sync(
    body: SyncRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    fetcher: Annotated[ItemFetcher, Depends(get_board_client)],
    settings: Annotated[Settings, Depends(get_settings)],
    _auth: Annotated[None, Depends(require_api_token)],
) -> DiffRecordResponse:
    """Fetch the board, diff it against the mirror, and record the changes."""
    if body.group_id and body.board_id:
        await try_upsert_mapping(session, body.group_id, body.board_id)
    board_id = await _resolve_board(session, body.group_id, body.board_id)
    types = body.types or settings.board_item_types or None

    async with _board_lock(board_id):
        record = await sync_board(
            session,
            fetcher,
            board_id,
            types,
            batch_size=settings.sync_batch_size,
            fingerprint_batch_size=settings.fingerprint_batch_size,
        )
    return _record_response(record)


@router.get("/diffs", response_model=list[DiffRecordResponse])
async def get_diffs(
    session: Annotated[AsyncSession, Depends(get_session)],
    group_id: str | None = Query(None, min_length=1),
    board_id: str | None = Query(None, min_length=1),
    since: str | None = Query(None),
    until: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[DiffRecordResponse]:
    """Diff history of a board, newest first."""
    resolved = await _resolve_board(session, group_id, board_id)
    records = await list_diffs(
        session, resolved, since=since, until=until, limit=limit, offset=offset
    )
    return [_record_response(record) for record in records]


@router.get("/items", response_model=list[ItemSnapshotResponse])
async def get_items(
    session: Annotated[AsyncSession, Depends(get_session)],
    group_id: str | None = Query(None, min_length=1),
    board_id: str | None = Query(None, min_length=1),
    include_deleted: bool = Query(False),
    limit: int = Query(200, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> list[ItemSnapshotResponse]:
    """Mirrored items of a board, most recently seen first."""
    resolved = await _resolve_board(session, group_id, board_id)
    items = await list_items(
        session, resolved, include_deleted=include_deleted, limit=limit, offset=offset
    )
    return [_item_response(item) for item in items]


@router.get("/items/{item_id}", response_model=ItemSnapshotResponse)
async def get_single_item(
    item_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    group_id: str | None = Query(None, min_length=1),
    board_id: str | None = Query(None, min_length=1),
) -> ItemSnapshotResponse:
    """Last known state of one item, deleted or not."""
    resolved = await _resolve_board(session, group_id, board_id)
    item = await get_item(session, resolved, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return _item_response(item)


@router.get("/activity", response_model=ActivityResponse)
async def get_activity(
    session: Annotated[AsyncSession, Depends(get_session)],
    group_id: str | None = Query(None, min_length=1),
    board_id: str | None = Query(None, min_length=1),
    since: str | None = Query(None),
    until: str | None = Query(None),
) -> ActivityResponse:
    """Total added/updated/deleted counts over a window of diff records."""
    resolved = await _resolve_board(session, group_id, board_id)
    counts = await summarize_activity(session, resolved, since=since, until=until)
    return ActivityResponse(
        board_id=resolved,
        since=since,
        until=until,
        counts=DiffCountsResponse(
            added=counts.added, updated=counts.updated, deleted=counts.deleted
        ),
    )


@router.get("/mappings", response_model=list[MappingResponse])
async def get_mappings(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[MappingResponse]:
    """All known group to board mappings."""
    mappings = await list_mappings(session)
    return [
        MappingResponse(
            group_id=m.group_id,
            board_id=m.board_id,
            created_at=m.created_at,
            updated_at=m.updated_at,
        )
        for m in mappings
    ]
