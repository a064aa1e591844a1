"""Board sync service: fetch, fingerprint, classify, and persist board changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from backend.services.datetime_service import format_timestamp, now_utc
from backend.services.diff_log_service import DiffRecord, save_diff
from backend.services.fingerprint_service import fingerprint_items
from backend.services.snapshot_service import (
    StoredItem,
    decode_content,
    load_snapshots,
    mark_deleted,
    upsert_snapshots,
)
from backend.services.text_service import changed_paths, extract_text

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from backend.board_api.base import ItemFetcher


class ChangeType(StrEnum):
    """Lifecycle transition of one item between the snapshot and a fetch."""

    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"


@dataclass
class FetchedItem:
    """An item from the current fetch with its serialization and fingerprint."""

    item_id: str
    type: str
    document: dict[str, Any]
    content: str
    fingerprint: str


@dataclass
class SyncPlan:
    """Everything one run will write: the diff record plus snapshot mutations."""

    record: DiffRecord
    upserts: list[dict[str, Any]] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)
    changes: dict[str, ChangeType] = field(default_factory=dict)


def item_id_of(item: dict[str, Any]) -> str | None:
    """Return the item's id as a string, or None if it is missing or empty."""
    raw = item.get("id")
    if raw is None:
        return None
    item_id = str(raw)
    return item_id or None


def classify_change(fetched: FetchedItem, previous: StoredItem | None) -> ChangeType:
    """Classify one fetched item against its prior snapshot row."""
    if previous is None:
        return ChangeType.ADDED
    if previous.fingerprint != fetched.fingerprint or previous.is_deleted:
        return ChangeType.UPDATED
    return ChangeType.UNCHANGED


def build_update_entry(fetched: FetchedItem, previous: StoredItem) -> dict[str, Any]:
    """Describe an update with before/after documents and the text fields that changed."""
    before = decode_content(previous.content, previous.item_id)
    after = fetched.document
    return {
        "id": fetched.item_id,
        "type": fetched.type,
        "before": before,
        "after": after,
        "before_text": extract_text(before),
        "after_text": extract_text(after),
        "changed_paths": changed_paths(before, after),
    }


def compute_sync_plan(
    board_id: str,
    fetched: list[FetchedItem],
    previous: dict[str, StoredItem],
    now: str,
) -> SyncPlan:
    """Compare the fetched item set against the prior snapshot.

    Pure function: classifies every item and prepares the snapshot rows and
    diff record for a run stamped *now*, without touching the store.
    """
    plan = SyncPlan(record=DiffRecord(board_id=board_id, diff_at=now))

    for item in fetched:
        if item.item_id in plan.changes:
            logger.warning("Duplicate item %s in fetch of board %s", item.item_id, board_id)
            continue
        prev = previous.get(item.item_id)
        change = classify_change(item, prev)
        plan.changes[item.item_id] = change

        if change is ChangeType.ADDED:
            plan.record.added.append(item.document)
        elif change is ChangeType.UPDATED and prev is not None:
            plan.record.updated.append(build_update_entry(item, prev))

        plan.upserts.append(
            {
                "board_id": board_id,
                "item_id": item.item_id,
                "type": item.type,
                "content": item.content,
                "fingerprint": item.fingerprint,
                "first_seen_at": prev.first_seen_at if prev is not None else now,
                "last_seen_at": now,
                "deleted_at": None,
            }
        )

    for item_id, prev in previous.items():
        if item_id in plan.changes or prev.is_deleted:
            continue
        plan.changes[item_id] = ChangeType.DELETED
        plan.to_delete.append(item_id)
        plan.record.deleted.append({"id": item_id, "type": prev.type})

    return plan


async def prepare_items(
    items: list[dict[str, Any]], batch_size: int = 500
) -> list[FetchedItem]:
    """Drop items without an id and fingerprint the rest."""
    keyed: list[tuple[str, dict[str, Any]]] = []
    skipped = 0
    for item in items:
        item_id = item_id_of(item)
        if item_id is None:
            skipped += 1
            continue
        keyed.append((item_id, item))
    if skipped:
        logger.warning("Skipped %d items without an id", skipped)

    pairs = await fingerprint_items([item for _, item in keyed], batch_size)
    return [
        FetchedItem(
            item_id=item_id,
            type=str(item.get("type") or ""),
            document=item,
            content=content,
            fingerprint=digest,
        )
        for (item_id, item), (content, digest) in zip(keyed, pairs, strict=True)
    ]


async def sync_board(
    session: AsyncSession,
    fetcher: ItemFetcher,
    board_id: str,
    types: list[str] | None = None,
    *,
    batch_size: int = 100,
    fingerprint_batch_size: int = 500,
    clock: Callable[[], datetime] = now_utc,
) -> DiffRecord:
    """Mirror one board and record what changed since the previous run.

    A fetch failure raises before anything is written. Snapshot writes are
    committed in chunks of *batch_size*; a failing chunk propagates its error
    and leaves earlier chunks committed.

    No lock is taken here: callers that can trigger overlapping runs for the
    same board must serialize them.
    """
    items = await fetcher.fetch_all(board_id, types)
    now = format_timestamp(clock())

    fetched = await prepare_items(items, fingerprint_batch_size)
    previous = await load_snapshots(session, board_id)
    plan = compute_sync_plan(board_id, fetched, previous, now)

    await upsert_snapshots(session, plan.upserts, batch_size)
    await mark_deleted(session, board_id, plan.to_delete, now, batch_size)
    await save_diff(session, plan.record)

    counts = plan.record.counts
    logger.info(
        "Synced board %s at %s: %d added, %d updated, %d deleted (%d fetched)",
        board_id,
        now,
        counts.added,
        counts.updated,
        counts.deleted,
        len(fetched),
    )
    return plan.record
