"""Content fingerprints for change detection.

Fingerprints are SHA-256 digests of a canonical JSON serialization. They are
used only to detect whether an item changed between two fetches, never for
security.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from typing import Any

from backend.services.batch_service import chunked


def serialize_item(item: dict[str, Any]) -> str:
    """Serialize an item document canonically (sorted keys, compact, UTF-8 preserved)."""
    return json.dumps(item, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(serialized: str) -> str:
    """Return the 64-character hex SHA-256 digest of a serialized item."""
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def _fingerprint_batch(items: list[dict[str, Any]]) -> list[tuple[str, str]]:
    results: list[tuple[str, str]] = []
    for item in items:
        serialized = serialize_item(item)
        results.append((serialized, fingerprint(serialized)))
    return results


async def fingerprint_items(
    items: list[dict[str, Any]], batch_size: int = 500
) -> list[tuple[str, str]]:
    """Serialize and fingerprint *items* in bounded batches off the event loop.

    Returns ``(serialized, fingerprint)`` pairs in input order.
    """
    batches = chunked(items, batch_size)
    if not batches:
        return []
    results = await asyncio.gather(
        *(asyncio.to_thread(_fingerprint_batch, batch) for batch in batches)
    )
    return [pair for batch in results for pair in batch]
