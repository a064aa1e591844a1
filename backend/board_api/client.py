"""Cursor-paginated client for the remote board items endpoint."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import parse_qs, quote, urlparse

import httpx

from backend.config import MAX_BOARD_PAGE_SIZE
from backend.exceptions import BoardFetchError

logger = logging.getLogger(__name__)

_CURSOR_KEYS = ("cursor", "next_cursor", "nextCursor")
_NESTED_CURSOR_KEYS = ("after", "next")


def _cursor_token(value: Any) -> str | None:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        for key in _NESTED_CURSOR_KEYS:
            nested = value.get(key)
            if isinstance(nested, str) and nested:
                return nested
    return None


def _link_cursor(links: Any) -> str | None:
    """Return the ``cursor`` query parameter of a ``links.next`` URL."""
    if not isinstance(links, dict):
        return None
    next_url = links.get("next")
    if not isinstance(next_url, str) or not next_url:
        return None
    values = parse_qs(urlparse(next_url).query).get("cursor")
    return values[0] if values and values[0] else None


def normalize_cursor(payload: Any) -> str | None:
    """Extract the continuation cursor from one page of results.

    The cursor may be a bare string (``{"cursor": "abc"}``), nested
    (``{"cursor": {"after": "abc"}}`` or ``{"cursor": {"next": "abc"}}``), or
    live under an alternate key (``next_cursor``, ``nextCursor``). A
    ``links.next`` URL contributes its ``cursor`` query parameter. Returns
    ``None`` when there are no more pages.
    """
    if not isinstance(payload, dict):
        return None
    for key in _CURSOR_KEYS:
        token = _cursor_token(payload.get(key))
        if token is not None:
            return token
    return _link_cursor(payload.get("links"))


def extract_page_items(payload: Any) -> list[dict[str, Any]]:
    """Return the item array of one page (``data`` or ``items``)."""
    if not isinstance(payload, dict):
        return []
    items = payload.get("data")
    if items is None:
        items = payload.get("items")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class BoardApiClient:
    """Read-only client for ``GET /boards/{board_id}/items``.

    Pass an existing ``httpx.AsyncClient`` to share a connection pool (or a
    mock transport in tests); otherwise one is created and owned by this
    instance.
    """

    def __init__(
        self,
        api_base: str,
        token: str,
        *,
        page_size: int = MAX_BOARD_PAGE_SIZE,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.page_size = max(1, min(page_size, MAX_BOARD_PAGE_SIZE))
        self._headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> BoardApiClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _items_url(self, board_id: str) -> str:
        return f"{self.api_base}/boards/{quote(board_id, safe='')}/items"

    async def _fetch_page(
        self, board_id: str, params: dict[str, str | int]
    ) -> dict[str, Any]:
        try:
            resp = await self._client.get(
                self._items_url(board_id), params=params, headers=self._headers
            )
        except httpx.HTTPError as exc:
            raise BoardFetchError(board_id, None, str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            raise BoardFetchError(board_id, resp.status_code, resp.text)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise BoardFetchError(board_id, resp.status_code, "Invalid JSON in response") from exc
        if not isinstance(payload, dict):
            raise BoardFetchError(board_id, resp.status_code, "Unexpected response shape")
        return payload

    async def fetch_all(
        self, board_id: str, types: list[str] | None = None
    ) -> list[dict[str, Any]]:
        """Return every item on the board, following cursors until exhausted.

        Any failed page aborts the whole fetch; nothing collected so far is
        returned.
        """
        base_params: dict[str, str | int] = {"limit": self.page_size}
        if types:
            base_params["type"] = ",".join(types)

        items: list[dict[str, Any]] = []
        seen_cursors: set[str] = set()
        cursor: str | None = None
        while True:
            params = dict(base_params)
            if cursor:
                params["cursor"] = cursor
            payload = await self._fetch_page(board_id, params)
            page = extract_page_items(payload)
            items.extend(page)
            logger.debug("Fetched %d items from board %s (cursor=%s)", len(page), board_id, cursor)

            cursor = normalize_cursor(payload)
            if cursor is None:
                break
            if cursor in seen_cursors:
                msg = f"Pagination cursor repeated: {cursor!r}"
                raise BoardFetchError(board_id, None, msg)
            seen_cursors.add(cursor)

        logger.info("Fetched %d items from board %s", len(items), board_id)
        return items
