"""Protocol for fetching the current item set of a remote board."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ItemFetcher(Protocol):
    """Anything that can list every current item of a board."""

    async def fetch_all(
        self, board_id: str, types: list[str] | None = None
    ) -> list[dict[str, Any]]:
        """Return all items of *board_id*, optionally filtered by item type.

        Raises ``BoardFetchError`` if any page cannot be read.
        """
        ...
