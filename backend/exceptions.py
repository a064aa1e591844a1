"""Application-level exception types.

Convention:
- ``BoardFetchError``: the remote board API could not be read. The global
  handler returns 502 with the upstream status and body. Nothing has been
  persisted when this is raised.
- ``BoardMappingNotFoundError``: a group id has no board mapping yet. The
  global handler returns 404 so operators know to run an initial sync with
  both ids.
- ``ValueError``: for *business logic* validation errors that are safe to
  forward to clients. The global ``ValueError`` handler returns ``str(exc)``
  as the 422 detail.

Persistence errors are not wrapped; ``sqlalchemy`` exceptions reach the
caller unchanged.
"""

from __future__ import annotations


class BoardMirrorError(Exception):
    """Base class for board mirror errors."""


class BoardFetchError(BoardMirrorError):
    """Raised when listing items from the remote board API fails.

    ``status_code`` is ``None`` for transport failures (DNS, timeout, reset)
    and for pagination loops, where no failing response exists.
    """

    def __init__(self, board_id: str, status_code: int | None, body: str) -> None:
        self.board_id = board_id
        self.status_code = status_code
        self.body = body
        status = status_code if status_code is not None else "(no response)"
        super().__init__(f"Board API error {status} for board {board_id}: {body}")


class BoardMappingNotFoundError(BoardMirrorError):
    """Raised when a group id has no board mapping."""

    def __init__(self, group_id: str) -> None:
        self.group_id = group_id
        super().__init__(
            f"No board mapping for group {group_id!r}; run an initial sync with "
            "both group_id and board_id"
        )
