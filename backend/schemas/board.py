"""Board mirror request and response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SyncRequest(BaseModel):
    """Request to synchronize one board.

    When both ids are given the group mapping is refreshed; when only
    ``group_id`` is given it is resolved through the stored mapping.
    """

    model_config = ConfigDict(extra="forbid")

    group_id: str | None = Field(default=None, min_length=1, max_length=200)
    board_id: str | None = Field(default=None, min_length=1, max_length=200)
    types: list[str] | None = Field(default=None, max_length=20)

    @model_validator(mode="after")
    def _require_an_id(self) -> SyncRequest:
        if self.group_id is None and self.board_id is None:
            raise ValueError("Either group_id or board_id is required")
        return self


class DiffCountsResponse(BaseModel):
    added: int
    updated: int
    deleted: int


class DiffRecordResponse(BaseModel):
    """One synchronization run's classified changes."""

    board_id: str
    diff_at: str
    counts: DiffCountsResponse
    added: list[dict[str, Any]] = Field(default_factory=list)
    updated: list[dict[str, Any]] = Field(default_factory=list)
    deleted: list[dict[str, Any]] = Field(default_factory=list)


class ItemSnapshotResponse(BaseModel):
    """Last known state of one board item."""

    id: str
    type: str
    data: dict[str, Any]
    fingerprint: str
    first_seen_at: str
    last_seen_at: str
    deleted_at: str | None = None


class ActivityResponse(BaseModel):
    """Aggregated change counts for a board over a time window."""

    board_id: str
    since: str | None = None
    until: str | None = None
    counts: DiffCountsResponse


class MappingResponse(BaseModel):
    group_id: str
    board_id: str
    created_at: str
    updated_at: str
