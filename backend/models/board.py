"""Board mirror models: item snapshots and per-run diff records."""

from __future__ import annotations

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base


class BoardItem(Base):
    """Last known state of one remote board item.

    ``deleted_at`` is a soft-delete marker: it is set when the item is absent
    from a fetch and cleared again if the item reappears.
    """

    __tablename__ = "board_items"

    board_id: Mapped[str] = mapped_column(Text, primary_key=True)
    item_id: Mapped[str] = mapped_column(Text, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    first_seen_at: Mapped[str] = mapped_column(Text, nullable=False)
    last_seen_at: Mapped[str] = mapped_column(Text, nullable=False)
    deleted_at: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("idx_board_items_last_seen", "board_id", "last_seen_at"),)


class BoardDiff(Base):
    """Change log entry written once per synchronization run."""

    __tablename__ = "board_diffs"

    board_id: Mapped[str] = mapped_column(Text, primary_key=True)
    diff_at: Mapped[str] = mapped_column(Text, primary_key=True)
    added: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    updated: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    deleted: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
