"""Group to board mapping model."""

from __future__ import annotations

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base


class BoardMapping(Base):
    """Maps a logical group id to the remote board it works on."""

    __tablename__ = "board_mappings"

    group_id: Mapped[str] = mapped_column(Text, primary_key=True)
    board_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
