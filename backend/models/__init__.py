"""SQLAlchemy ORM models for Board Mirror."""

from backend.models.base import Base
from backend.models.board import BoardDiff, BoardItem
from backend.models.mapping import BoardMapping

__all__ = [
    "Base",
    "BoardDiff",
    "BoardItem",
    "BoardMapping",
]
