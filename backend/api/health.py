"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import get_session, get_settings
from backend.config import Settings
from backend.version import __version__

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    board_api: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Report database reachability and whether the board API token is set.

    A missing token degrades the status.
    """
    db_status = "ok"
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check database query failed", exc_info=True)
        db_status = "error"

    board_api = "configured" if settings.board_api_token else "missing"
    healthy = db_status == "ok" and board_api == "configured"
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=__version__,
        database=db_status,
        board_api=board_api,
    )
