"""Shared test fixtures for Board Mirror."""

from __future__ import annotations

import copy
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from backend.config import Settings
from backend.database import create_engine as create_db_engine
from backend.database import create_schema
from backend.exceptions import BoardFetchError
from backend.main import create_app

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from backend.board_api.base import ItemFetcher

TEST_API_TOKEN = "test-api-token-with-at-least-32-characters"


class FakeBoard:
    """In-memory remote board implementing the item fetcher protocol."""

    def __init__(self, items: list[dict[str, Any]] | None = None) -> None:
        self.items: list[dict[str, Any]] = list(items or [])
        self.fail_status: int | None = None
        self.calls: list[tuple[str, list[str] | None]] = []

    def set_items(self, *items: dict[str, Any]) -> None:
        self.items = list(items)

    async def fetch_all(
        self, board_id: str, types: list[str] | None = None
    ) -> list[dict[str, Any]]:
        self.calls.append((board_id, types))
        if self.fail_status is not None:
            raise BoardFetchError(board_id, self.fail_status, "Service Unavailable")
        items = copy.deepcopy(self.items)
        if types:
            items = [item for item in items if item.get("type") in types]
        return items


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def sticky(item_id: str, content: str, **extra: Any) -> dict[str, Any]:
    """Build a sticky-note item document as the remote API returns it."""
    item: dict[str, Any] = {
        "id": item_id,
        "type": "sticky_note",
        "data": {"content": content, "shape": "square"},
        "position": {"x": 0, "y": 0},
    }
    item.update(extra)
    return item


@asynccontextmanager
async def create_test_client(
    settings: Settings, fetcher: ItemFetcher
) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (DB schema, board
    client) because ASGITransport does not trigger it.
    """
    app = create_app(settings)
    settings.validate_runtime_security()

    engine, session_factory = create_db_engine(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.board_client = fetcher
    await create_schema(engine)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await engine.dispose()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings backed by a temporary SQLite database."""
    db_path = tmp_path / "test.db"
    return Settings(
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        board_api_token="test-board-token",
        sync_batch_size=2,
        fingerprint_batch_size=2,
    )


@pytest.fixture
def fake_board() -> FakeBoard:
    return FakeBoard()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the mirror schema."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(
    db_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    test_settings: Settings, fake_board: FakeBoard
) -> AsyncGenerator[AsyncClient]:
    async with create_test_client(test_settings, fake_board) as ac:
        yield ac
