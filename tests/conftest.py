"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from predik.config import Settings
from predik.database import Database
from predik.db.base import Base
from predik.db import models  # noqa: F401
from predik.ledger.levels import level_for_xp
from predik.main import create_app
from predik.storage.base import LedgerStore, TaskRecord, UserRecord
from predik.storage.memory import MemoryLedgerStore
from predik.storage.sql import SqlLedgerStore

ADMIN_TOKEN = "test-admin"
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def wallet(n: int) -> str:
    """Deterministic EVM address for test user ``n``."""
    return "0x" + f"{n:040x}"


async def _sqlite_store(tmp_path: Path) -> SqlLedgerStore:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'predik.db'}")
    database.init()
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return SqlLedgerStore(database)


@pytest_asyncio.fixture
async def memory_store() -> AsyncGenerator[MemoryLedgerStore, None]:
    store = MemoryLedgerStore()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def sql_store(tmp_path: Path) -> AsyncGenerator[SqlLedgerStore, None]:
    store = await _sqlite_store(tmp_path)
    yield store
    await store.close()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncGenerator[LedgerStore, None]:
    """Every ledger scenario runs against both backends."""
    backend: LedgerStore = MemoryLedgerStore() if request.param == "memory" else await _sqlite_store(tmp_path)
    yield backend
    await backend.close()


MakeUser = Callable[..., Awaitable[UserRecord]]
MakeTask = Callable[..., Awaitable[TaskRecord]]


@pytest.fixture
def make_user(store: LedgerStore) -> MakeUser:
    """Insert a user directly through the store, optionally with XP already earned."""

    async def _make(
        n: int,
        xp: int = 0,
        username: str | None = None,
        created_at: datetime | None = None,
    ) -> UserRecord:
        created_at = created_at or T0 + timedelta(seconds=n)
        async with store.transaction() as tx:
            user = await tx.insert_user(wallet(n), username or f"user{n}", ["ETH"], "Spot", created_at)
            if xp:
                await tx.set_user_xp(user.id, xp, level_for_xp(xp), created_at)
                user.xp, user.level = xp, level_for_xp(xp)
        return user

    return _make


@pytest.fixture
def make_task(store: LedgerStore) -> MakeTask:
    async def _make(**overrides: Any) -> TaskRecord:  # noqa: ANN401
        values: dict[str, Any] = {
            "title": "Follow on X",
            "description": "Follow the project account",
            "xp": 100,
            "difficulty": "easy",
            "task_type": "social",
            "requires_verification": False,
            "is_repeatable": False,
            "repeat_cooldown_hours": None,
        }
        values.update(overrides)
        async with store.transaction() as tx:
            return await tx.insert_task(values, T0)

    return _make


def make_settings(**overrides: Any) -> Settings:  # noqa: ANN401
    values: dict[str, Any] = {
        "storage_backend": "memory",
        "admin_token": ADMIN_TOKEN,
        "redis_url": "",
        "log_format": "console",
    }
    values.update(overrides)
    return Settings(**values)


@pytest_asyncio.fixture
async def client(store: LedgerStore) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the app wired to the parametrized store."""
    app = create_app(make_settings(), store=store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": ADMIN_TOKEN}
