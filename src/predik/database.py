"""Async SQLAlchemy engine and session management."""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from predik.config import Settings


class Database:
    """Owns the engine and session factory for one process.

    Created in the application lifespan and disposed on shutdown.
    """

    def __init__(
        self,
        url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        statement_timeout_ms: int = 0,
    ) -> None:
        self.url = url
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._statement_timeout_ms = statement_timeout_ms
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def init(self) -> None:
        """Create the engine and session factory."""
        kwargs: dict[str, Any] = {"pool_pre_ping": True, "echo": False}
        if not self.is_sqlite:
            kwargs["pool_size"] = self._pool_size
            kwargs["max_overflow"] = self._max_overflow
            connect_args: dict[str, Any] = {"statement_cache_size": 0}
            if self._statement_timeout_ms > 0:
                connect_args["server_settings"] = {"statement_timeout": str(self._statement_timeout_ms)}
            kwargs["connect_args"] = connect_args

        self._engine = create_async_engine(self.url, **kwargs)
        if self.is_sqlite:
            _enable_sqlite_foreign_keys(self._engine)

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def close(self) -> None:
        """Dispose of the engine."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            msg = "Database not initialized. Call init() first."
            raise RuntimeError(msg)
        return self._engine

    def session(self) -> AsyncSession:
        """Open a new session; use as an async context manager."""
        if self._session_factory is None:
            msg = "Database not initialized. Call init() first."
            raise RuntimeError(msg)
        return self._session_factory()


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:  # noqa: ANN401
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
