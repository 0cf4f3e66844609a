"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from predik.config import Settings, get_settings
from predik.health.router import router as health_router
from predik.ledger.router import router as ledger_router
from predik.middleware import setup_middleware
from predik.redis_client import close_redis, create_redis
from predik.storage import create_store
from predik.storage.base import LedgerStore
from predik.tasks.router import router as tasks_router
from predik.transactions.router import router as transactions_router
from predik.users.router import router as users_router
from predik.utils.router import router as utils_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the store and Redis on startup unless they were injected, and close them on shutdown."""
    settings: Settings = app.state.settings
    owns_store = app.state.store is None
    if owns_store:
        app.state.store = create_store(settings)
    app.state.redis = create_redis(settings.redis_url)
    logger.info("startup", storage_backend=settings.storage_backend, environment=settings.environment)

    yield

    await close_redis(app.state.redis)
    app.state.redis = None
    if owns_store:
        await app.state.store.close()
        app.state.store = None


def create_app(settings: Settings | None = None, store: LedgerStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Predik Engagement API",
        description="XP, tasks, leaderboards and staking bookkeeping for the Predik platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.redis = None

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(ledger_router)
    app.include_router(tasks_router)
    app.include_router(users_router)
    app.include_router(transactions_router)
    app.include_router(utils_router)

    return app


app = create_app()
