"""Tests for health, readiness and version endpoints."""

import pytest
from conftest import make_settings
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from predik.main import create_app
from predik.storage.memory import MemoryLedgerStore


class _DownRedis:
    async def ping(self):
        raise RedisConnectionError("connection refused")


class _UpRedis:
    async def ping(self):
        return True


def _client(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_ready_without_redis(client):
    resp = await client.get("/ready")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ready", "checks": {"database": "ok", "redis": "disabled"}}


@pytest.mark.asyncio
async def test_ready_with_redis():
    app = create_app(make_settings(), store=MemoryLedgerStore())
    app.state.redis = _UpRedis()
    async with _client(app) as ac:
        resp = await ac.get("/ready")
    assert resp.json()["checks"]["redis"] == "ok"


@pytest.mark.asyncio
async def test_ready_degraded_when_redis_down():
    app = create_app(make_settings(), store=MemoryLedgerStore())
    app.state.redis = _DownRedis()
    async with _client(app) as ac:
        resp = await ac.get("/ready")
    assert resp.status_code == 503
    assert resp.json()["status"] == "degraded"
    assert resp.json()["checks"]["redis"].startswith("error")


@pytest.mark.asyncio
async def test_version():
    app = create_app(make_settings(app_version="9.9.9", environment="staging"), store=MemoryLedgerStore())
    async with _client(app) as ac:
        resp = await ac.get("/version")
    assert resp.json() == {"version": "9.9.9", "environment": "staging"}


@pytest.mark.asyncio
async def test_lifespan_builds_memory_store():
    app = create_app(make_settings())
    async with app.router.lifespan_context(app):
        assert isinstance(app.state.store, MemoryLedgerStore)
        assert app.state.redis is None
    assert app.state.store is None
