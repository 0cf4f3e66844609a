"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from predik.config import Settings
from predik.dependencies import get_app_settings, get_store
from predik.storage.base import LedgerStore

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    request: Request,
    store: LedgerStore = Depends(get_store),  # noqa: B008
) -> JSONResponse:
    """Readiness probe: checks the store and, when configured, Redis."""
    checks: dict[str, str] = {}

    try:
        async with store.reader() as reader:
            checks["database"] = "ok" if await reader.ping() else "error: ping failed"
    except Exception as exc:  # noqa: BLE001
        checks["database"] = f"error: {type(exc).__name__}"

    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except (RedisError, OSError) as exc:
            checks["redis"] = f"error: {type(exc).__name__}"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ready" if all_ok else "degraded", "checks": checks},
    )


@router.get("/version")
async def version(settings: Settings = Depends(get_app_settings)) -> dict[str, str]:  # noqa: B008
    """Return API version and environment."""
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
