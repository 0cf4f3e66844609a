"""structlog configuration and per-request access logging."""

from __future__ import annotations

import logging
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from predik.config import Settings

logger = structlog.get_logger()

# Health checks are polled constantly; logging them drowns the access log.
_QUIET_PATHS = frozenset({"/health", "/ready"})


def _service_context(settings: Settings) -> structlog.types.Processor:
    static = {"service": "predik-api", "environment": settings.environment, "app_version": settings.app_version}

    def add_service_context(
        _logger: structlog.types.WrappedLogger, _method: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        for key, value in static.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_context


def setup_logging(settings: Settings) -> None:
    """Configure structlog; events below ``settings.log_level`` are dropped before rendering."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    min_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _service_context(settings),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One ``request_finished`` event per request, carrying status and latency."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "request_finished",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        return response
