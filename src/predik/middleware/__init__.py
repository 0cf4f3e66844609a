"""Middleware registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from predik.config import Settings
from predik.middleware.error_handler import setup_error_handlers
from predik.middleware.logging import AccessLogMiddleware, setup_logging
from predik.middleware.rate_limit import RateLimitMiddleware
from predik.middleware.request_id import RequestIdMiddleware

# Headers the dashboard reads off responses, including 429s from the rate limiter.
EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install handlers and middleware.

    Added last runs first, so the stack from the outside in is
    CORS, request id, access log, rate limit.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=EXPOSED_HEADERS,
    )
