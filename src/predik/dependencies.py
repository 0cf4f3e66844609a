"""FastAPI dependencies shared across routers."""

from __future__ import annotations

import secrets

from fastapi import Header, Request

from predik.config import Settings
from predik.errors import UnauthorizedError
from predik.storage.base import LedgerStore


def get_store(request: Request) -> LedgerStore:
    """The ledger store owned by the running application."""
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def require_admin(
    request: Request,
    x_admin_token: str | None = Header(default=None),
) -> None:
    """Reject the request unless ``X-Admin-Token`` matches the configured admin token."""
    expected: str = request.app.state.settings.admin_token
    if not expected or not x_admin_token or not secrets.compare_digest(x_admin_token.encode(), expected.encode()):
        msg = "Admin token missing or invalid"
        raise UnauthorizedError(msg)
