"""User management business logic."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import structlog

from predik.errors import NotFoundError, ValidationError
from predik.ledger.levels import level_for_xp
from predik.storage.base import (
    CompletedTask,
    LedgerStore,
    StoreSession,
    UserRecord,
    UserTaskStatus,
    XPTransactionRecord,
)
from predik.utils.address import is_evm_address

logger = structlog.get_logger()

DEFAULT_PREFERRED_ASSETS = ["MATIC", "ETH", "BTC"]
DEFAULT_TRADING_TYPE = "Spot"

# Patch field -> users column. Nothing outside this mapping is ever written.
PATCHABLE_COLUMNS: dict[str, str] = {
    "username": "username",
    "bio": "bio",
    "occupation": "occupation",
    "quote": "quote",
    "preferred_assets": "preferred_assets",
    "trading_type": "trading_type",
    "email": "email",
    "email_verified": "email_verified",
    "xp": "xp",
}
_NOT_NULL = frozenset({"username", "email_verified", "xp"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_username(wallet_address: str) -> str:
    return f"PREDIK_{wallet_address[2:6]}"


async def _require_user(session: StoreSession, wallet_address: str, *, for_update: bool = False) -> UserRecord:
    user = await session.get_user(wallet_address, for_update=for_update)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


async def create_user(store: LedgerStore, wallet_address: str, username: str | None = None) -> UserRecord:
    """
    Create a user with default profile settings.

    Raises:
        ValidationError: If the wallet address is not an EVM address.
        ConflictError: If a user with this wallet already exists.
    """
    if not is_evm_address(wallet_address):
        msg = "Invalid wallet address"
        raise ValidationError(msg)

    async with store.transaction() as tx:
        user = await tx.insert_user(
            wallet_address,
            username or default_username(wallet_address),
            list(DEFAULT_PREFERRED_ASSETS),
            DEFAULT_TRADING_TYPE,
            _utcnow(),
        )
    logger.info("user_created", wallet_address=wallet_address, user_id=user.id)
    return user


async def get_user(store: LedgerStore, wallet_address: str) -> UserRecord:
    async with store.reader() as reader:
        return await _require_user(reader, wallet_address)


async def list_users(store: LedgerStore, limit: int = 50, offset: int = 0) -> list[UserRecord]:
    async with store.reader() as reader:
        return await reader.list_users(limit, offset)


async def search_users(store: LedgerStore, query: str, limit: int = 10) -> list[UserRecord]:
    query = (query or "").strip()
    if len(query) < 3:
        msg = "Search query must be at least 3 characters"
        raise ValidationError(msg)
    async with store.reader() as reader:
        return await reader.search_users(query, limit)


async def replace_profile(
    store: LedgerStore,
    wallet_address: str,
    username: str,
    bio: str | None = None,
    occupation: str | None = None,
    quote: str | None = None,
    preferred_assets: list[str] | None = None,
    trading_type: str | None = None,
) -> UserRecord:
    """Overwrite the editable profile; omitted optional fields are cleared."""
    if not username:
        msg = "Username is required"
        raise ValidationError(msg)

    async with store.transaction() as tx:
        user = await _require_user(tx, wallet_address)
        return await tx.update_user(
            user.id,
            {
                "username": username,
                "bio": bio or None,
                "occupation": occupation or None,
                "quote": quote or None,
                "preferred_assets": list(preferred_assets or []),
                "trading_type": trading_type or DEFAULT_TRADING_TYPE,
            },
            _utcnow(),
        )


async def patch_user(store: LedgerStore, wallet_address: str, changes: Mapping[str, Any]) -> UserRecord:
    """
    Apply a partial update. Only keys present in ``changes`` are written.

    Setting ``xp`` recomputes ``level`` and books the difference as an
    ``admin_adjustment`` XP transaction; ``level`` itself is not patchable.

    Raises:
        NotFoundError: If the user does not exist.
        ValidationError: On an unknown field or a null for a required column.
    """
    unknown = set(changes) - set(PATCHABLE_COLUMNS)
    if unknown:
        msg = f"Unsupported fields: {', '.join(sorted(unknown))}"
        raise ValidationError(msg)
    for name in _NOT_NULL & set(changes):
        if changes[name] is None:
            msg = f"{name} cannot be null"
            raise ValidationError(msg)

    columns = {PATCHABLE_COLUMNS[name]: value for name, value in changes.items()}
    if "xp" in columns:
        if columns["xp"] < 0:
            msg = "xp cannot be negative"
            raise ValidationError(msg)
        columns["level"] = level_for_xp(columns["xp"])

    now = _utcnow()
    async with store.transaction() as tx:
        user = await _require_user(tx, wallet_address, for_update="xp" in columns)
        if not columns:
            return user
        # Keep the ledger summing to users.xp.
        delta = columns.get("xp", user.xp) - user.xp
        updated = await tx.update_user(user.id, columns, now)
        if delta:
            await tx.insert_xp_transaction(user.id, delta, "admin_adjustment", None, "Manual XP adjustment", now)

    logger.info("user_patched", wallet_address=wallet_address, fields=sorted(changes))
    return updated


async def delete_user(store: LedgerStore, wallet_address: str, *, confirmed: bool) -> None:
    """Delete a user and every dependent row in one transaction."""
    if not confirmed:
        msg = "Confirmation required. Add ?confirmed=true to confirm deletion"
        raise ValidationError(msg)

    async with store.transaction() as tx:
        user = await _require_user(tx, wallet_address)
        await tx.delete_user(user.id)
    logger.info("user_deleted", wallet_address=wallet_address, user_id=user.id)


# ---------------------------------------------------------------------------
# Per-user task views
# ---------------------------------------------------------------------------


async def list_user_tasks(store: LedgerStore, wallet_address: str) -> list[UserTaskStatus]:
    async with store.reader() as reader:
        user = await _require_user(reader, wallet_address)
        return await reader.list_user_tasks(user.id)


async def list_completed_tasks(
    store: LedgerStore,
    wallet_address: str,
    limit: int = 20,
    offset: int = 0,
) -> list[CompletedTask]:
    async with store.reader() as reader:
        user = await _require_user(reader, wallet_address)
        return await reader.list_completed_tasks(user.id, limit, offset)


async def reset_user_tasks(store: LedgerStore, wallet_address: str) -> None:
    """Forget a user's completions and history. XP already granted is kept."""
    async with store.transaction() as tx:
        user = await _require_user(tx, wallet_address)
        await tx.reset_user_tasks(user.id)
    logger.info("user_tasks_reset", wallet_address=wallet_address)


async def xp_history(
    store: LedgerStore,
    wallet_address: str,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[XPTransactionRecord], int]:
    """The user's XP transactions, newest first, plus their total count."""
    async with store.reader() as reader:
        user = await _require_user(reader, wallet_address)
        entries = await reader.list_xp_transactions(user.id, limit, offset)
        total = await reader.count_xp_transactions(user.id)
    return entries, total
