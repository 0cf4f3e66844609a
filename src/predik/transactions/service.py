"""Off-chain bookkeeping of on-chain transactions and staking positions."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog

from predik.config import Settings
from predik.errors import NotFoundError, ValidationError
from predik.storage.base import LedgerStore, TransactionRecord

logger = structlog.get_logger()

STAKE = "stake"
DEACTIVATING_STATUSES = frozenset({"canceled", "reverted"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def list_transactions(
    store: LedgerStore,
    wallet_address: str | None = None,
    transaction_type: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[TransactionRecord], int]:
    """Transactions newest first, optionally filtered, plus the filtered total."""
    async with store.reader() as reader:
        return await reader.list_transactions(wallet_address, transaction_type, limit, offset)


async def create_transaction(
    store: LedgerStore,
    settings: Settings,
    wallet_address: str,
    transaction_type: str,
    transaction_hash: str | None = None,
    amount: Decimal | None = None,
    token_symbol: str | None = None,
    status: str = "pending",
    apr: Decimal | None = None,
    lock_period_days: int | None = None,
) -> TransactionRecord:
    """
    Record a transaction; a stake with an amount also opens a staking position.

    Raises:
        NotFoundError: If the wallet has no user.
        ConflictError: If the transaction hash is already recorded.
    """
    if not wallet_address or not transaction_type:
        msg = "Wallet address and transaction type are required"
        raise ValidationError(msg)

    now = _utcnow()
    async with store.transaction() as tx:
        user = await tx.get_user(wallet_address)
        if user is None:
            msg = "User not found"
            raise NotFoundError(msg)

        record = await tx.insert_transaction(
            user.id,
            transaction_type,
            transaction_hash or None,
            amount,
            token_symbol or None,
            status,
            now,
        )

        if transaction_type == STAKE and amount:
            await tx.insert_staking(
                user.id,
                record.id,
                amount,
                token_symbol or settings.default_stake_token,
                apr if apr is not None else Decimal(str(settings.default_stake_apr)),
                lock_period_days or settings.default_lock_period_days,
                now,
            )

    logger.info(
        "transaction_created",
        wallet_address=wallet_address,
        transaction_type=transaction_type,
        transaction_id=record.id,
    )
    return record


async def update_transaction_status(
    store: LedgerStore,
    transaction_hash: str,
    status: str,
    completed_at: datetime | None = None,
) -> TransactionRecord:
    """
    Move a transaction to ``status``.

    ``completed_at`` defaults to now for completed transactions. Completing a
    stake activates its staking position; cancelling or reverting it
    deactivates the position.
    """
    if not transaction_hash or not status:
        msg = "Transaction hash and status are required"
        raise ValidationError(msg)

    now = _utcnow()
    if completed_at is None and status == "completed":
        completed_at = now

    async with store.transaction() as tx:
        record = await tx.update_transaction_status(transaction_hash, status, completed_at, now)
        if record is None:
            msg = "Transaction not found"
            raise NotFoundError(msg)

        if record.transaction_type == STAKE:
            if status == "completed":
                await tx.set_staking_active(record.id, True)
            elif status in DEACTIVATING_STATUSES:
                await tx.set_staking_active(record.id, False)

    logger.info("transaction_status_updated", transaction_hash=transaction_hash, status=status)
    return record
