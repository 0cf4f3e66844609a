"""Request/response schemas for transaction endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from predik.schemas import CamelModel, Pagination
from predik.storage.base import TransactionRecord


class TransactionResponse(CamelModel):
    id: int
    wallet_address: str
    username: str
    transaction_type: str
    transaction_hash: str | None = None
    amount: Decimal | None = None
    token_symbol: str | None = None
    status: str
    created_at: datetime
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, tx: TransactionRecord) -> TransactionResponse:
        return cls(
            id=tx.id,
            wallet_address=tx.wallet_address,
            username=tx.username,
            transaction_type=tx.transaction_type,
            transaction_hash=tx.transaction_hash,
            amount=tx.amount,
            token_symbol=tx.token_symbol,
            status=tx.status,
            created_at=tx.created_at,
            completed_at=tx.completed_at,
            updated_at=tx.updated_at,
        )


class TransactionListResponse(CamelModel):
    transactions: list[TransactionResponse]
    pagination: Pagination


class TransactionCreateRequest(CamelModel):
    wallet_address: str = Field(min_length=1)
    transaction_type: str = Field(min_length=1, max_length=50)
    transaction_hash: str | None = Field(default=None, max_length=66)
    amount: Decimal | None = Field(default=None, ge=0)
    token_symbol: str | None = Field(default=None, max_length=10)
    status: str = Field(default="pending", max_length=20)
    apr: Decimal | None = Field(default=None, ge=0)
    lock_period_days: int | None = Field(default=None, ge=0)


class TransactionStatusRequest(CamelModel):
    transaction_hash: str = Field(min_length=1)
    status: str = Field(min_length=1, max_length=20)
    completed_at: datetime | None = None
