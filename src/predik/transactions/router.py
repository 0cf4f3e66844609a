"""Transaction endpoints: /api/v1/transactions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from predik.config import Settings
from predik.dependencies import get_app_settings, get_store
from predik.schemas import Pagination
from predik.storage.base import LedgerStore
from predik.transactions import service
from predik.transactions.schemas import (
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
    TransactionStatusRequest,
)

router = APIRouter(prefix="/api/v1/transactions", tags=["Transactions"])


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    wallet_address: str | None = Query(None, alias="walletAddress"),
    transaction_type: str | None = Query(None, alias="type"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: LedgerStore = Depends(get_store),
) -> TransactionListResponse:
    rows, total = await service.list_transactions(store, wallet_address, transaction_type, limit, offset)
    return TransactionListResponse(
        transactions=[TransactionResponse.from_record(t) for t in rows],
        pagination=Pagination.build(total, limit, offset),
    )


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    body: TransactionCreateRequest,
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> TransactionResponse:
    record = await service.create_transaction(
        store,
        settings,
        wallet_address=body.wallet_address,
        transaction_type=body.transaction_type,
        transaction_hash=body.transaction_hash,
        amount=body.amount,
        token_symbol=body.token_symbol,
        status=body.status,
        apr=body.apr,
        lock_period_days=body.lock_period_days,
    )
    return TransactionResponse.from_record(record)


@router.put("", response_model=TransactionResponse)
async def update_transaction_status(
    body: TransactionStatusRequest,
    store: LedgerStore = Depends(get_store),
) -> TransactionResponse:
    record = await service.update_transaction_status(store, body.transaction_hash, body.status, body.completed_at)
    return TransactionResponse.from_record(record)
