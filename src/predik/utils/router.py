"""Utility endpoints: /api/v1/utils."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import Field
from pydantic.alias_generators import to_camel

from predik.dependencies import get_store
from predik.schemas import CamelModel
from predik.storage.base import LedgerStore
from predik.utils import service
from predik.utils.address import is_evm_address

router = APIRouter(prefix="/api/v1/utils", tags=["Utils"])


class UserTotals(CamelModel):
    total: int
    total_xp: int


class CompletionTotals(CamelModel):
    total_completions: int
    unique_users: int
    unique_tasks: int


class TransactionTypeTotals(CamelModel):
    type: str
    count: int
    total_amount: float


class StatisticsResponse(CamelModel):
    users: UserTotals
    tasks: CompletionTotals
    transactions: list[TransactionTypeTotals]
    timestamp: datetime


class ValidateAddressRequest(CamelModel):
    address: str = Field(min_length=1)


class ValidateAddressResponse(CamelModel):
    address: str
    is_valid: bool
    type: str


class CalculateRewardsRequest(CamelModel):
    wallet_address: str = Field(min_length=1)
    amount: Decimal | None = None
    type: str = "staking"


class CalculateRewardsResponse(CamelModel):
    wallet_address: str
    type: str
    user_level: int
    reward: float
    details: dict[str, Any]


@router.get("/statistics", response_model=StatisticsResponse)
async def statistics(store: LedgerStore = Depends(get_store)) -> StatisticsResponse:
    """Platform-wide totals for users, task completions and transactions."""
    totals = await service.platform_statistics(store)
    return StatisticsResponse(
        users=UserTotals(total=totals.user_count, total_xp=totals.total_xp),
        tasks=CompletionTotals(
            total_completions=totals.total_completions,
            unique_users=totals.unique_completing_users,
            unique_tasks=totals.unique_completed_tasks,
        ),
        transactions=[
            TransactionTypeTotals(type=name, count=count, total_amount=float(amount))
            for name, count, amount in totals.transactions_by_type
        ],
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/validate-address", response_model=ValidateAddressResponse)
async def validate_address(body: ValidateAddressRequest) -> ValidateAddressResponse:
    valid = is_evm_address(body.address)
    return ValidateAddressResponse(address=body.address, is_valid=valid, type="ethereum" if valid else "unknown")


@router.post("/calculate-rewards", response_model=CalculateRewardsResponse)
async def calculate_rewards(
    body: CalculateRewardsRequest,
    store: LedgerStore = Depends(get_store),
) -> CalculateRewardsResponse:
    estimate = await service.calculate_rewards(store, body.wallet_address, body.amount, body.type)
    return CalculateRewardsResponse(
        wallet_address=estimate.wallet_address,
        type=estimate.reward_type,
        user_level=estimate.user_level,
        reward=estimate.reward,
        details={to_camel(key): value for key, value in estimate.details.items()},
    )
