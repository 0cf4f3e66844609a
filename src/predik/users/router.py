"""User management router: all /api/v1/users/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from predik.dependencies import get_store, require_admin
from predik.ledger import service as ledger
from predik.ledger.schemas import TaskCompleteResponse
from predik.schemas import Pagination
from predik.storage.base import LedgerStore
from predik.users import service
from predik.users.schemas import (
    DeleteUserResponse,
    ProfileReplaceRequest,
    UserCreateRequest,
    UserPatch,
    UserResponse,
    UserTaskCompleteRequest,
    UserTaskResponse,
    XPHistoryEntry,
    XPHistoryResponse,
)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("", response_model=list[UserResponse])
async def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    store: LedgerStore = Depends(get_store),
) -> list[UserResponse]:
    """Users ordered by XP, highest first."""
    users = await service.list_users(store, limit, offset)
    return [UserResponse.from_record(u) for u in users]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateRequest,
    store: LedgerStore = Depends(get_store),
) -> UserResponse:
    user = await service.create_user(store, body.wallet_address, body.username)
    return UserResponse.from_record(user)


@router.get("/search", response_model=list[UserResponse])
async def search_users(
    q: str = Query(""),
    limit: int = Query(10, ge=1, le=50),
    store: LedgerStore = Depends(get_store),
) -> list[UserResponse]:
    users = await service.search_users(store, q, limit)
    return [UserResponse.from_record(u) for u in users]


@router.get("/{wallet_address}", response_model=UserResponse)
async def get_user(
    wallet_address: str,
    store: LedgerStore = Depends(get_store),
) -> UserResponse:
    return UserResponse.from_record(await service.get_user(store, wallet_address))


@router.put("/{wallet_address}", response_model=UserResponse)
async def replace_profile(
    wallet_address: str,
    body: ProfileReplaceRequest,
    store: LedgerStore = Depends(get_store),
) -> UserResponse:
    """Replace the editable profile fields."""
    user = await service.replace_profile(
        store,
        wallet_address,
        username=body.username or "",
        bio=body.bio,
        occupation=body.occupation,
        quote=body.quote,
        preferred_assets=body.preferred_assets,
        trading_type=body.trading_type,
    )
    return UserResponse.from_record(user)


@router.patch("/{wallet_address}", response_model=UserResponse)
async def patch_user(
    wallet_address: str,
    body: UserPatch,
    store: LedgerStore = Depends(get_store),
) -> UserResponse:
    """Update only the fields present in the body."""
    user = await service.patch_user(store, wallet_address, body.changes())
    return UserResponse.from_record(user)


@router.delete("/{wallet_address}", response_model=DeleteUserResponse)
async def delete_user(
    wallet_address: str,
    confirmed: bool = Query(False),
    store: LedgerStore = Depends(get_store),
) -> DeleteUserResponse:
    await service.delete_user(store, wallet_address, confirmed=confirmed)
    return DeleteUserResponse(message=f"User {wallet_address} has been deleted")


# ── Tasks for one user ──


@router.get("/{wallet_address}/tasks", response_model=list[UserTaskResponse])
async def list_user_tasks(
    wallet_address: str,
    store: LedgerStore = Depends(get_store),
) -> list[UserTaskResponse]:
    """Every task with this user's completion status."""
    statuses = await service.list_user_tasks(store, wallet_address)
    return [UserTaskResponse.from_task(s.task, s.completed, s.completed_at) for s in statuses]


@router.post("/{wallet_address}/tasks", response_model=TaskCompleteResponse)
async def complete_user_task(
    wallet_address: str,
    body: UserTaskCompleteRequest,
    store: LedgerStore = Depends(get_store),
) -> TaskCompleteResponse:
    result = await ledger.complete_task(store, wallet_address, body.task_id, body.verification_data)
    return TaskCompleteResponse(
        task_id=result.task_id,
        xp_earned=result.xp_earned,
        new_total_xp=result.new_total_xp,
        new_level=result.new_level,
        leveled_up=result.leveled_up,
        already_completed=result.already_completed,
        message=result.message,
    )


@router.delete(
    "/{wallet_address}/tasks",
    response_model=DeleteUserResponse,
    dependencies=[Depends(require_admin)],
)
async def reset_user_tasks(
    wallet_address: str,
    store: LedgerStore = Depends(get_store),
) -> DeleteUserResponse:
    await service.reset_user_tasks(store, wallet_address)
    return DeleteUserResponse(message=f"Task progress reset for {wallet_address}")


@router.get("/{wallet_address}/tasks/completed", response_model=list[UserTaskResponse])
async def list_completed_tasks(
    wallet_address: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: LedgerStore = Depends(get_store),
) -> list[UserTaskResponse]:
    completed = await service.list_completed_tasks(store, wallet_address, limit, offset)
    return [UserTaskResponse.from_task(c.task, True, c.completed_at) for c in completed]


@router.get("/{wallet_address}/xp/history", response_model=XPHistoryResponse)
async def get_xp_history(
    wallet_address: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: LedgerStore = Depends(get_store),
) -> XPHistoryResponse:
    entries, total = await service.xp_history(store, wallet_address, limit, offset)
    return XPHistoryResponse(
        entries=[
            XPHistoryEntry(
                id=e.id,
                amount=e.amount,
                source=e.source,
                source_id=e.source_id,
                description=e.description,
                created_at=e.created_at,
            )
            for e in entries
        ],
        pagination=Pagination.build(total, limit, offset),
    )
