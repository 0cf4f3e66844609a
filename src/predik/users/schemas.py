"""Request/response schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from predik.ledger.levels import compute_level
from predik.schemas import CamelModel, Pagination
from predik.storage.base import TaskRecord, UserRecord


class UserResponse(CamelModel):
    id: int
    wallet_address: str
    username: str
    bio: str | None = None
    occupation: str | None = None
    quote: str | None = None
    preferred_assets: list[str] | None = None
    trading_type: str | None = None
    email: str | None = None
    email_verified: bool = False
    xp: int
    level: int
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_level_xp: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, user: UserRecord) -> UserResponse:
        level_info = compute_level(user.xp)
        return cls(
            id=user.id,
            wallet_address=user.wallet_address,
            username=user.username,
            bio=user.bio,
            occupation=user.occupation,
            quote=user.quote,
            preferred_assets=user.preferred_assets,
            trading_type=user.trading_type,
            email=user.email,
            email_verified=user.email_verified,
            xp=user.xp,
            level=user.level,
            xp_into_level=level_info["xp_into_level"],
            xp_for_level=level_info["xp_for_level"],
            next_level=level_info["next_level"],
            next_level_xp=level_info["next_level_xp"],
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserCreateRequest(CamelModel):
    wallet_address: str = Field(min_length=1)
    username: str | None = Field(default=None, max_length=50)


class ProfileReplaceRequest(CamelModel):
    username: str | None = Field(default=None, max_length=50)
    bio: str | None = None
    occupation: str | None = Field(default=None, max_length=100)
    quote: str | None = None
    preferred_assets: list[str] | None = None
    trading_type: str | None = Field(default=None, max_length=20)


class UserPatch(CamelModel):
    """Partial profile update; only fields present in the body are applied."""

    username: str | None = Field(default=None, min_length=1, max_length=50)
    bio: str | None = None
    occupation: str | None = Field(default=None, max_length=100)
    quote: str | None = None
    preferred_assets: list[str] | None = None
    trading_type: str | None = Field(default=None, max_length=20)
    email: str | None = Field(default=None, max_length=100)
    email_verified: bool | None = None
    xp: int | None = Field(default=None, ge=0)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, by_alias=False)


class DeleteUserResponse(CamelModel):
    message: str


class UserTaskResponse(CamelModel):
    id: int
    title: str
    description: str
    xp: int
    difficulty: str
    task_type: str
    requires_verification: bool
    is_repeatable: bool
    repeat_cooldown_hours: int | None = None
    completed: bool = False
    completed_at: datetime | None = None

    @classmethod
    def from_task(cls, task: TaskRecord, completed: bool, completed_at: datetime | None) -> UserTaskResponse:
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            xp=task.xp,
            difficulty=task.difficulty,
            task_type=task.task_type,
            requires_verification=task.requires_verification,
            is_repeatable=task.is_repeatable,
            repeat_cooldown_hours=task.repeat_cooldown_hours,
            completed=completed,
            completed_at=completed_at,
        )


class UserTaskCompleteRequest(CamelModel):
    task_id: int
    verification_data: dict[str, Any] | None = None


class XPHistoryEntry(CamelModel):
    id: int
    amount: int
    source: str
    source_id: int | None = None
    description: str | None = None
    created_at: datetime


class XPHistoryResponse(CamelModel):
    entries: list[XPHistoryEntry]
    pagination: Pagination
