"""Request/response schemas for the task catalogue."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from predik.schemas import CamelModel
from predik.storage.base import TaskRecord


class TaskResponse(CamelModel):
    id: int
    title: str
    description: str
    xp: int
    difficulty: str
    task_type: str
    requires_verification: bool
    is_repeatable: bool
    repeat_cooldown_hours: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, task: TaskRecord) -> TaskResponse:
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
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskCreateRequest(CamelModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    xp: int = Field(gt=0)
    difficulty: str = Field(min_length=1, max_length=20)
    task_type: str = Field(min_length=1, max_length=50)
    requires_verification: bool = False
    is_repeatable: bool = False
    repeat_cooldown_hours: int | None = Field(default=None, ge=0)


class TaskPatch(CamelModel):
    id: int
    title: str | None = Field(default=None, max_length=100)
    description: str | None = None
    xp: int | None = Field(default=None, gt=0)
    difficulty: str | None = Field(default=None, max_length=20)
    task_type: str | None = Field(default=None, max_length=50)
    requires_verification: bool | None = None
    is_repeatable: bool | None = None
    repeat_cooldown_hours: int | None = Field(default=None, ge=0)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"id"}, by_alias=False)


class TaskBulkUpdateRequest(CamelModel):
    tasks: list[TaskPatch]


class TaskBulkUpdateResponse(CamelModel):
    success: bool = True
    updated_count: int
    tasks: list[TaskResponse]


class TaskDeleteResponse(CamelModel):
    success: bool = True
    message: str


class TaskStatEntry(CamelModel):
    id: int
    title: str
    completion_count: int
    xp: int
    difficulty: str
    task_type: str


class RecentCompletionEntry(CamelModel):
    username: str
    wallet_address: str
    task_title: str
    task_id: int
    completed_at: datetime


class TaskStatsResponse(CamelModel):
    task_stats: list[TaskStatEntry]
    recent_completions: list[RecentCompletionEntry]


class CompletionReviewRequest(CamelModel):
    completion_ids: list[int]
    action: str


class CompletionReviewResponse(CamelModel):
    success: bool = True
    action: str
    affected: int
