"""Task catalogue endpoints. Mutations require the admin token."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from predik.dependencies import get_store, require_admin
from predik.storage.base import LedgerStore
from predik.tasks import service
from predik.tasks.schemas import (
    CompletionReviewRequest,
    CompletionReviewResponse,
    RecentCompletionEntry,
    TaskBulkUpdateRequest,
    TaskBulkUpdateResponse,
    TaskCreateRequest,
    TaskDeleteResponse,
    TaskResponse,
    TaskStatEntry,
    TaskStatsResponse,
)

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])


@router.get("", response_model=list[TaskResponse])
async def list_tasks(store: LedgerStore = Depends(get_store)) -> list[TaskResponse]:
    return [TaskResponse.from_record(t) for t in await service.list_tasks(store)]


@router.get("/stats", response_model=TaskStatsResponse)
async def task_stats(store: LedgerStore = Depends(get_store)) -> TaskStatsResponse:
    """Completion counts per task and the most recent completions."""
    stats = await service.task_statistics(store)
    return TaskStatsResponse(
        task_stats=[
            TaskStatEntry(
                id=s.task_id,
                title=s.title,
                completion_count=s.completion_count,
                xp=s.xp,
                difficulty=s.difficulty,
                task_type=s.task_type,
            )
            for s in stats.task_stats
        ],
        recent_completions=[
            RecentCompletionEntry(
                username=c.username,
                wallet_address=c.wallet_address,
                task_title=c.task_title,
                task_id=c.task_id,
                completed_at=c.completed_at,
            )
            for c in stats.recent_completions
        ],
    )


# ── Admin ──


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_task(
    body: TaskCreateRequest,
    store: LedgerStore = Depends(get_store),
) -> TaskResponse:
    task = await service.create_task(
        store,
        title=body.title,
        description=body.description,
        xp=body.xp,
        difficulty=body.difficulty,
        task_type=body.task_type,
        requires_verification=body.requires_verification,
        is_repeatable=body.is_repeatable,
        repeat_cooldown_hours=body.repeat_cooldown_hours,
    )
    return TaskResponse.from_record(task)


@router.patch("", response_model=TaskBulkUpdateResponse, dependencies=[Depends(require_admin)])
async def update_tasks(
    body: TaskBulkUpdateRequest,
    store: LedgerStore = Depends(get_store),
) -> TaskBulkUpdateResponse:
    """Partially update several tasks at once."""
    updated = await service.update_tasks(store, [(patch.id, patch.changes()) for patch in body.tasks])
    return TaskBulkUpdateResponse(
        updated_count=len(updated),
        tasks=[TaskResponse.from_record(t) for t in updated],
    )


@router.patch(
    "/completions",
    response_model=CompletionReviewResponse,
    dependencies=[Depends(require_admin)],
)
async def review_completions(
    body: CompletionReviewRequest,
    store: LedgerStore = Depends(get_store),
) -> CompletionReviewResponse:
    affected = await service.review_completions(store, body.completion_ids, body.action)
    return CompletionReviewResponse(action=body.action, affected=affected)


@router.delete("/{task_id}", response_model=TaskDeleteResponse, dependencies=[Depends(require_admin)])
async def delete_task(
    task_id: int,
    store: LedgerStore = Depends(get_store),
) -> TaskDeleteResponse:
    await service.delete_task(store, task_id)
    return TaskDeleteResponse(message=f"Task {task_id} has been deleted")
