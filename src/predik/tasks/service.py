"""Task catalogue administration."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from predik.errors import NotFoundError, ValidationError
from predik.storage.base import LedgerStore, RecentCompletion, TaskRecord, TaskStat

logger = structlog.get_logger()

# Patch field -> tasks column.
TASK_COLUMNS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "xp": "xp",
    "difficulty": "difficulty",
    "task_type": "task_type",
    "requires_verification": "requires_verification",
    "is_repeatable": "is_repeatable",
    "repeat_cooldown_hours": "repeat_cooldown_hours",
}
_NOT_NULL = frozenset(TASK_COLUMNS) - {"repeat_cooldown_hours"}

REVIEW_ACTIONS = ("approve", "reject")


@dataclass
class TaskStatistics:
    task_stats: list[TaskStat]
    recent_completions: list[RecentCompletion]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_values(values: Mapping[str, Any]) -> None:
    for name in _NOT_NULL & set(values):
        if values[name] is None:
            msg = f"{name} cannot be null"
            raise ValidationError(msg)
    if "xp" in values and values["xp"] <= 0:
        msg = "xp must be a positive integer"
        raise ValidationError(msg)


async def list_tasks(store: LedgerStore) -> list[TaskRecord]:
    async with store.reader() as reader:
        return await reader.list_tasks()


async def create_task(
    store: LedgerStore,
    title: str,
    description: str,
    xp: int,
    difficulty: str,
    task_type: str,
    requires_verification: bool = False,
    is_repeatable: bool = False,
    repeat_cooldown_hours: int | None = None,
) -> TaskRecord:
    values = {
        "title": title,
        "description": description,
        "xp": xp,
        "difficulty": difficulty,
        "task_type": task_type,
        "requires_verification": requires_verification,
        "is_repeatable": is_repeatable,
        "repeat_cooldown_hours": repeat_cooldown_hours or None,
    }
    _check_values(values)

    async with store.transaction() as tx:
        task = await tx.insert_task(values, _utcnow())
    logger.info("task_created", task_id=task.id, title=title, xp=xp)
    return task


async def update_tasks(store: LedgerStore, patches: Sequence[tuple[int, Mapping[str, Any]]]) -> list[TaskRecord]:
    """
    Apply partial updates to several tasks in one transaction.

    ``patches`` pairs a task id with the fields to change. Entries with no
    changes are skipped and unknown ids are ignored.
    """
    if not patches:
        msg = "No tasks to update"
        raise ValidationError(msg)

    updates: list[tuple[int, dict[str, Any]]] = []
    for task_id, changes in patches:
        unknown = set(changes) - set(TASK_COLUMNS)
        if unknown:
            msg = f"Unsupported fields: {', '.join(sorted(unknown))}"
            raise ValidationError(msg)
        _check_values(changes)
        if changes:
            updates.append((task_id, {TASK_COLUMNS[name]: value for name, value in changes.items()}))

    updated: list[TaskRecord] = []
    now = _utcnow()
    async with store.transaction() as tx:
        for task_id, columns in updates:
            task = await tx.update_task(task_id, columns, now)
            if task is not None:
                updated.append(task)

    logger.info("tasks_updated", task_ids=[t.id for t in updated])
    return updated


async def delete_task(store: LedgerStore, task_id: int) -> None:
    """Delete a task together with its completions and history."""
    async with store.transaction() as tx:
        if not await tx.delete_task(task_id):
            msg = "Task not found"
            raise NotFoundError(msg)
    logger.info("task_deleted", task_id=task_id)


async def task_statistics(store: LedgerStore, recent_limit: int = 10) -> TaskStatistics:
    async with store.reader() as reader:
        return TaskStatistics(
            task_stats=await reader.task_stats(),
            recent_completions=await reader.recent_completions(recent_limit),
        )


async def review_completions(store: LedgerStore, completion_ids: Sequence[int], action: str) -> int:
    """
    Approve or reject task completions awaiting review.

    ``approve`` marks the verification payload as admin-verified; ``reject``
    deletes the completion without taking back the XP it granted.
    Returns the number of completions affected.
    """
    if not completion_ids:
        msg = "No completion ids provided"
        raise ValidationError(msg)
    if action not in REVIEW_ACTIONS:
        msg = f"Invalid action: {action}"
        raise ValidationError(msg)

    async with store.transaction() as tx:
        if action == "approve":
            affected = await tx.approve_completions(completion_ids)
        else:
            affected = await tx.reject_completions(completion_ids)

    logger.info("completions_reviewed", action=action, affected=affected)
    return affected
