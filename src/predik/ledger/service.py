"""Engagement ledger: task completion, XP, leaderboards and reward tiers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from predik.errors import CooldownActiveError, DuplicateCompletionError, NotFoundError, ValidationError
from predik.ledger.levels import level_for_xp
from predik.ledger.tiers import NONE, classify_tier, percentile
from predik.ledger.timeframes import ALLTIME, DAILY, TIMEFRAMES, WEEKLY, build_window, normalize_timeframe
from predik.storage.base import (
    LeaderboardSummary,
    LedgerStore,
    RankedEntry,
    TaskRecord,
    UserRecord,
    XPGainer,
)

logger = structlog.get_logger()

SURROUNDING_RANKS = 2
SEARCH_LIMIT = 10
TOP_GAINERS_LIMIT = 5


@dataclass
class TaskCompletionResult:
    task_id: int
    xp_earned: int
    new_total_xp: int
    new_level: int
    leveled_up: bool
    message: str
    already_completed: bool = False


@dataclass
class LeaderboardPage:
    entries: list[RankedEntry]
    total_count: int
    timeframe: str


@dataclass
class RankResult:
    wallet_address: str
    timeframe: str
    ranked: bool
    username: str
    level: int
    xp: int
    predictions: int = 0
    correct_predictions: int = 0
    rank: int | None = None
    total_users: int | None = None
    percentile: int | None = None
    surrounding: list[RankedEntry] = field(default_factory=list)


@dataclass
class LeaderboardStats:
    timeframes: dict[str, LeaderboardSummary]
    top_gainers: list[XPGainer]


@dataclass
class RewardTierResult:
    eligible: bool
    tier: str
    reward: int
    timeframe: str
    rank: int | None = None
    total_users: int | None = None
    percentile: int | None = None
    reason: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Task completion
# ---------------------------------------------------------------------------


def _already_completed(task: TaskRecord, user: UserRecord) -> TaskCompletionResult:
    return TaskCompletionResult(
        task_id=task.id,
        xp_earned=0,
        new_total_xp=user.xp,
        new_level=user.level,
        leveled_up=False,
        message="Task already completed",
        already_completed=True,
    )


def _check_cooldown(task: TaskRecord, last_completed_at: datetime, now: datetime) -> None:
    if not task.repeat_cooldown_hours:
        return
    cooldown = timedelta(hours=task.repeat_cooldown_hours)
    elapsed = now - last_completed_at
    if elapsed < cooldown:
        hours_remaining = math.ceil((cooldown - elapsed) / timedelta(hours=1))
        raise CooldownActiveError(hours_remaining)


async def complete_task(
    store: LedgerStore,
    wallet_address: str,
    task_id: int,
    verification_data: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> TaskCompletionResult:
    """Record a task completion and grant its XP.

    Completion row, history row (repeatable tasks), XP/level update and XP
    transaction are written in one store transaction; any failure leaves
    none of them behind. The user row is locked for the XP read-modify-write.

    Raises NotFoundError, ValidationError or CooldownActiveError.
    """
    now = now or _utcnow()

    try:
        async with store.transaction() as tx:
            user = await tx.get_user(wallet_address, for_update=True)
            if user is None:
                msg = "User not found"
                raise NotFoundError(msg)

            task = await tx.get_task(task_id)
            if task is None:
                msg = "Task not found"
                raise NotFoundError(msg)

            if task.requires_verification and verification_data is None:
                msg = "This task requires verification data"
                raise ValidationError(msg)

            existing = await tx.get_completion(user.id, task.id)
            if existing is not None and not task.is_repeatable:
                return _already_completed(task, user)

            if existing is not None:
                _check_cooldown(task, existing.completed_at, now)
                await tx.refresh_completion(existing.id, verification_data, now)
            else:
                await tx.insert_completion(user.id, task.id, verification_data, now)

            if task.is_repeatable:
                await tx.insert_history(user.id, task.id, task.xp, now)

            new_xp = user.xp + task.xp
            new_level = level_for_xp(new_xp)
            await tx.set_user_xp(user.id, new_xp, new_level, now)
            await tx.insert_xp_transaction(user.id, task.xp, "task", task.id, f"Completed: {task.title}", now)
    except DuplicateCompletionError:
        # A concurrent request inserted the completion first; ours rolled back.
        logger.info("task_completion_race", wallet_address=wallet_address, task_id=task_id)
        async with store.reader() as reader:
            user = await reader.get_user(wallet_address)
            task = await reader.get_task(task_id)
        if user is None or task is None:
            raise
        return _already_completed(task, user)

    leveled_up = new_level > user.level
    logger.info(
        "task_completed",
        wallet_address=wallet_address,
        task_id=task.id,
        xp_earned=task.xp,
        new_total_xp=new_xp,
    )
    if leveled_up:
        logger.info("level_up", wallet_address=wallet_address, old_level=user.level, new_level=new_level)
        message = f"Congratulations! You've reached level {new_level}!"
    else:
        message = f"Task completed! You earned {task.xp} XP."

    return TaskCompletionResult(
        task_id=task.id,
        xp_earned=task.xp,
        new_total_xp=new_xp,
        new_level=new_level,
        leveled_up=leveled_up,
        message=message,
    )


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


async def list_leaderboard(
    store: LedgerStore,
    timeframe: str | None = DAILY,
    limit: int = 10,
    offset: int = 0,
    *,
    require_activity: bool = False,
    now: datetime | None = None,
) -> LeaderboardPage:
    """One page of the leaderboard plus the number of ranked users."""
    timeframe = normalize_timeframe(timeframe)
    window = build_window(timeframe, now or _utcnow(), require_activity=require_activity)
    async with store.reader() as reader:
        entries = await reader.list_ranked(window, limit, offset)
        total = await reader.count_ranked(window)
    return LeaderboardPage(entries=entries, total_count=total, timeframe=timeframe)


async def get_rank(
    store: LedgerStore,
    wallet_address: str,
    timeframe: str | None = DAILY,
    *,
    require_activity: bool = False,
    now: datetime | None = None,
) -> RankResult:
    """Rank, percentile and neighbours of one wallet.

    Raises NotFoundError when the wallet has no user; a user outside the
    window's ranking comes back with ``ranked=False``.
    """
    timeframe = normalize_timeframe(timeframe)
    window = build_window(timeframe, now or _utcnow(), require_activity=require_activity)

    async with store.reader() as reader:
        entry = await reader.get_ranked(window, wallet_address)
        if entry is None:
            user = await reader.get_user(wallet_address)
            if user is None:
                msg = "User not found"
                raise NotFoundError(msg)
            return RankResult(
                wallet_address=wallet_address,
                timeframe=timeframe,
                ranked=False,
                username=user.username,
                level=user.level,
                xp=user.xp,
            )

        total = await reader.count_ranked(window)
        surrounding = await reader.list_ranked_between(
            window,
            max(1, entry.rank - SURROUNDING_RANKS),
            entry.rank + SURROUNDING_RANKS,
        )

    return RankResult(
        wallet_address=entry.wallet_address,
        timeframe=timeframe,
        ranked=True,
        username=entry.username,
        level=entry.level,
        xp=entry.xp,
        predictions=entry.predictions_count,
        correct_predictions=entry.correct_predictions,
        rank=entry.rank,
        total_users=total,
        percentile=percentile(entry.rank, total),
        surrounding=surrounding,
    )


async def search_leaderboard(
    store: LedgerStore,
    query: str,
    timeframe: str | None = DAILY,
    *,
    require_activity: bool = False,
    now: datetime | None = None,
) -> list[RankedEntry]:
    """Ranked users whose username or wallet contains ``query``."""
    query = (query or "").strip()
    if len(query) < 2:
        msg = "Search query must be at least 2 characters"
        raise ValidationError(msg)

    window = build_window(normalize_timeframe(timeframe), now or _utcnow(), require_activity=require_activity)
    async with store.reader() as reader:
        return await reader.search_ranked(window, query, SEARCH_LIMIT)


async def leaderboard_stats(
    store: LedgerStore,
    *,
    require_activity: bool = False,
    now: datetime | None = None,
) -> LeaderboardStats:
    now = now or _utcnow()
    async with store.reader() as reader:
        summaries = {
            name: await reader.summarize_ranked(build_window(name, now, require_activity=require_activity))
            for name in TIMEFRAMES
        }
        gainers = await reader.top_xp_gainers(now - timedelta(hours=24), TOP_GAINERS_LIMIT)
    return LeaderboardStats(timeframes=summaries, top_gainers=gainers)


# ---------------------------------------------------------------------------
# Reward tiers
# ---------------------------------------------------------------------------


async def determine_reward_tier(
    store: LedgerStore,
    wallet_address: str,
    timeframe: str | None = None,
    *,
    require_activity: bool = False,
    now: datetime | None = None,
) -> RewardTierResult:
    """Classify a wallet's rank into a reward tier.

    Defaults to the weekly board; unrecognised timeframes use the all-time board.
    """
    timeframe = WEEKLY if timeframe is None else normalize_timeframe(timeframe, default=ALLTIME)
    window = build_window(timeframe, now or _utcnow(), require_activity=require_activity)

    async with store.reader() as reader:
        entry = await reader.get_ranked(window, wallet_address)
        if entry is None:
            return RewardTierResult(
                eligible=False,
                tier=NONE.name,
                reward=NONE.reward,
                timeframe=timeframe,
                reason="User not ranked on leaderboard",
            )
        total = await reader.count_ranked(window)

    tier = classify_tier(entry.rank, total)
    return RewardTierResult(
        eligible=tier != NONE,
        tier=tier.name,
        reward=tier.reward,
        timeframe=timeframe,
        rank=entry.rank,
        total_users=total,
        percentile=percentile(entry.rank, total),
    )
