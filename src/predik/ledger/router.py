"""Task completion and leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from predik.config import Settings
from predik.dependencies import get_app_settings, get_store
from predik.errors import NotFoundError
from predik.ledger import service
from predik.ledger.schemas import (
    LeaderboardEntry,
    LeaderboardResponse,
    LeaderboardSearchRequest,
    LeaderboardSearchResponse,
    LeaderboardStatsResponse,
    RankedUserResponse,
    RewardTierResponse,
    TaskCompleteRequest,
    TaskCompleteResponse,
    TimeframeSummary,
    UnrankedUserResponse,
    XPGainerEntry,
)
from predik.schemas import Pagination
from predik.storage.base import LedgerStore, RankedEntry

router = APIRouter(prefix="/api/v1", tags=["Ledger"])


def _entry(row: RankedEntry, wallet_address: str | None = None) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=row.rank,
        user=row.username,
        wallet_address=row.wallet_address,
        level=row.level,
        xp=row.xp,
        predictions=row.predictions_count,
        correct_predictions=row.correct_predictions,
        is_you=row.wallet_address == wallet_address,
    )


# ── Task completion ──


@router.post("/tasks/complete", response_model=TaskCompleteResponse)
async def complete_task(
    body: TaskCompleteRequest,
    store: LedgerStore = Depends(get_store),
) -> TaskCompleteResponse:
    """Complete a task and grant its XP."""
    result = await service.complete_task(store, body.wallet_address, body.task_id, body.verification_data)
    return TaskCompleteResponse(
        task_id=result.task_id,
        xp_earned=result.xp_earned,
        new_total_xp=result.new_total_xp,
        new_level=result.new_level,
        leveled_up=result.leveled_up,
        already_completed=result.already_completed,
        message=result.message,
    )


# ── Leaderboard ──


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    timeframe: str = Query("daily"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> LeaderboardResponse:
    page = await service.list_leaderboard(
        store,
        timeframe,
        limit,
        offset,
        require_activity=settings.leaderboard_require_activity,
    )
    return LeaderboardResponse(
        leaderboard=[_entry(row) for row in page.entries],
        pagination=Pagination.build(page.total_count, limit, offset),
        timeframe=page.timeframe,
    )


@router.post("/leaderboard/search", response_model=LeaderboardSearchResponse)
async def search_leaderboard(
    body: LeaderboardSearchRequest,
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> LeaderboardSearchResponse:
    rows = await service.search_leaderboard(
        store,
        body.query,
        body.timeframe,
        require_activity=settings.leaderboard_require_activity,
    )
    results = [_entry(row) for row in rows]
    return LeaderboardSearchResponse(results=results, count=len(results), timeframe=body.timeframe)


@router.get("/leaderboard/stats", response_model=LeaderboardStatsResponse)
async def get_leaderboard_stats(
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> LeaderboardStatsResponse:
    stats = await service.leaderboard_stats(store, require_activity=settings.leaderboard_require_activity)
    return LeaderboardStatsResponse(
        statistics=[
            TimeframeSummary(
                timeframe=name,
                user_count=summary.user_count,
                highest_xp=summary.highest_xp,
                average_xp=summary.average_xp,
            )
            for name, summary in stats.timeframes.items()
        ],
        top_gainers=[
            XPGainerEntry(username=g.username, wallet_address=g.wallet_address, xp_gained=g.xp_gained)
            for g in stats.top_gainers
        ],
    )


@router.get(
    "/leaderboard/rank/{wallet_address}",
    response_model=RankedUserResponse | UnrankedUserResponse,
)
async def get_user_rank(
    wallet_address: str,
    timeframe: str = Query("daily"),
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> RankedUserResponse | UnrankedUserResponse | JSONResponse:
    """Rank of one wallet, distinguishing unknown, unranked and ranked users."""
    try:
        result = await service.get_rank(
            store,
            wallet_address,
            timeframe,
            require_activity=settings.leaderboard_require_activity,
        )
    except NotFoundError as exc:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "reason": exc.reason, "exists": False},
        )

    if not result.ranked:
        return UnrankedUserResponse(
            username=result.username,
            level=result.level,
            xp=result.xp,
            timeframe=result.timeframe,
            wallet_address=result.wallet_address,
        )

    return RankedUserResponse(
        rank=result.rank,
        username=result.username,
        level=result.level,
        xp=result.xp,
        predictions=result.predictions,
        correct_predictions=result.correct_predictions,
        wallet_address=result.wallet_address,
        timeframe=result.timeframe,
        percentile=result.percentile,
        surrounding_users=[_entry(row, wallet_address) for row in result.surrounding],
        total_users=result.total_users,
    )


@router.get("/leaderboard/rewards/{wallet_address}", response_model=RewardTierResponse)
async def get_reward_tier(
    wallet_address: str,
    timeframe: str | None = Query(None),
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> RewardTierResponse:
    result = await service.determine_reward_tier(
        store,
        wallet_address,
        timeframe,
        require_activity=settings.leaderboard_require_activity,
    )
    return RewardTierResponse(
        eligible=result.eligible,
        tier=result.tier,
        reward=result.reward,
        timeframe=result.timeframe,
        rank=result.rank,
        total_users=result.total_users,
        percentile=result.percentile,
        reason=result.reason,
    )
