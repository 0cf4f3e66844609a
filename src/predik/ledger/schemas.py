"""Request and response models for task completion and leaderboard endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from predik.schemas import CamelModel, Pagination

# --- Task completion ---


class TaskCompleteRequest(CamelModel):
    wallet_address: str = Field(min_length=1)
    task_id: int
    verification_data: dict[str, Any] | None = None


class TaskCompleteResponse(CamelModel):
    success: bool = True
    task_id: int
    xp_earned: int
    new_total_xp: int
    new_level: int
    leveled_up: bool
    already_completed: bool = False
    message: str


# --- Leaderboard ---


class LeaderboardEntry(CamelModel):
    rank: int
    user: str
    wallet_address: str
    level: int
    xp: int
    predictions: int = 0
    correct_predictions: int = 0
    is_you: bool = False


class LeaderboardResponse(CamelModel):
    leaderboard: list[LeaderboardEntry]
    pagination: Pagination
    timeframe: str


class LeaderboardSearchRequest(CamelModel):
    query: str = ""
    timeframe: str = "daily"


class LeaderboardSearchResponse(CamelModel):
    results: list[LeaderboardEntry]
    count: int
    timeframe: str


class TimeframeSummary(CamelModel):
    timeframe: str
    user_count: int
    highest_xp: int | None = None
    average_xp: float | None = None


class XPGainerEntry(CamelModel):
    username: str
    wallet_address: str
    xp_gained: int


class LeaderboardStatsResponse(CamelModel):
    statistics: list[TimeframeSummary]
    top_gainers: list[XPGainerEntry]


class RankedUserResponse(CamelModel):
    exists: bool = True
    ranked: bool = True
    rank: int
    username: str
    level: int
    xp: int
    predictions: int
    correct_predictions: int
    wallet_address: str
    timeframe: str
    percentile: int
    surrounding_users: list[LeaderboardEntry]
    total_users: int


class UnrankedUserResponse(CamelModel):
    exists: bool = True
    ranked: bool = False
    username: str
    level: int
    xp: int
    predictions: int = 0
    correct_predictions: int = 0
    message: str = "User not yet ranked on leaderboard"
    timeframe: str
    wallet_address: str


class RewardTierResponse(CamelModel):
    eligible: bool
    tier: str
    reward: int
    timeframe: str
    rank: int | None = None
    total_users: int | None = None
    percentile: int | None = None
    reason: str | None = None
