"""Leaderboard timeframes and the windows they select."""

from __future__ import annotations

from datetime import datetime, timedelta

from predik.storage.base import LeaderboardWindow

DAILY = "daily"
WEEKLY = "weekly"
ALLTIME = "alltime"

TIMEFRAMES = (DAILY, WEEKLY, ALLTIME)

_WINDOW_LENGTH: dict[str, timedelta | None] = {
    DAILY: timedelta(hours=24),
    WEEKLY: timedelta(days=7),
    ALLTIME: None,
}


def normalize_timeframe(value: str | None, default: str = DAILY) -> str:
    """Lower-case ``value`` and fall back to ``default`` when it isn't a known timeframe."""
    if value is None:
        return default
    value = value.strip().lower()
    return value if value in TIMEFRAMES else default


def build_window(timeframe: str, now: datetime, *, require_activity: bool = False) -> LeaderboardWindow:
    """Window for ``timeframe`` ending at ``now``.

    The all-time board always ranks every user, whatever ``require_activity`` says.
    """
    length = _WINDOW_LENGTH[timeframe]
    if length is None:
        return LeaderboardWindow(name=timeframe, since=None, require_activity=False)
    return LeaderboardWindow(name=timeframe, since=now - length, require_activity=require_activity)
