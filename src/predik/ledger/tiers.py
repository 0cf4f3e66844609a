"""Reward tier ladder."""

from __future__ import annotations

import math
from typing import NamedTuple


class RewardTier(NamedTuple):
    name: str
    reward: int


GOLD = RewardTier("gold", 1000)
SILVER = RewardTier("silver", 500)
BRONZE = RewardTier("bronze", 200)
TOP_10_PERCENT = RewardTier("top10percent", 100)
TOP_25_PERCENT = RewardTier("top25percent", 50)
NONE = RewardTier("none", 0)


def percentile(rank: int, total_users: int) -> int:
    """Share of ranked users below ``rank``, rounded half up to a whole percent."""
    if total_users <= 0:
        return 0
    return math.floor((total_users - rank) / total_users * 100 + 0.5)


def classify_tier(rank: int, total_users: int) -> RewardTier:
    """First matching rung wins; percentage cut-offs round up so small boards still qualify someone."""
    if rank == 1:
        return GOLD
    if rank <= 3:
        return SILVER
    if rank <= 10:
        return BRONZE
    if rank <= math.ceil(total_users * 0.10):
        return TOP_10_PERCENT
    if rank <= math.ceil(total_users * 0.25):
        return TOP_25_PERCENT
    return NONE
