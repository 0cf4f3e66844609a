"""Platform utilities: statistics and reward estimates."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from predik.errors import NotFoundError, ValidationError
from predik.storage.base import LedgerStore, PlatformTotals

STAKING_APR = 0.125
PREDICTION_RATE = 1.0
REFERRAL_XP = 100
LEVEL_BONUS_PER_LEVEL = 0.01

REWARD_TYPES = ("staking", "prediction", "referral")


@dataclass
class RewardEstimate:
    wallet_address: str
    reward_type: str
    user_level: int
    reward: float
    details: dict[str, Any] = field(default_factory=dict)


async def platform_statistics(store: LedgerStore) -> PlatformTotals:
    async with store.reader() as reader:
        return await reader.platform_totals()


def level_multiplier(level: int) -> float:
    """One percent bonus per level."""
    return 1 + level * LEVEL_BONUS_PER_LEVEL


def estimate_reward(reward_type: str, level: int, amount: Decimal | float | None) -> tuple[float, dict[str, Any]]:
    """Reward for ``reward_type`` at ``level``, with a breakdown of how it was derived."""
    multiplier = level_multiplier(level)
    level_bonus = f"+{round((multiplier - 1) * 100, 2):g}%"
    value = float(amount or 0)

    if reward_type == "staking":
        rate = STAKING_APR * multiplier
        daily = value * rate / 365
        return daily, {
            "apr": rate * 100,
            "daily_reward": daily,
            "monthly_reward": daily * 30,
            "yearly_reward": value * rate,
            "level_bonus": level_bonus,
        }
    if reward_type == "prediction":
        rate = PREDICTION_RATE * multiplier
        return value * rate, {"rate": rate, "level_bonus": level_bonus}
    if reward_type == "referral":
        reward = REFERRAL_XP * multiplier
        return reward, {"xp_per_referral": reward, "level_bonus": level_bonus}

    msg = f"Unknown reward type. Available types: {', '.join(REWARD_TYPES)}"
    raise ValidationError(msg)


async def calculate_rewards(
    store: LedgerStore,
    wallet_address: str,
    amount: Decimal | float | None = None,
    reward_type: str = "staking",
) -> RewardEstimate:
    if not wallet_address:
        msg = "Wallet address is required"
        raise ValidationError(msg)

    async with store.reader() as reader:
        user = await reader.get_user(wallet_address)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)

    level = user.level or 1
    reward, details = estimate_reward(reward_type, level, amount)
    return RewardEstimate(
        wallet_address=wallet_address,
        reward_type=reward_type,
        user_level=level,
        reward=reward,
        details=details,
    )
