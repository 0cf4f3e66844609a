"""Level thresholds and computation.

Levels are linear: every 300 XP is one level, starting at level 1.
"""

from __future__ import annotations

XP_PER_LEVEL = 300


def level_for_xp(total_xp: int) -> int:
    """Level reached with ``total_xp`` (``xp // 300 + 1``)."""
    return max(total_xp, 0) // XP_PER_LEVEL + 1


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP, including progress to the next level."""
    level = level_for_xp(total_xp)
    level_floor = (level - 1) * XP_PER_LEVEL

    return {
        "level": level,
        "xp_into_level": max(total_xp, 0) - level_floor,
        "xp_for_level": XP_PER_LEVEL,
        "next_level": level + 1,
        "next_level_xp": level_floor + XP_PER_LEVEL,
    }
