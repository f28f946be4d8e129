"""Level computation.

Levels are flat 100 XP bands: 0-99 is level 1, 100-199 level 2, and so on.
The stored level is always recomputed from total XP, never incremented.
"""

from __future__ import annotations

XP_PER_LEVEL = 100


def level_for_xp(total_xp: int) -> int:
    return max(total_xp, 0) // XP_PER_LEVEL + 1


def compute_level(total_xp: int) -> dict:
    """Level info for display alongside the stats record."""
    level = level_for_xp(total_xp)
    level_floor = (level - 1) * XP_PER_LEVEL
    return {
        "level": level,
        "xp_into_level": max(total_xp, 0) - level_floor,
        "xp_for_level": XP_PER_LEVEL,
        "next_level": level + 1,
    }
