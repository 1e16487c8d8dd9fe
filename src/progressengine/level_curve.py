"""Super-linear mapping between total XP and level."""

from __future__ import annotations

import math

XP_SCALE = 1_000_000
MIN_LEVEL = 1
MAX_LEVEL = 999


def level_for(xp: int) -> int:
    """Return the level reached with `xp` total experience."""
    safe_xp = max(0, xp)
    raw = math.floor(math.sqrt(safe_xp / XP_SCALE) + 0.5) + 1
    return max(MIN_LEVEL, min(raw, MAX_LEVEL))


def xp_threshold_for(level: int) -> int:
    """Return the XP at which `level` is first reached.

    Inverse of `level_for`: ``level_for(xp_threshold_for(n)) == n``. Since
    `level_for` rounds to the nearest level, a level is first shown once
    sqrt(xp / XP_SCALE) passes the halfway point below this threshold.
    """
    safe_level = max(MIN_LEVEL, level)
    return max(0, round(XP_SCALE * (safe_level - 1) ** 2))


def xp_to_next_level(level: int) -> int:
    """Return the XP span between `level` and the one after it."""
    return xp_threshold_for(level + 1) - xp_threshold_for(level)


def current_level_progress(xp: int) -> int:
    """Return XP earned beyond the threshold of the current level."""
    return max(0, xp - xp_threshold_for(level_for(xp)))
