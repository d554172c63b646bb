"""Experience points, levels and rank titles.

All functions are pure: they return new profiles and never raise for
well-formed input. Bad amounts are clamped instead.
"""

from __future__ import annotations

import math
from dataclasses import replace

from quantix.models import UserProfile


BASE_XP_THRESHOLD = 1000
LEVEL_GROWTH = 1.5
XP_PER_MINUTE = 2
MIN_TASK_XP = 10
DEFAULT_TASK_MINUTES = 15

PRIORITY_MULTIPLIERS = {
    "Low": 0.5,
    "Medium": 1.0,
    "High": 1.5,
    "Critical": 2.0,
}

# Ascending level thresholds; the highest entry <= level wins.
RANKS = [
    (1, "Initiate"),
    (5, "Scout"),
    (10, "Operator"),
    (15, "Specialist"),
    (20, "Elite"),
    (25, "Vanguard"),
    (30, "Legend"),
    (40, "Ascendant"),
    (50, "Architect"),
]
DEFAULT_RANK = "Initiate"


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def task_xp_value(duration_minutes: int | None, priority: str) -> int:
    """XP a task is worth, computed once when the task is created.

    2 XP per estimated minute, scaled by priority, never below 10. A missing
    estimate counts as 15 minutes; zero or negative estimates count as 0.
    """
    minutes = DEFAULT_TASK_MINUTES if duration_minutes is None else max(0, duration_minutes)
    multiplier = PRIORITY_MULTIPLIERS.get(priority, 1.0)
    return max(MIN_TASK_XP, _round_half_up(minutes * XP_PER_MINUTE * multiplier))


def rank_title(level: int) -> str:
    title = DEFAULT_RANK
    for threshold, name in RANKS:
        if level >= threshold:
            title = name
        else:
            break
    return title


def gain_xp(profile: UserProfile, amount: int) -> tuple[UserProfile, bool]:
    """Add XP, carrying overflow across as many level thresholds as it covers.

    Returns (new_profile, leveled_up).
    """
    level = max(1, profile.level)
    threshold = profile.xp_to_next_level if profile.xp_to_next_level > 0 else BASE_XP_THRESHOLD
    new_xp = max(0, profile.current_xp) + max(0, int(amount))
    leveled_up = False

    while new_xp >= threshold:
        level += 1
        new_xp -= threshold
        threshold = max(1, math.floor(threshold * LEVEL_GROWTH))
        leveled_up = True

    updated = replace(
        profile,
        level=level,
        current_xp=new_xp,
        xp_to_next_level=threshold,
        rank_title=rank_title(level),
    )
    return updated, leveled_up


def lose_xp(profile: UserProfile, amount: int) -> UserProfile:
    """Remove XP within the current level. The level itself never drops."""
    return replace(profile, current_xp=max(0, profile.current_xp - max(0, int(amount))))


def reset_progress(profile: UserProfile) -> UserProfile:
    return replace(
        profile,
        level=1,
        current_xp=0,
        xp_to_next_level=BASE_XP_THRESHOLD,
        rank_title=rank_title(1),
    )


def level_progress(profile: UserProfile) -> float:
    """Fraction of the current level completed, for XP bars."""
    if profile.xp_to_next_level <= 0:
        return 0.0
    return min(1.0, profile.current_xp / profile.xp_to_next_level)
