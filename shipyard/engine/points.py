"""
shipyard.engine.points — Points Calculator
===========================================

Pure calculation — no DB I/O.  Base and bonus values come from the
policy cache; the weekly cap is applied against what the user has
already been credited in the same week key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipyard.database.models import ActionType

if TYPE_CHECKING:
    from shipyard.engine.cache import PolicyCache

# ActionType → policy key holding its bonus on top of points.per_action
BONUS_POLICIES: dict[ActionType, str] = {
    ActionType.MEETING_ATTEND: "points.meet_attendance_bonus",
    ActionType.DEMO_PRESENTED: "points.demo_presented_bonus",
}

DEFAULT_BASE_POINTS = 1
DEFAULT_BONUS_POINTS = 1
DEFAULT_WEEKLY_CAP = 3


def calculate_points(action_type: ActionType, cache: PolicyCache) -> int:
    """Uncapped points for one action of *action_type*."""
    base = cache.get_int("points.per_action", DEFAULT_BASE_POINTS)
    bonus_key = BONUS_POLICIES.get(action_type)
    if bonus_key is None:
        return base
    return base + cache.get_int(bonus_key, DEFAULT_BONUS_POINTS)


def weekly_cap(cache: PolicyCache) -> int:
    return cache.get_int("points.max_per_week", DEFAULT_WEEKLY_CAP)


def apply_weekly_cap(points: int, already_credited: int, cap: int) -> int:
    """Clamp *points* so the week's total never exceeds *cap*.

    >>> apply_weekly_cap(1, 2, 3)
    1
    >>> apply_weekly_cap(2, 2, 3)
    1
    >>> apply_weekly_cap(1, 3, 3)
    0
    """
    return max(0, min(points, cap - already_credited))
