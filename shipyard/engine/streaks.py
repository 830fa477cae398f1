"""
shipyard.engine.streaks — Weekly Streak Arithmetic
===================================================

Pure functions used by the weekly rollup.  ``best`` is a high-water
mark: it is only ever raised, never decremented.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StreakUpdate:
    current: int
    best: int
    goal_met: bool


def goal_met(total_actions: int, required_actions: int) -> bool:
    return total_actions >= required_actions


def advance_streak(current: int, best: int, met: bool) -> StreakUpdate:
    """Apply one week's outcome to a streak."""
    if not met:
        return StreakUpdate(current=0, best=best, goal_met=False)
    current += 1
    return StreakUpdate(current=current, best=max(best, current), goal_met=True)
