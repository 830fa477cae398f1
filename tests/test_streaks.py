"""
tests/test_streaks.py — Weekly Streak Arithmetic
==================================================
"""

from __future__ import annotations

import pytest

from shipyard.engine.streaks import advance_streak, goal_met


@pytest.mark.parametrize(
    "total, required, expected",
    [(0, 2, False), (1, 2, False), (2, 2, True), (7, 2, True), (0, 0, True)],
)
def test_goal_met(total, required, expected):
    assert goal_met(total, required) is expected


def test_met_week_extends_streak_and_raises_best():
    update = advance_streak(current=3, best=3, met=True)
    assert (update.current, update.best, update.goal_met) == (4, 4, True)


def test_met_week_below_best_keeps_best():
    update = advance_streak(current=1, best=5, met=True)
    assert (update.current, update.best) == (2, 5)


def test_missed_week_resets_current_only():
    update = advance_streak(current=2, best=2, met=False)
    assert (update.current, update.best, update.goal_met) == (0, 2, False)


def test_best_never_decreases_over_any_sequence():
    outcomes = [True, True, False, True, True, True, False, False, True]
    current = best = 0
    history = []
    for met in outcomes:
        update = advance_streak(current, best, met)
        assert update.best >= best
        assert update.best >= update.current
        current, best = update.current, update.best
        history.append(best)
    assert history == sorted(history)
    assert best == 3
