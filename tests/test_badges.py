"""
tests/test_badges.py — Declarative Badge Rule Evaluation
==========================================================
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from shipyard.database.models import BadgeTrigger
from shipyard.database.seed import DEFAULT_BADGES
from shipyard.engine.badges import TRIGGER_HANDLERS, BadgeContext, evaluate_badges


def _badge(code: str, trigger_type: str, config: dict | None = None) -> MagicMock:
    b = MagicMock()
    b.code = code
    b.trigger_type = trigger_type
    b.trigger_config = config
    return b


@pytest.fixture
def catalogue() -> list[MagicMock]:
    """Mock rows built from the default seed catalogue."""
    return [
        _badge(code, trigger.value, config)
        for code, (_, _, _, trigger, config) in DEFAULT_BADGES.items()
    ]


def _codes(badges) -> set[str]:
    return {b.code for b in badges}


class TestHandlers:
    def test_manual_has_no_handler(self):
        assert BadgeTrigger.MANUAL not in TRIGGER_HANDLERS

    def test_first_action(self):
        handler = TRIGGER_HANDLERS[BadgeTrigger.FIRST_ACTION]
        cfg = {"action_type": "check-in"}
        assert handler(cfg, BadgeContext(action_counts={"check-in": 1}))
        assert not handler(cfg, BadgeContext(action_counts={"demo-posted": 3}))

    def test_action_count_threshold(self):
        handler = TRIGGER_HANDLERS[BadgeTrigger.ACTION_COUNT]
        cfg = {"action_type": "meeting-attend", "count": 4}
        assert not handler(cfg, BadgeContext(action_counts={"meeting-attend": 3}))
        assert handler(cfg, BadgeContext(action_counts={"meeting-attend": 4}))

    def test_streak_reached(self):
        handler = TRIGGER_HANDLERS[BadgeTrigger.STREAK_REACHED]
        assert handler({"value": 4}, BadgeContext(weekly_current=4))
        # One week short
        assert not handler({"value": 4}, BadgeContext(weekly_current=3))

    @pytest.mark.parametrize(
        "trigger", [BadgeTrigger.FIRST_ACTION, BadgeTrigger.ACTION_COUNT, BadgeTrigger.STREAK_REACHED]
    )
    def test_empty_config_never_fires(self, trigger):
        ctx = BadgeContext(action_counts={"check-in": 99}, weekly_current=99)
        assert TRIGGER_HANDLERS[trigger]({}, ctx) is False


class TestEvaluateBadges:
    def test_first_check_in(self, catalogue):
        ctx = BadgeContext(action_counts={"check-in": 1})
        assert _codes(evaluate_badges(catalogue, ctx, set())) == {"first-check-in"}

    def test_held_badges_are_skipped(self, catalogue):
        ctx = BadgeContext(action_counts={"check-in": 5})
        assert evaluate_badges(catalogue, ctx, {"first-check-in"}) == []

    def test_fifth_feedback_and_help(self, catalogue):
        ctx = BadgeContext(action_counts={"feedback-helpful": 5, "help-solved": 5})
        assert _codes(evaluate_badges(catalogue, ctx, set())) == {
            "feedback-helper", "problem-solver",
        }

    def test_four_week_streak(self, catalogue):
        ctx = BadgeContext(weekly_current=4)
        assert _codes(evaluate_badges(catalogue, ctx, set())) == {"4-week-streak"}

    def test_manual_badges_never_auto_awarded(self, catalogue):
        ctx = BadgeContext(
            action_counts={t: 100 for t in ("check-in", "demo-posted", "meeting-attend")},
            weekly_current=50,
        )
        codes = _codes(evaluate_badges(catalogue, ctx, set()))
        assert not codes & {"season-winner", "early-bird", "mentor", "shipped"}

    def test_unknown_trigger_type_ignored(self):
        ctx = BadgeContext(action_counts={"check-in": 1})
        assert evaluate_badges([_badge("x", "moon_phase", {})], ctx, set()) == []
