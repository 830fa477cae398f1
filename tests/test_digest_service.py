"""
tests/test_digest_service.py — Weekly Digest
==============================================
"""

from __future__ import annotations

from datetime import date, timedelta

from shipyard.engine.events import ScoreEntry
from shipyard.services.digest_service import build_weekly_digest
from shipyard.services.ledger_service import log_action


def test_empty_week(seeded_engine, cache, now):
    digest = build_weekly_digest(seeded_engine, cache, now=now)
    assert digest.week_key == date(2026, 3, 2)
    assert digest.total_actions == 0
    assert digest.active_members == 0
    assert digest.top_scores == ()


def test_week_summary(seeded_engine, cache, now):
    log_action(seeded_engine, cache, 1, "check-in", now=now)
    log_action(seeded_engine, cache, 1, "meeting-attend", "m1", now=now)
    log_action(seeded_engine, cache, 1, "check-in", now=now)   # capped to 0
    log_action(seeded_engine, cache, 2, "check-in", now=now)

    digest = build_weekly_digest(seeded_engine, cache, now=now)
    assert digest.actions_by_type == {"check-in": 3, "meeting-attend": 1}
    assert digest.total_actions == 4
    assert digest.active_members == 2
    assert digest.points_credited == 4
    assert digest.top_scores == (ScoreEntry(1, 3), ScoreEntry(2, 1))


def test_explicit_week_key(seeded_engine, cache, now):
    log_action(seeded_engine, cache, 1, "check-in", now=now - timedelta(weeks=1))
    log_action(seeded_engine, cache, 1, "check-in", now=now)

    digest = build_weekly_digest(seeded_engine, cache, week_key=date(2026, 2, 23), now=now)
    assert digest.total_actions == 1
    assert digest.active_members == 1
