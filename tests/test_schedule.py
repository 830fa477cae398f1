"""
tests/test_schedule.py — Recurring Job Calendar
=================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo

from shipyard.engine.schedule import (
    SEASON_ROLLOVER,
    WEEKLY_DIGEST,
    WEEKLY_ROLLUP,
    next_occurrence,
    next_run_for,
)

LONDON = ZoneInfo("Europe/London")


def test_daily_job_later_today():
    now = datetime(2026, 3, 4, 0, 1, tzinfo=UTC)
    assert next_occurrence(now, LONDON, None, time(0, 5)) == datetime(
        2026, 3, 4, 0, 5, tzinfo=UTC
    )


def test_daily_job_already_passed_rolls_to_tomorrow():
    now = datetime(2026, 3, 4, 0, 5, tzinfo=UTC)
    assert next_run_for(SEASON_ROLLOVER, now, LONDON) == datetime(
        2026, 3, 5, 0, 5, tzinfo=UTC
    )


def test_weekly_rollup_is_next_monday():
    now = datetime(2026, 3, 4, 12, tzinfo=UTC)  # Wednesday
    assert next_run_for(WEEKLY_ROLLUP, now, LONDON) == datetime(
        2026, 3, 9, 0, 30, tzinfo=UTC
    )


def test_weekly_digest_uses_local_time_in_summer():
    now = datetime(2026, 6, 1, 12, tzinfo=UTC)  # Monday
    # 18:00 BST is 17:00 UTC
    assert next_run_for(WEEKLY_DIGEST, now, LONDON) == datetime(
        2026, 6, 7, 17, 0, tzinfo=UTC
    )


def test_same_weekday_after_time_goes_to_next_week():
    now = datetime(2026, 3, 9, 1, 0, tzinfo=UTC)  # Monday, after 00:30
    assert next_run_for(WEEKLY_ROLLUP, now, LONDON) == datetime(
        2026, 3, 16, 0, 30, tzinfo=UTC
    )
