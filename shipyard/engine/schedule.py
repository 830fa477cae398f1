"""
shipyard.engine.schedule — Recurring Job Calendar
===================================================

Wall-clock times for the recurring scheduler jobs, expressed in the
community timezone, and the arithmetic for their next occurrence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from shipyard.engine.weeks import as_utc


@dataclass(frozen=True, slots=True)
class RecurringJob:
    kind: str
    at: time
    weekday: int | None = None  # 0 = Monday; None = every day


SEASON_ROLLOVER = "season_rollover"
WEEKLY_ROLLUP = "weekly_rollup"
WEEKLY_DIGEST = "weekly_digest"
REMINDER = "reminder"

RECURRING_JOBS: dict[str, RecurringJob] = {
    SEASON_ROLLOVER: RecurringJob(SEASON_ROLLOVER, time(0, 5)),
    WEEKLY_ROLLUP: RecurringJob(WEEKLY_ROLLUP, time(0, 30), weekday=0),
    WEEKLY_DIGEST: RecurringJob(WEEKLY_DIGEST, time(18, 0), weekday=6),
}


def next_occurrence(
    now: datetime,
    tz: ZoneInfo,
    weekday: int | None,
    at: time,
) -> datetime:
    """First local *at* strictly after *now*, on *weekday* if given.

    Returned as an aware UTC datetime.
    """
    local_now = as_utc(now).astimezone(tz)
    day = local_now.date()
    for offset in range(8):
        candidate_day = day + timedelta(days=offset)
        if weekday is not None and candidate_day.weekday() != weekday:
            continue
        candidate = datetime.combine(candidate_day, at, tzinfo=tz)
        if candidate > local_now:
            return candidate.astimezone(UTC)
    # only reached when weekday is outside 0..6
    raise ValueError(f"No occurrence found for weekday={weekday!r}")


def next_run_for(kind: str, now: datetime, tz: ZoneInfo) -> datetime:
    """Next due time for the recurring job *kind*."""
    job = RECURRING_JOBS[kind]
    return next_occurrence(now, tz, job.weekday, job.at)
