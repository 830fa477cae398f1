"""
shipyard.services.streak_service — Weekly Streak Rollup
=========================================================

Run once per week after the week closes.  Every user with actions in
the rolled-up week, or with an existing streak, gets the week's outcome
applied under their row lock.  ``last_rollup_week`` records the newest
week applied, so re-running the same week changes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from shipyard.database.models import Action, Streak
from shipyard.engine.streaks import advance_streak, goal_met
from shipyard.engine.weeks import as_utc, previous_week_key, utcnow, week_end
from shipyard.services.ledger_service import community_timezone, lock_user

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from shipyard.engine.cache import PolicyCache

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_ACTIONS = 2


@dataclass(frozen=True, slots=True)
class WeekActivity:
    total_actions: int = 0
    distinct_types: int = 0


@dataclass
class RollupSummary:
    week_key: date
    users: int = 0
    goals_met: int = 0
    streaks_reset: int = 0
    skipped: int = 0
    failed: int = 0


def week_activity(session: Session, week_key: date) -> dict[int, WeekActivity]:
    """Per-user action totals and distinct types for *week_key*."""
    rows = session.execute(
        select(
            Action.user_id,
            func.count().label("total"),
            func.count(distinct(Action.type)).label("types"),
        )
        .where(Action.week_key == week_key)
        .group_by(Action.user_id)
    ).all()
    return {
        r.user_id: WeekActivity(total_actions=r.total, distinct_types=r.types)
        for r in rows
    }


def _user_week_total(session: Session, user_id: int, week_key: date) -> int:
    return session.scalar(
        select(func.count()).select_from(Action).where(
            Action.user_id == user_id, Action.week_key == week_key
        )
    ) or 0


def _apply_week(
    engine: Engine,
    user_id: int,
    week_key: date,
    activity: WeekActivity,
    required: int,
    now: datetime,
) -> bool | None:
    """Apply *week_key* to one user.  Returns goal-met, or None if already applied.

    Weeks between ``last_rollup_week`` and *week_key* that were never
    rolled up are applied first, in order, from the user's own actions.
    """
    with Session(engine) as session:
        streak = lock_user(session, user_id)
        last = streak.last_rollup_week
        if last is not None and last >= week_key:
            session.rollback()
            return None

        weeks: list[tuple[date, int]] = []
        if last is not None:
            missed = last + timedelta(days=7)
            while missed < week_key:
                weeks.append((missed, _user_week_total(session, user_id, missed)))
                missed += timedelta(days=7)
            if weeks:
                logger.info(
                    "Catching up %d missed week(s) for user %d", len(weeks), user_id
                )
        weeks.append((week_key, activity.total_actions))

        met = False
        for key, total in weeks:
            met = goal_met(total, required)
            update = advance_streak(streak.weekly_current, streak.weekly_best, met)
            streak.weekly_current = update.current
            streak.weekly_best = update.best
            if met:
                streak.last_week_achieved = week_end(key)
        streak.last_rollup_week = week_key
        streak.updated_at = now
        session.commit()
    return met


def run_weekly_rollup(
    engine: Engine,
    cache: PolicyCache,
    *,
    week_key: date | None = None,
    now: datetime | None = None,
) -> RollupSummary:
    """Roll up *week_key* (default: the last completed week)."""
    now = as_utc(now) if now else utcnow()
    if week_key is None:
        week_key = previous_week_key(now, community_timezone(cache))
    required = cache.get_int("weekly_goal.required_actions", DEFAULT_REQUIRED_ACTIONS)

    with Session(engine) as session:
        activity = week_activity(session, week_key)
        existing = set(session.scalars(select(Streak.user_id)).all())

    summary = RollupSummary(week_key=week_key)
    for user_id in sorted(existing | activity.keys()):
        summary.users += 1
        try:
            met = _apply_week(
                engine, user_id, week_key,
                activity.get(user_id, WeekActivity()), required, now,
            )
        except Exception:
            summary.failed += 1
            logger.exception(
                "Streak rollup failed for user %d", user_id,
                extra={"task": "weekly_rollup"},
            )
            continue
        if met is None:
            summary.skipped += 1
        elif met:
            summary.goals_met += 1
        else:
            summary.streaks_reset += 1

    logger.info(
        "Weekly rollup %s: %d users, %d met goal, %d reset, %d skipped, %d failed",
        week_key, summary.users, summary.goals_met,
        summary.streaks_reset, summary.skipped, summary.failed,
    )
    return summary


def get_streak(engine: Engine, user_id: int) -> Streak | None:
    with Session(engine) as session:
        streak = session.get(Streak, user_id)
        if streak is not None:
            session.expunge(streak)
        return streak
