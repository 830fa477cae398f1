"""
shipyard.services.ledger_service — Action Ledger & Stats
==========================================================

The single write path for engagement credit.  ``log_action`` appends to
the ``actions`` ledger and updates the season score in one transaction,
holding the user's streak row as a lock so the weekly-cap read, the
Action insert and the Score upsert stay consistent under concurrency.

Badge and role checks run *after* the commit.  They are best-effort:
a failure there is logged and never unwinds the append.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shipyard.database.models import (
    Action,
    ActionType,
    Badge,
    Score,
    Streak,
    UserBadge,
)
from shipyard.engine.points import apply_weekly_cap, calculate_points, weekly_cap
from shipyard.engine.weeks import (
    DEFAULT_TIMEZONE,
    as_utc,
    day_bounds,
    resolve_timezone,
    utcnow,
    week_key_for,
)
from shipyard.services.notification_service import publish_safely
from shipyard.services.season_service import (
    ensure_active_season,
    get_active_season,
    season_started_event,
)

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo

    from sqlalchemy import Engine

    from shipyard.engine.cache import PolicyCache
    from shipyard.services.notification_service import Notifier
    from shipyard.services.progression_service import RoleGateway

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stats view types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class WeekStat:
    count: int = 0
    points: int = 0


@dataclass(frozen=True, slots=True)
class BadgeHolding:
    code: str
    label: str
    awarded_at: datetime
    season_id: int | None


@dataclass(frozen=True, slots=True)
class UserStats:
    """Everything ``/stats`` shows for one member."""

    user_id: int
    week_key: date
    season_id: int | None = None
    week_stats: dict[str, WeekStat] = field(default_factory=dict)
    season_points: int = 0
    current_streak: int = 0
    best_streak: int = 0
    badges: list[BadgeHolding] = field(default_factory=list)

    @property
    def week_points(self) -> int:
        return sum(s.points for s in self.week_stats.values())


def community_timezone(cache: PolicyCache) -> ZoneInfo:
    return resolve_timezone(cache.get_str("community.timezone", DEFAULT_TIMEZONE))


# ---------------------------------------------------------------------------
# Session-level queries
# ---------------------------------------------------------------------------

def get_weekly_points(session: Session, user_id: int, week_key: date) -> int:
    """Points already credited to *user_id* in *week_key*."""
    return session.scalar(
        select(func.coalesce(func.sum(Action.points), 0)).where(
            Action.user_id == user_id, Action.week_key == week_key
        )
    ) or 0


def get_action_counts(session: Session, user_id: int) -> dict[str, int]:
    """Lifetime action count per type for *user_id*."""
    rows = session.execute(
        select(Action.type, func.count().label("cnt"))
        .where(Action.user_id == user_id)
        .group_by(Action.type)
    ).all()
    return {row.type: row.cnt for row in rows}


def badge_holdings(session: Session, user_id: int) -> list[BadgeHolding]:
    rows = session.execute(
        select(Badge.code, Badge.label, UserBadge.awarded_at, UserBadge.season_id)
        .join(UserBadge, UserBadge.badge_id == Badge.id)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.awarded_at, UserBadge.id)
    ).all()
    return [
        BadgeHolding(
            code=r.code,
            label=r.label,
            awarded_at=as_utc(r.awarded_at),
            season_id=r.season_id,
        )
        for r in rows
    ]


def lock_user(session: Session, user_id: int) -> Streak:
    """Lock (creating if needed) the user's streak row for this transaction."""
    streak = session.get(Streak, user_id, with_for_update=True)
    if streak is not None:
        return streak
    try:
        with session.begin_nested():   # SAVEPOINT
            streak = Streak(user_id=user_id, weekly_current=0, weekly_best=0)
            session.add(streak)
            session.flush()
    except IntegrityError:
        # Created concurrently; lock the existing row instead
        streak = session.get(
            Streak, user_id, with_for_update=True, populate_existing=True
        )
    return streak


def _checked_in_between(
    session: Session, user_id: int, start: datetime, end: datetime
) -> bool:
    found = session.scalar(
        select(Action.id)
        .where(
            Action.user_id == user_id,
            Action.type == ActionType.CHECK_IN.value,
            Action.created_at >= start,
            Action.created_at < end,
        )
        .limit(1)
    )
    return found is not None


# ---------------------------------------------------------------------------
# log_action
# ---------------------------------------------------------------------------

def log_action(
    engine: Engine,
    cache: PolicyCache,
    user_id: int,
    action_type: ActionType | str,
    ref: str | None = None,
    *,
    notifier: Notifier | None = None,
    roles: RoleGateway | None = None,
    now: datetime | None = None,
) -> int:
    """Record one action and return the points actually credited.

    Steps:
    1. Resolve the active season, starting one if none is active
    2. Skip everything else when ``gamification.enabled`` is false
    3. Compute base + bonus points from policy
    4. Read the user's credited total for the current week key
    5. Clamp to ``points.max_per_week``
    6. Append the Action (even at 0 points) and bump the Score
    7. Run badge and role checks after commit

    Raises
    ------
    ValueError
        If *action_type* is not a known :class:`ActionType`.
    sqlalchemy.exc.SQLAlchemyError
        If the ledger transaction fails; nothing is recorded.
    """
    action_type = ActionType(action_type)
    now = as_utc(now) if now else utcnow()
    tz = community_timezone(cache)

    with Session(engine) as session:
        season, season_started = ensure_active_season(session, cache, now)
        season_id = season.id
        started_event = season_started_event(season) if season_started else None

        if not cache.get_bool("gamification.enabled", True):
            session.commit()
            publish_safely(notifier, started_event)
            logger.debug("Gamification disabled; skipped %s for %d", action_type, user_id)
            return 0

        lock_user(session, user_id)

        if (
            action_type is ActionType.CHECK_IN
            and cache.get_bool("check_in.dedupe_daily", False)
            and _checked_in_between(session, user_id, *day_bounds(now, tz))
        ):
            session.commit()
            publish_safely(notifier, started_event)
            logger.debug("Duplicate check-in ignored for %d", user_id)
            return 0

        week_key = week_key_for(now, tz)
        already = get_weekly_points(session, user_id, week_key)
        credited = apply_weekly_cap(
            calculate_points(action_type, cache), already, weekly_cap(cache)
        )

        session.add(Action(
            user_id=user_id,
            type=action_type.value,
            ref=ref,
            points=credited,
            season_id=season_id,
            week_key=week_key,
            created_at=now,
        ))

        if credited > 0:
            score = session.get(Score, (user_id, season_id), with_for_update=True)
            if score is None:
                score = Score(user_id=user_id, season_id=season_id, points=0)
                session.add(score)
            score.points += credited
            score.updated_at = now

        session.commit()

    publish_safely(notifier, started_event)
    logger.debug(
        "Action %s for %d credited %d (week %s, season %d)",
        action_type, user_id, credited, week_key, season_id,
    )

    _run_side_effects(engine, cache, user_id, action_type, notifier, roles, now)
    return credited


def _run_side_effects(
    engine: Engine,
    cache: PolicyCache,
    user_id: int,
    action_type: ActionType,
    notifier: Notifier | None,
    roles: RoleGateway | None,
    now: datetime,
) -> None:
    from shipyard.services.badge_service import check_badge_progress
    from shipyard.services.progression_service import check_role_progression

    try:
        check_badge_progress(
            engine, cache, user_id, action_type, notifier=notifier, now=now
        )
    except Exception:
        logger.exception(
            "Badge check failed for user %d", user_id, extra={"task": "badge_check"}
        )

    if roles is None:
        return
    try:
        check_role_progression(
            engine, cache, user_id, roles, notifier=notifier, now=now
        )
    except Exception:
        logger.exception(
            "Role progression check failed for user %d", user_id,
            extra={"task": "role_progression"},
        )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def has_checked_in_today(
    engine: Engine,
    cache: PolicyCache,
    user_id: int,
    now: datetime | None = None,
) -> bool:
    """True if *user_id* already has a check-in on the current local day."""
    now = as_utc(now) if now else utcnow()
    start, end = day_bounds(now, community_timezone(cache))
    with Session(engine) as session:
        return _checked_in_between(session, user_id, start, end)


def get_user_stats(
    engine: Engine,
    cache: PolicyCache,
    user_id: int,
    *,
    now: datetime | None = None,
) -> UserStats:
    """Current-week breakdown, season total, streak and badges for a user."""
    now = as_utc(now) if now else utcnow()
    week_key = week_key_for(now, community_timezone(cache))

    with Session(engine) as session:
        rows = session.execute(
            select(
                Action.type,
                func.count().label("cnt"),
                func.coalesce(func.sum(Action.points), 0).label("pts"),
            )
            .where(Action.user_id == user_id, Action.week_key == week_key)
            .group_by(Action.type)
        ).all()
        week_stats = {r.type: WeekStat(count=r.cnt, points=r.pts) for r in rows}

        season = get_active_season(session)
        season_points = 0
        if season is not None:
            score = session.get(Score, (user_id, season.id))
            season_points = score.points if score else 0

        streak = session.get(Streak, user_id)
        return UserStats(
            user_id=user_id,
            week_key=week_key,
            season_id=season.id if season else None,
            week_stats=week_stats,
            season_points=season_points,
            current_streak=streak.weekly_current if streak else 0,
            best_streak=streak.weekly_best if streak else 0,
            badges=badge_holdings(session, user_id),
        )
