"""
shipyard.services.season_service — Season Lifecycle
=====================================================

States: ``planned → active → closed``.  At most one season is active;
the partial unique index ``uq_seasons_single_active`` backs that in the
store, and a creator that loses the race re-reads the winner.

Once the first season exists there is never a moment with zero active
seasons: closing a season and starting its successor happen in one
transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shipyard.database.models import Score, Season, SeasonStatus
from shipyard.engine.events import ScoreEntry, SeasonEnded, SeasonStarted
from shipyard.engine.weeks import as_utc, utcnow
from shipyard.services.notification_service import publish_safely

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from shipyard.engine.cache import PolicyCache
    from shipyard.services.notification_service import Notifier

logger = logging.getLogger(__name__)

DEFAULT_LENGTH_WEEKS = 6
DEFAULT_TOP_N = 10


@dataclass(frozen=True, slots=True)
class SeasonRollover:
    """Outcome of closing a season and starting the next."""

    ended: SeasonEnded
    started: SeasonStarted

    @property
    def top_scores(self) -> tuple[ScoreEntry, ...]:
        return self.ended.top_scores


def season_started_event(season: Season) -> SeasonStarted:
    return SeasonStarted(
        season_id=season.id,
        start_date=as_utc(season.start_date),
        end_date=as_utc(season.end_date),
    )


# ---------------------------------------------------------------------------
# Session-level helpers
# ---------------------------------------------------------------------------

def get_active_season(session: Session, *, for_update: bool = False) -> Season | None:
    """The single active season, or None.

    ``for_update`` takes an exclusive row lock (rollover); otherwise the
    row is read as-is.
    """
    stmt = select(Season).where(Season.status == SeasonStatus.ACTIVE.value)
    if for_update:
        stmt = stmt.with_for_update()
    return session.scalar(stmt)


def ensure_active_season(
    session: Session,
    cache: PolicyCache,
    now: datetime,
) -> tuple[Season, bool]:
    """Return ``(season, started)`` — the active season, starting one if needed.

    The earliest planned season whose start is due is activated first;
    failing that a fresh season ``[now, now + season.length_weeks]`` is
    created.  Nothing is committed here.
    """
    # Shared lock so a concurrent rollover cannot close it under us
    season = session.scalar(
        select(Season)
        .where(Season.status == SeasonStatus.ACTIVE.value)
        .with_for_update(read=True)
    )
    if season is not None:
        return season, False

    planned = session.scalar(
        select(Season)
        .where(
            Season.status == SeasonStatus.PLANNED.value,
            Season.start_date <= now,
        )
        .order_by(Season.start_date, Season.id)
        .limit(1)
    )

    try:
        with session.begin_nested():   # SAVEPOINT
            if planned is not None:
                planned.status = SeasonStatus.ACTIVE.value
                season = planned
            else:
                weeks = cache.get_int("season.length_weeks", DEFAULT_LENGTH_WEEKS)
                season = Season(
                    start_date=now,
                    end_date=now + timedelta(weeks=max(weeks, 1)),
                    status=SeasonStatus.ACTIVE.value,
                )
                session.add(season)
            session.flush()
    except IntegrityError:
        # Another writer activated a season first; use theirs
        if planned is not None:
            session.refresh(planned)
        season = get_active_season(session)
        if season is None:
            raise
        logger.info("Lost season-start race; using season %d", season.id)
        return season, False

    logger.info(
        "Season %d started (%s → %s)",
        season.id, season.start_date.isoformat(), season.end_date.isoformat(),
    )
    return season, True


def top_scores(session: Session, season_id: int, limit: int) -> list[ScoreEntry]:
    """Highest scores for *season_id*, ties broken by user id."""
    rows = session.execute(
        select(Score.user_id, Score.points)
        .where(Score.season_id == season_id, Score.points > 0)
        .order_by(Score.points.desc(), Score.user_id)
        .limit(limit)
    ).all()
    return [ScoreEntry(user_id=r.user_id, points=r.points) for r in rows]


# ---------------------------------------------------------------------------
# Engine-level operations
# ---------------------------------------------------------------------------

def get_or_start_current_season(
    engine: Engine,
    cache: PolicyCache,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> Season:
    """Return the active season (detached), starting one if none is active."""
    now = as_utc(now) if now else utcnow()
    with Session(engine) as session:
        season, started = ensure_active_season(session, cache, now)
        session.commit()
        session.refresh(season)
        session.expunge(season)

    if started:
        publish_safely(notifier, season_started_event(season))
    return season


def plan_season(engine: Engine, start_date: datetime, end_date: datetime) -> Season:
    """Create a ``planned`` season that activates once *start_date* is due.

    Raises
    ------
    ValueError
        If *end_date* is not after *start_date*.
    """
    start_date, end_date = as_utc(start_date), as_utc(end_date)
    if end_date <= start_date:
        raise ValueError("Season end_date must be after start_date")
    with Session(engine) as session:
        season = Season(
            start_date=start_date,
            end_date=end_date,
            status=SeasonStatus.PLANNED.value,
        )
        session.add(season)
        session.commit()
        session.refresh(season)
        session.expunge(season)
    logger.info("Season %d planned for %s", season.id, start_date.isoformat())
    return season


def _close_and_restart(
    engine: Engine,
    cache: PolicyCache,
    now: datetime,
    *,
    due_only: bool,
) -> SeasonRollover | None:
    with Session(engine) as session:
        closing = get_active_season(session, for_update=True)
        if closing is None:
            return None
        if due_only and as_utc(closing.end_date) > now:
            return None

        closing.status = SeasonStatus.CLOSED.value
        closing.closed_at = now
        session.flush()

        top_n = cache.get_int("season.top_n", DEFAULT_TOP_N)
        ended = SeasonEnded(
            season_id=closing.id,
            start_date=as_utc(closing.start_date),
            end_date=as_utc(closing.end_date),
            top_scores=tuple(top_scores(session, closing.id, top_n)),
        )

        successor, _ = ensure_active_season(session, cache, now)
        session.commit()
        started = season_started_event(successor)

    logger.info(
        "Season %d closed; season %d is now active",
        ended.season_id, started.season_id,
    )
    return SeasonRollover(ended=ended, started=started)


def _after_rollover(
    engine: Engine,
    cache: PolicyCache,
    rollover: SeasonRollover,
    notifier: Notifier | None,
) -> None:
    publish_safely(notifier, rollover.ended)
    publish_safely(notifier, rollover.started)

    code = cache.get_str("season.winner_badge", "season-winner")
    if not code or not rollover.top_scores:
        return

    from shipyard.services.badge_service import award_badge

    best = rollover.top_scores[0].points
    for entry in rollover.top_scores:
        if entry.points != best:
            break
        try:
            award_badge(
                engine, cache, entry.user_id, code,
                season_id=rollover.ended.season_id, notifier=notifier,
            )
        except Exception:
            logger.exception(
                "Failed to award %s to user %d", code, entry.user_id,
                extra={"task": "season_winner"},
            )


def end_current_season(
    engine: Engine,
    cache: PolicyCache,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> SeasonRollover | None:
    """Close the active season and start the next one.

    Returns None (and does nothing) when no season is active.
    """
    now = as_utc(now) if now else utcnow()
    rollover = _close_and_restart(engine, cache, now, due_only=False)
    if rollover is None:
        logger.info("end_current_season: no active season")
        return None
    _after_rollover(engine, cache, rollover, notifier)
    return rollover


def rollover_if_due(
    engine: Engine,
    cache: PolicyCache,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> SeasonRollover | None:
    """Scheduler entry point: end the active season if its end date has passed."""
    now = as_utc(now) if now else utcnow()
    rollover = _close_and_restart(engine, cache, now, due_only=True)
    if rollover is not None:
        _after_rollover(engine, cache, rollover, notifier)
    return rollover


def get_leaderboard(
    engine: Engine,
    cache: PolicyCache,
    *,
    limit: int | None = None,
) -> list[ScoreEntry]:
    """Top scores of the active season (empty when no season is active)."""
    if limit is None:
        limit = cache.get_int("leaderboard.size", 10)
    with Session(engine) as session:
        season = get_active_season(session)
        if season is None:
            return []
        return top_scores(session, season.id, limit)
