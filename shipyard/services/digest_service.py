"""
shipyard.services.digest_service — Weekly Community Digest
============================================================

Summarises one week of ledger activity for the Sunday announcement.
Read-only.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from shipyard.database.models import Action
from shipyard.engine.events import WeeklyDigest
from shipyard.engine.weeks import as_utc, utcnow, week_key_for
from shipyard.services.ledger_service import community_timezone
from shipyard.services.season_service import get_active_season, top_scores

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from shipyard.engine.cache import PolicyCache

logger = logging.getLogger(__name__)


def build_weekly_digest(
    engine: Engine,
    cache: PolicyCache,
    *,
    week_key: date | None = None,
    now: datetime | None = None,
) -> WeeklyDigest:
    """Digest for *week_key* (default: the week containing *now*)."""
    now = as_utc(now) if now else utcnow()
    if week_key is None:
        week_key = week_key_for(now, community_timezone(cache))

    with Session(engine) as session:
        by_type = session.execute(
            select(Action.type, func.count().label("cnt"))
            .where(Action.week_key == week_key)
            .group_by(Action.type)
        ).all()
        members = session.scalar(
            select(func.count(distinct(Action.user_id))).where(Action.week_key == week_key)
        ) or 0
        points = session.scalar(
            select(func.coalesce(func.sum(Action.points), 0)).where(
                Action.week_key == week_key
            )
        ) or 0

        season = get_active_season(session)
        leaders = ()
        if season is not None:
            leaders = tuple(
                top_scores(session, season.id, cache.get_int("leaderboard.size", 10))
            )

    digest = WeeklyDigest(
        week_key=week_key,
        actions_by_type={r.type: r.cnt for r in by_type},
        active_members=members,
        points_credited=points,
        top_scores=leaders,
    )
    logger.info(
        "Weekly digest %s: %d actions from %d members",
        week_key, digest.total_actions, digest.active_members,
    )
    return digest
