"""
shipyard.services.badge_service — Badge Awards
================================================

Evaluates the declarative badge rules for one user after each logged
action and records grants.  A user holds a regular badge at most once
and a seasonal badge at most once per season; the existence check below
is backed by the ``uq_user_badges_scope`` unique constraint, so two
racing awards still produce a single row.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shipyard.database.models import ActionType, Badge, Streak, UserBadge
from shipyard.engine.badges import BadgeContext, evaluate_badges
from shipyard.engine.events import BadgeEarned
from shipyard.engine.weeks import as_utc, utcnow
from shipyard.services.ledger_service import (
    BadgeHolding,
    badge_holdings,
    get_action_counts,
)
from shipyard.services.notification_service import publish_safely
from shipyard.services.season_service import get_active_season

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from shipyard.engine.cache import PolicyCache
    from shipyard.services.notification_service import Notifier

logger = logging.getLogger(__name__)


def held_badge_codes(
    session: Session, user_id: int, season_id: int | None
) -> set[str]:
    """Codes *user_id* holds in the scope that applies during *season_id*."""
    rows = session.execute(
        select(Badge.code, Badge.seasonal, UserBadge.season_scope)
        .join(UserBadge, UserBadge.badge_id == Badge.id)
        .where(UserBadge.user_id == user_id)
    ).all()
    return {
        r.code for r in rows
        if not r.seasonal or r.season_scope == season_id
    }


def check_badge_progress(
    engine: Engine,
    cache: PolicyCache,
    user_id: int,
    action_type: ActionType | None = None,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> list[str]:
    """Award every badge *user_id* newly qualifies for.  Returns new codes."""
    with Session(engine) as session:
        season = get_active_season(session)
        season_id = season.id if season else None
        counts = get_action_counts(session, user_id)
        streak = session.get(Streak, user_id)
        held = held_badge_codes(session, user_id, season_id)

    ctx = BadgeContext(
        action_counts=counts,
        weekly_current=streak.weekly_current if streak else 0,
    )
    candidates = [
        b for b in cache.get_badges() if not (b.seasonal and season_id is None)
    ]

    awarded: list[str] = []
    for badge in evaluate_badges(candidates, ctx, held):
        if award_badge(
            engine, cache, user_id, badge.code,
            season_id=season_id if badge.seasonal else None,
            notifier=notifier, now=now,
        ):
            awarded.append(badge.code)
    if awarded:
        logger.debug(
            "Badge check for %d after %s awarded %s",
            user_id, action_type or "manual check", awarded,
        )
    return awarded


def award_badge(
    engine: Engine,
    cache: PolicyCache,
    user_id: int,
    code: str,
    *,
    season_id: int | None = None,
    granted_by: int | None = None,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> bool:
    """Grant badge *code* to *user_id* unless already held in scope.

    Seasonal badges are scoped to *season_id* (default: the active
    season).  Returns True only when a new row was written.

    Raises
    ------
    ValueError
        If *code* is not an active badge, or a seasonal badge is awarded
        while no season is active.
    """
    badge = cache.get_badge(code)
    if badge is None:
        raise ValueError(f"Unknown badge code: {code!r}")
    now = as_utc(now) if now else utcnow()

    with Session(engine) as session:
        if season_id is None:
            season = get_active_season(session)
            season_id = season.id if season else None
        if badge.seasonal and season_id is None:
            raise ValueError(f"Seasonal badge {code!r} needs an active season")
        scope = season_id if badge.seasonal else 0

        existing = session.scalar(
            select(UserBadge.id).where(
                UserBadge.user_id == user_id,
                UserBadge.badge_id == badge.id,
                UserBadge.season_scope == scope,
            )
        )
        if existing is not None:
            return False

        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(UserBadge(
                    user_id=user_id,
                    badge_id=badge.id,
                    season_id=season_id,
                    season_scope=scope,
                    awarded_at=now,
                    granted_by=granted_by,
                ))
                session.flush()
        except IntegrityError:
            logger.debug("Badge %s already awarded to %d (race)", code, user_id)
            return False
        session.commit()

    logger.info("Badge awarded: %s → user %d", code, user_id)
    publish_safely(notifier, BadgeEarned(user_id=user_id, badge_code=code, label=badge.label))
    return True


def revoke_badge(
    engine: Engine,
    user_id: int,
    code: str,
    *,
    season_id: int | None = None,
) -> bool:
    """Remove *code* from *user_id*.

    For seasonal badges *season_id* limits removal to that season;
    otherwise every grant of the badge is removed.  Returns True if any
    row was deleted.
    """
    with Session(engine) as session:
        badge = session.scalar(select(Badge).where(Badge.code == code))
        if badge is None:
            raise ValueError(f"Unknown badge code: {code!r}")
        stmt = delete(UserBadge).where(
            UserBadge.user_id == user_id, UserBadge.badge_id == badge.id
        )
        if badge.seasonal and season_id is not None:
            stmt = stmt.where(UserBadge.season_scope == season_id)
        removed = session.execute(stmt).rowcount
        session.commit()

    if removed:
        logger.info("Badge revoked: %s from user %d", code, user_id)
    return bool(removed)


def list_user_badges(engine: Engine, user_id: int) -> list[BadgeHolding]:
    with Session(engine) as session:
        return badge_holdings(session, user_id)
