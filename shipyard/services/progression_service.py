"""
shipyard.services.progression_service — Role Progression
==========================================================

Turns ledger aggregates into role grants through a :class:`RoleGateway`,
so the evaluation never touches a live guild object directly.  Roles
are only ever added: reaching a higher tier leaves lower ones in place.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import String, cast, distinct, func, select
from sqlalchemy.orm import Session

from shipyard.database.models import Action, ActionType
from shipyard.engine.events import RolePromotion
from shipyard.engine.progression import (
    DEFAULT_ROLE_TIERS,
    ProgressionStats,
    RoleTier,
    eligible_roles,
)
from shipyard.engine.weeks import as_utc, utcnow
from shipyard.services.notification_service import publish_safely

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from shipyard.engine.cache import PolicyCache
    from shipyard.services.notification_service import Notifier

logger = logging.getLogger(__name__)

DEFAULT_RECENT_WINDOW_DAYS = 14


class RoleGateway(Protocol):
    """Membership capability the evaluator needs from the chat platform."""

    def has_role(self, user_id: int, role_name: str) -> bool: ...

    def grant_role(self, user_id: int, role_name: str) -> None: ...


def _distinct_artifacts(
    session: Session,
    user_id: int,
    action_type: ActionType,
    since: datetime | None = None,
) -> int:
    """Distinct source artifacts behind *user_id*'s actions of *action_type*.

    Actions sharing a ``ref`` count once.  Actions logged without a ref
    have no artifact to share, so each one counts on its own rather than
    being left out.
    """
    artifact = func.coalesce(Action.ref, cast(Action.id, String))
    stmt = select(func.count(distinct(artifact))).where(
        Action.user_id == user_id, Action.type == action_type.value
    )
    if since is not None:
        stmt = stmt.where(Action.created_at >= since)
    return session.scalar(stmt) or 0


def gather_progression_stats(
    session: Session,
    user_id: int,
    now: datetime,
    window_days: int = DEFAULT_RECENT_WINDOW_DAYS,
) -> ProgressionStats:
    active_weeks = session.scalar(
        select(func.count(distinct(Action.week_key))).where(Action.user_id == user_id)
    ) or 0
    return ProgressionStats(
        presented_demos=_distinct_artifacts(session, user_id, ActionType.DEMO_PRESENTED),
        helpful_feedback=_distinct_artifacts(session, user_id, ActionType.FEEDBACK_HELPFUL),
        active_weeks=active_weeks,
        recent_helpful_feedback=_distinct_artifacts(
            session, user_id, ActionType.FEEDBACK_HELPFUL,
            since=now - timedelta(days=window_days),
        ),
    )


def check_role_progression(
    engine: Engine,
    cache: PolicyCache,
    user_id: int,
    roles: RoleGateway,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
    tiers: tuple[RoleTier, ...] = DEFAULT_ROLE_TIERS,
) -> list[str]:
    """Grant every tier *user_id* qualifies for but does not hold yet.

    A failed membership lookup ends the check early; it is retried on the
    user's next action.  A failed grant is logged and the next tier is
    still tried.  Returns the role names granted.
    """
    now = as_utc(now) if now else utcnow()
    window = cache.get_int("progression.recent_window_days", DEFAULT_RECENT_WINDOW_DAYS)
    with Session(engine) as session:
        stats = gather_progression_stats(session, user_id, now, window)

    granted: list[str] = []
    for role_name in eligible_roles(stats, tiers):
        try:
            if roles.has_role(user_id, role_name):
                continue
        except Exception:
            logger.exception(
                "Membership lookup failed for user %d", user_id,
                extra={"task": "role_progression"},
            )
            break
        try:
            roles.grant_role(user_id, role_name)
        except Exception:
            logger.exception(
                "Failed to grant %s to user %d", role_name, user_id,
                extra={"task": "role_progression"},
            )
            continue
        granted.append(role_name)
        logger.info("Role granted: %s → user %d", role_name, user_id)
        publish_safely(notifier, RolePromotion(user_id=user_id, role_name=role_name))
    return granted
