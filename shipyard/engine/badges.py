"""
shipyard.engine.badges — Declarative Badge Rule Evaluation
===========================================================

Each badge row carries a ``trigger_type`` and a ``trigger_config``; this
module maps every trigger type to a pure handler ``(config, ctx) → bool``.
Adding a badge is a data change in the ``badges`` table.

This module is pure calculation — no database I/O, no Discord I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shipyard.database.models import BadgeTrigger

if TYPE_CHECKING:
    from shipyard.database.models import Badge

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Badge context — passed to every trigger handler
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeContext:
    """Snapshot of a user's lifetime stats.

    Parameters
    ----------
    action_counts : Mapping of action type value → lifetime count
        (after the action that triggered this check).
    weekly_current : Current weekly streak.
    """

    action_counts: dict[str, int] = field(default_factory=dict)
    weekly_current: int = 0


# ---------------------------------------------------------------------------
# Trigger handlers
# ---------------------------------------------------------------------------
def _check_first_action(config: dict, ctx: BadgeContext) -> bool:
    """Fires once the user has at least one action of a type.

    Config: {"action_type": "check-in"}
    """
    action_type = config.get("action_type", "")
    if not action_type:
        return False
    return ctx.action_counts.get(action_type, 0) >= 1


def _check_action_count(config: dict, ctx: BadgeContext) -> bool:
    """Fires when the lifetime count of an action type reaches N.

    Config: {"action_type": "help-solved", "count": 5}
    """
    action_type = config.get("action_type", "")
    count = config.get("count")
    if count is None or not action_type:
        return False
    return ctx.action_counts.get(action_type, 0) >= count


def _check_streak_reached(config: dict, ctx: BadgeContext) -> bool:
    """Fires when the current weekly streak reaches N.

    Config: {"value": 4}
    """
    value = config.get("value")
    if value is None:
        return False
    return ctx.weekly_current >= value


TRIGGER_HANDLERS: dict[str, Callable[[dict, BadgeContext], bool]] = {
    BadgeTrigger.FIRST_ACTION: _check_first_action,
    BadgeTrigger.ACTION_COUNT: _check_action_count,
    BadgeTrigger.STREAK_REACHED: _check_streak_reached,
    # BadgeTrigger.MANUAL: admin-granted only
}


def evaluate_badges(
    badges: Iterable[Badge],
    ctx: BadgeContext,
    held_codes: set[str],
) -> list[Badge]:
    """Return the badges from *badges* the user newly qualifies for.

    *held_codes* are the codes the user already holds in the scope that
    applies right now (lifetime for regular badges, the active season for
    seasonal ones).
    """
    earned: list[Badge] = []
    for badge in badges:
        if badge.code in held_codes:
            continue
        handler = TRIGGER_HANDLERS.get(badge.trigger_type)
        if handler is None:
            continue
        if handler(badge.trigger_config or {}, ctx):
            earned.append(badge)
            logger.debug("Badge rule matched: %s", badge.code)
    return earned
