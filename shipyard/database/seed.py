"""
shipyard.database.seed — Default Policies & Badge Catalogue
=============================================================

Baseline rows seeded on first startup so the engine works out of the box.

Idempotent — only inserts keys / badge codes that don't already exist.
Policies changed later by admins are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from shipyard.database.models import ActionType, Badge, BadgeTrigger, Policy

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default policies
# ---------------------------------------------------------------------------
DEFAULT_POLICIES: dict[str, tuple[object, str, str]] = {
    "gamification.enabled": (True, "gamification", "Master switch for point crediting"),
    "season.length_weeks": (6, "season", "Length of a new season in weeks"),
    "season.top_n": (10, "season", "Scores included in the season-end announcement"),
    "season.winner_badge": (
        "season-winner", "season", "Seasonal badge given to the top scorer at season end",
    ),
    "weekly_goal.required_actions": (
        2, "streak", "Actions in a week needed to extend the weekly streak",
    ),
    "points.per_action": (1, "points", "Base points for every action"),
    "points.max_per_week": (3, "points", "Max points a user can be credited per week"),
    "points.meet_attendance_bonus": (1, "points", "Extra points for attending a meeting"),
    "points.demo_presented_bonus": (1, "points", "Extra points for presenting a demo"),
    "community.timezone": (
        "Europe/London", "community", "Timezone for week keys and scheduled jobs",
    ),
    "check_in.dedupe_daily": (
        False, "gamification", "Ignore a second check-in on the same local day",
    ),
    "progression.recent_window_days": (
        14, "progression", "Window for the recent-activity entry tier",
    ),
    "leaderboard.size": (10, "display", "Rows shown by /season and /leaderboard"),
    "leaderboard.public": (False, "display", "Show the season leaderboard to members"),
    "scheduler.max_attempts": (
        5, "scheduler", "Retries for a one-shot scheduled job before it is failed",
    ),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Default badge catalogue
# ---------------------------------------------------------------------------
DEFAULT_BADGES: dict[str, tuple[str, str, bool, BadgeTrigger, dict]] = {
    "first-check-in": (
        "First Check-in", "Posted your first daily check-in", False,
        BadgeTrigger.FIRST_ACTION, {"action_type": ActionType.CHECK_IN.value},
    ),
    "first-demo": (
        "First Demo", "Posted your first demo", False,
        BadgeTrigger.FIRST_ACTION, {"action_type": ActionType.DEMO_POSTED.value},
    ),
    "feedback-helper": (
        "Feedback Helper", "Gave 5 helpful feedback responses", False,
        BadgeTrigger.ACTION_COUNT,
        {"action_type": ActionType.FEEDBACK_HELPFUL.value, "count": 5},
    ),
    "problem-solver": (
        "Problem Solver", "Solved 5 help requests", False,
        BadgeTrigger.ACTION_COUNT,
        {"action_type": ActionType.HELP_SOLVED.value, "count": 5},
    ),
    "meet-regular": (
        "Meet Regular", "Attended 4 weekly meetings", False,
        BadgeTrigger.ACTION_COUNT,
        {"action_type": ActionType.MEETING_ATTEND.value, "count": 4},
    ),
    "4-week-streak": (
        "4 Week Streak", "Met the weekly goal 4 weeks in a row", False,
        BadgeTrigger.STREAK_REACHED, {"value": 4},
    ),
    "season-winner": (
        "Season Winner", "Finished a season at the top of the leaderboard", True,
        BadgeTrigger.MANUAL, {},
    ),
    "early-bird": (
        "Early Bird", "One of the first 100 members", False, BadgeTrigger.MANUAL, {},
    ),
    "mentor": ("Mentor", "Helped 10+ members", False, BadgeTrigger.MANUAL, {}),
    "shipped": ("Shipped", "Launched a project", False, BadgeTrigger.MANUAL, {}),
}
"""Each entry maps ``code`` → ``(label, description, seasonal, trigger, config)``."""


# ---------------------------------------------------------------------------
# Seeders
# ---------------------------------------------------------------------------
def seed_default_policies(session: Session) -> int:
    """Insert default policies that don't yet exist.  Returns rows inserted."""
    inserted = 0
    for key, (value, category, desc) in DEFAULT_POLICIES.items():
        if session.get(Policy, key) is None:
            session.add(Policy(
                key=key,
                value_json=json.dumps(value),
                category=category,
                description=desc,
            ))
            inserted += 1
    return inserted


def seed_badges(session: Session) -> int:
    """Insert catalogue badges whose code is missing.  Returns rows inserted."""
    existing = {b.code for b in session.query(Badge).all()}
    inserted = 0
    for code, (label, desc, seasonal, trigger, config) in DEFAULT_BADGES.items():
        if code in existing:
            continue
        session.add(Badge(
            code=code,
            label=label,
            description=desc,
            seasonal=seasonal,
            trigger_type=trigger.value,
            trigger_config=dict(config),
        ))
        inserted += 1
    return inserted


def seed_database(engine: Engine) -> None:
    """Seed policies and badges.  Safe to call repeatedly."""
    session = Session(engine)
    try:
        policies = seed_default_policies(session)
        badges = seed_badges(session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if policies or badges:
        logger.info("Seeded %d default policies and %d badges.", policies, badges)
