"""
shipyard.engine.events — Notification Events
==============================================

Events the engine publishes to the notification layer.  They are plain
frozen dataclasses; delivery is handled by
:class:`~shipyard.services.notification_service.Notifier` subscribers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

__all__ = [
    "BadgeEarned",
    "ReminderDue",
    "RolePromotion",
    "ScoreEntry",
    "SeasonEnded",
    "SeasonStarted",
    "WeeklyDigest",
]


@dataclass(frozen=True, slots=True)
class ScoreEntry:
    """One leaderboard row."""

    user_id: int
    points: int


@dataclass(frozen=True, slots=True)
class BadgeEarned:
    user_id: int
    badge_code: str
    label: str


@dataclass(frozen=True, slots=True)
class RolePromotion:
    user_id: int
    role_name: str


@dataclass(frozen=True, slots=True)
class SeasonStarted:
    season_id: int
    start_date: datetime
    end_date: datetime


@dataclass(frozen=True, slots=True)
class SeasonEnded:
    season_id: int
    start_date: datetime
    end_date: datetime
    top_scores: tuple[ScoreEntry, ...] = ()


@dataclass(frozen=True, slots=True)
class WeeklyDigest:
    """Community summary for one completed or in-progress week."""

    week_key: date
    actions_by_type: dict[str, int] = field(default_factory=dict)
    active_members: int = 0
    points_credited: int = 0
    top_scores: tuple[ScoreEntry, ...] = ()

    @property
    def total_actions(self) -> int:
        return sum(self.actions_by_type.values())


@dataclass(frozen=True, slots=True)
class ReminderDue:
    job_id: int
    payload: dict = field(default_factory=dict)
