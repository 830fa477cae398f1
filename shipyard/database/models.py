"""
shipyard.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- actions         — Append-only action ledger (single source of truth)
- seasons         — Bounded scoring windows; at most one active
- scores          — Per (user, season) points accumulator
- streaks         — Per-user weekly streak + write lock row
- badges          — Badge catalogue with declarative award rule
- user_badges     — Badge grants, unique per (user, badge, season scope)
- policies        — Admin-configurable key-value store
- scheduled_jobs  — Durable "due at" records driving the scheduler
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Shipyard ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActionType(enum.StrEnum):
    """Closed set of actions the ledger accepts."""
    CHECK_IN = "check-in"
    MEETING_ATTEND = "meeting-attend"
    DEMO_POSTED = "demo-posted"
    DEMO_PRESENTED = "demo-presented"
    FEEDBACK_HELPFUL = "feedback-helpful"
    HELP_SOLVED = "help-solved"


class SeasonStatus(enum.StrEnum):
    PLANNED = "planned"
    ACTIVE = "active"
    CLOSED = "closed"


class BadgeTrigger(enum.StrEnum):
    """Defines what condition causes a badge to be awarded."""
    FIRST_ACTION = "first_action"
    ACTION_COUNT = "action_count"
    STREAK_REACHED = "streak_reached"
    MANUAL = "manual"


class JobStatus(enum.StrEnum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Seasons — bounded scoring windows
# ---------------------------------------------------------------------------
class Season(Base):
    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=SeasonStatus.PLANNED.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        # At most one active season
        Index(
            "uq_seasons_single_active",
            "status",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_seasons_status_start", "status", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Season id={self.id} status={self.status!r}>"


# ---------------------------------------------------------------------------
# Action — append-only ledger
# ---------------------------------------------------------------------------
class Action(Base):
    """One credited (or zero-credit) engagement event.

    Rows are never updated or deleted.  ``points`` is the value actually
    credited after the weekly cap, so summing it per week can never
    exceed ``points.max_per_week``.
    """
    __tablename__ = "actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    season_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("seasons.id"), nullable=False
    )
    week_key: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_actions_user_week", "user_id", "week_key"),
        Index("ix_actions_user_type", "user_id", "type"),
        Index("ix_actions_week", "week_key"),
        Index("ix_actions_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Action id={self.id} user={self.user_id} type={self.type} "
            f"points={self.points}>"
        )


# ---------------------------------------------------------------------------
# Score — per (user, season) accumulator
# ---------------------------------------------------------------------------
class Score(Base):
    __tablename__ = "scores"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    season_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("seasons.id"), primary_key=True
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_scores_season_points", "season_id", "points"),
    )

    def __repr__(self) -> str:
        return f"<Score user={self.user_id} season={self.season_id} points={self.points}>"


# ---------------------------------------------------------------------------
# Streak — weekly goal streak (also the per-user lock row)
# ---------------------------------------------------------------------------
class Streak(Base):
    __tablename__ = "streaks"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    weekly_current: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekly_best: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_week_achieved: Mapped[date | None] = mapped_column(Date, default=None)
    last_rollup_week: Mapped[date | None] = mapped_column(Date, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<Streak user={self.user_id} current={self.weekly_current} "
            f"best={self.weekly_best}>"
        )


# ---------------------------------------------------------------------------
# Badge — catalogue entry + award rule
# ---------------------------------------------------------------------------
class Badge(Base):
    """Static badge catalogue.

    ``trigger_type`` / ``trigger_config`` form the declarative rule table
    evaluated by :mod:`shipyard.engine.badges`.  Adding a badge is a row
    insert, not new control flow.
    """
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    seasonal: Mapped[bool] = mapped_column(Boolean, default=False)
    trigger_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=BadgeTrigger.MANUAL.value
    )
    trigger_config: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    holders: Mapped[list[UserBadge]] = relationship(back_populates="badge")

    def __repr__(self) -> str:
        return f"<Badge id={self.id} code={self.code!r}>"


# ---------------------------------------------------------------------------
# UserBadge — grant record
# ---------------------------------------------------------------------------
class UserBadge(Base):
    """A badge held by a user.

    ``season_scope`` is the season id for seasonal badges and ``0`` for
    everything else, so one unique constraint covers both scopes.
    ``season_id`` records the season that was active at award time.
    """
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    badge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False
    )
    season_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("seasons.id"), nullable=True
    )
    season_scope: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    granted_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    badge: Mapped[Badge] = relationship(back_populates="holders")

    __table_args__ = (
        UniqueConstraint(
            "user_id", "badge_id", "season_scope", name="uq_user_badges_scope",
        ),
        Index("ix_user_badges_user", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserBadge user={self.user_id} badge={self.badge_id} "
            f"scope={self.season_scope}>"
        )


# ---------------------------------------------------------------------------
# Policy — admin-configurable key-value store
# ---------------------------------------------------------------------------
class Policy(Base):
    """Key-value configuration store.

    Values are stored as JSON strings; typed accessors live in
    :class:`~shipyard.engine.cache.PolicyCache`.
    """
    __tablename__ = "policies"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_policies_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Policy key={self.key!r} category={self.category!r}>"


# ---------------------------------------------------------------------------
# ScheduledJob — durable "due at" record
# ---------------------------------------------------------------------------
class ScheduledJob(Base):
    """A unit of scheduled work picked up by the recurring scheduler tick.

    Survives process restarts and can be cancelled while pending.
    """
    __tablename__ = "scheduled_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    status: Mapped[str] = mapped_column(
        String(12), nullable=False, default=JobStatus.PENDING.value
    )
    recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        Index("ix_scheduled_jobs_status_due", "status", "due_at"),
        Index("ix_scheduled_jobs_kind_status", "kind", "status"),
    )

    def __repr__(self) -> str:
        return f"<ScheduledJob id={self.id} kind={self.kind!r} status={self.status!r}>"
