"""Initial scoring schema

Revision ID: 5e1c0a7b9d23
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "5e1c0a7b9d23"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "seasons",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="planned"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
    )
    # At most one active season
    op.create_index(
        "uq_seasons_single_active", "seasons", ["status"],
        unique=True, postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index("ix_seasons_status_start", "seasons", ["status", "start_date"])

    op.create_table(
        "actions",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("ref", sa.String(100), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("season_id", sa.Integer(), sa.ForeignKey("seasons.id"), nullable=False),
        sa.Column("week_key", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_actions_user_week", "actions", ["user_id", "week_key"])
    op.create_index("ix_actions_user_type", "actions", ["user_id", "type"])
    op.create_index("ix_actions_week", "actions", ["week_key"])
    op.create_index("ix_actions_user_time", "actions", ["user_id", "created_at"])

    op.create_table(
        "scores",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("season_id", sa.Integer(), sa.ForeignKey("seasons.id"), primary_key=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_scores_season_points", "scores", ["season_id", "points"])

    op.create_table(
        "streaks",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("weekly_current", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("weekly_best", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_week_achieved", sa.Date(), nullable=True),
        sa.Column("last_rollup_week", sa.Date(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "badges",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("label", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("seasonal", sa.Boolean(), server_default="false"),
        sa.Column("trigger_type", sa.String(30), nullable=False, server_default="manual"),
        sa.Column("trigger_config", postgresql.JSONB(), nullable=True),
        sa.Column("active", sa.Boolean(), server_default="true"),
    )

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column(
            "badge_id", sa.Integer(),
            sa.ForeignKey("badges.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("season_id", sa.Integer(), sa.ForeignKey("seasons.id"), nullable=True),
        sa.Column("season_scope", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("awarded_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("granted_by", sa.BigInteger(), nullable=True),
        sa.UniqueConstraint(
            "user_id", "badge_id", "season_scope", name="uq_user_badges_scope",
        ),
    )
    op.create_index("ix_user_badges_user", "user_badges", ["user_id"])

    op.create_table(
        "policies",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_policies_category", "policies", ["category"])

    op.create_table(
        "scheduled_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("status", sa.String(12), nullable=False, server_default="pending"),
        sa.Column("recurring", sa.Boolean(), server_default="false"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_scheduled_jobs_status_due", "scheduled_jobs", ["status", "due_at"])
    op.create_index("ix_scheduled_jobs_kind_status", "scheduled_jobs", ["kind", "status"])


def downgrade() -> None:
    op.drop_table("scheduled_jobs")
    op.drop_table("policies")
    op.drop_table("user_badges")
    op.drop_table("badges")
    op.drop_table("streaks")
    op.drop_table("scores")
    op.drop_table("actions")
    op.drop_table("seasons")
