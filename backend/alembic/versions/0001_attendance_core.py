"""Create users, event log, sessions, summaries, time settings and admin tokens.

Revision ID: 0001_attendance_core
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_attendance_core"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "user_info",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("user_name", sa.String(255), nullable=True),
        sa.Column("department", sa.Integer(), nullable=False, server_default="99"),
        sa.Column("department_name", sa.String(100), nullable=True),
        sa.Column("passkey_hash", sa.String(64), nullable=False),
    )
    op.create_index("ix_user_info_id", "user_info", ["id"])
    op.create_index("ix_user_info_user_id", "user_info", ["user_id"], unique=True)
    op.create_index("ix_user_info_passkey_hash", "user_info", ["passkey_hash"], unique=True)

    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="department"),
        sa.Column("department", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_admin_users_id", "admin_users", ["id"])
    op.create_index("ix_admin_users_username", "admin_users", ["username"], unique=True)

    op.create_table(
        "checkins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("user_info.user_id"), nullable=False),
        sa.Column("action", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("is_synced", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("action IN ('IN', 'OUT')", name="ck_checkins_action"),
        sa.UniqueConstraint("user_id", "action", "created_at", name="uq_checkins_user_action_created_at"),
    )
    op.create_index("ix_checkins_id", "checkins", ["id"])
    op.create_index("ix_checkins_user_created", "checkins", ["user_id", "created_at"])

    op.create_table(
        "attendance_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("user_info.user_id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("session_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("checkin_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("checkout_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("checkin_latitude", sa.Float(), nullable=True),
        sa.Column("checkin_longitude", sa.Float(), nullable=True),
        sa.Column("checkout_latitude", sa.Float(), nullable=True),
        sa.Column("checkout_longitude", sa.Float(), nullable=True),
        sa.Column("checkin_location", sa.String(255), nullable=True),
        sa.Column("checkout_location", sa.String(255), nullable=True),
        sa.Column("is_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "date", "session_number", name="uq_attendance_sessions_user_date_number"
        ),
    )
    op.create_index("ix_attendance_sessions_id", "attendance_sessions", ["id"])
    op.create_index("ix_attendance_sessions_date", "attendance_sessions", ["date"])
    op.create_index("ix_attendance_sessions_user_date", "attendance_sessions", ["user_id", "date"])

    op.create_table(
        "attendance_summary",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("user_info.user_id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("first_checkin_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_checkout_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_work_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "date", name="uq_attendance_summary_user_date"),
    )
    op.create_index("ix_attendance_summary_id", "attendance_summary", ["id"])
    op.create_index("ix_attendance_summary_user_id", "attendance_summary", ["user_id"])
    op.create_index("ix_attendance_summary_date", "attendance_summary", ["date"])

    op.create_table(
        "user_time_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(255),
            sa.ForeignKey("user_info.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("on_duty_time", sa.Time(), nullable=False),
        sa.Column("off_duty_time", sa.Time(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_user_time_settings_id", "user_time_settings", ["id"])
    op.create_index("ix_user_time_settings_user_id", "user_time_settings", ["user_id"], unique=True)

    op.create_table(
        "admin_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("jti", sa.String(64), nullable=False),
        sa.Column(
            "admin_user_id",
            sa.Integer(),
            sa.ForeignKey("admin_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_admin_tokens_id", "admin_tokens", ["id"])
    op.create_index("ix_admin_tokens_jti", "admin_tokens", ["jti"], unique=True)
    op.create_index("ix_admin_tokens_expires_at", "admin_tokens", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_admin_tokens_expires_at", table_name="admin_tokens")
    op.drop_index("ix_admin_tokens_jti", table_name="admin_tokens")
    op.drop_index("ix_admin_tokens_id", table_name="admin_tokens")
    op.drop_table("admin_tokens")

    op.drop_index("ix_user_time_settings_user_id", table_name="user_time_settings")
    op.drop_index("ix_user_time_settings_id", table_name="user_time_settings")
    op.drop_table("user_time_settings")

    op.drop_index("ix_attendance_summary_date", table_name="attendance_summary")
    op.drop_index("ix_attendance_summary_user_id", table_name="attendance_summary")
    op.drop_index("ix_attendance_summary_id", table_name="attendance_summary")
    op.drop_table("attendance_summary")

    op.drop_index("ix_attendance_sessions_user_date", table_name="attendance_sessions")
    op.drop_index("ix_attendance_sessions_date", table_name="attendance_sessions")
    op.drop_index("ix_attendance_sessions_id", table_name="attendance_sessions")
    op.drop_table("attendance_sessions")

    op.drop_index("ix_checkins_user_created", table_name="checkins")
    op.drop_index("ix_checkins_id", table_name="checkins")
    op.drop_table("checkins")

    op.drop_index("ix_admin_users_username", table_name="admin_users")
    op.drop_index("ix_admin_users_id", table_name="admin_users")
    op.drop_table("admin_users")

    op.drop_index("ix_user_info_passkey_hash", table_name="user_info")
    op.drop_index("ix_user_info_user_id", table_name="user_info")
    op.drop_index("ix_user_info_id", table_name="user_info")
    op.drop_table("user_info")
