"""create polling and notification tables

Revision ID: 4f2c9a1d7e30
Revises:
Create Date: 2026-10-17 09:12:44.118203

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f2c9a1d7e30"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

SERVICE_TYPES = ("SONARR", "RADARR", "QBITTORRENT", "JELLYFIN")
NOTIFY_MODES = ("before_air", "once_in_window", "daily_digest")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
    ]


def upgrade() -> None:
    # Create enum types first (values match Python enum string values)
    servicetype_enum = postgresql.ENUM(*SERVICE_TYPES, name="servicetype", create_type=False)
    sa.Enum(*SERVICE_TYPES, name="servicetype").create(op.get_bind(), checkfirst=True)
    notifymode_enum = postgresql.ENUM(*NOTIFY_MODES, name="upcomingnotifymode", create_type=False)
    sa.Enum(*NOTIFY_MODES, name="upcomingnotifymode").create(op.get_bind(), checkfirst=True)

    op.create_table(
        "service_connections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", servicetype_enum, nullable=False, unique=True),
        sa.Column("url", sa.String(length=500), nullable=False),
        sa.Column("api_key", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "app_settings",
        sa.Column("id", sa.String(length=20), primary_key=True, server_default="singleton"),
        sa.Column("polling_interval_secs", sa.Integer(), server_default="30", nullable=False),
        sa.Column("upcoming_alert_hours", sa.Integer(), server_default="24", nullable=False),
        sa.Column(
            "upcoming_notify_mode", notifymode_enum, server_default="before_air", nullable=False
        ),
        sa.Column("upcoming_notify_before_mins", sa.Integer(), server_default="60", nullable=False),
        sa.Column("upcoming_daily_notify_hour", sa.Integer(), server_default="9", nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "polling_states",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("service_type", servicetype_enum, nullable=False, unique=True),
        sa.Column(
            "last_seen_ids",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("last_history_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_health_hash", sa.String(length=64), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
    )

    op.create_table(
        "push_subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("endpoint", sa.String(length=500), nullable=False, unique=True),
        sa.Column("p256dh_key", sa.String(length=200), nullable=False),
        sa.Column("auth_key", sa.String(length=100), nullable=False),
        sa.Column("device_name", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_push_subscriptions_id"), "push_subscriptions", ["id"])

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "subscription_id",
            sa.Integer(),
            sa.ForeignKey("push_subscriptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("tag_filter", sa.String(length=255), nullable=True),
        sa.Column("quality_filter", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("subscription_id", "event_type", name="uq_subscription_event_type"),
    )
    op.create_index(
        op.f("ix_notification_preferences_subscription_id"),
        "notification_preferences",
        ["subscription_id"],
    )

    op.create_table(
        "notification_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("read", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
    )
    op.create_index(
        op.f("ix_notification_history_event_type"), "notification_history", ["event_type"]
    )
    op.create_index(
        op.f("ix_notification_history_created_at"), "notification_history", ["created_at"]
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_notification_history_created_at"), table_name="notification_history")
    op.drop_index(op.f("ix_notification_history_event_type"), table_name="notification_history")
    op.drop_table("notification_history")
    op.drop_index(
        op.f("ix_notification_preferences_subscription_id"), table_name="notification_preferences"
    )
    op.drop_table("notification_preferences")
    op.drop_index(op.f("ix_push_subscriptions_id"), table_name="push_subscriptions")
    op.drop_table("push_subscriptions")
    op.drop_table("polling_states")
    op.drop_table("app_settings")
    op.drop_table("service_connections")

    sa.Enum(name="upcomingnotifymode").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="servicetype").drop(op.get_bind(), checkfirst=True)
