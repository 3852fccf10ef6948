"""users, notification types, notifications

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "notification_types",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
    )
    op.create_index("ix_notification_types_name", "notification_types", ["name"], unique=True)

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "notification_type_id",
            sa.Integer(),
            sa.ForeignKey("notification_types.id"),
            nullable=True,
        ),
        sa.Column("subject", sa.Text(), nullable=False, server_default=""),
        sa.Column("seen", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payload_json", sa.JSON(), nullable=False),
        sa.Column("time_created", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index(
        "ix_notifications_notification_type_id",
        "notifications",
        ["notification_type_id"],
        unique=False,
    )
    op.create_index("ix_notifications_seen", "notifications", ["seen"], unique=False)
    op.create_index("ix_notifications_deleted", "notifications", ["deleted"], unique=False)
    op.create_index(
        "ix_notifications_time_created", "notifications", ["time_created"], unique=False
    )
    op.create_index(
        "ix_notifications_user_id_time_created_id",
        "notifications",
        ["user_id", "time_created", "id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id_time_created_id", table_name="notifications")
    op.drop_index("ix_notifications_time_created", table_name="notifications")
    op.drop_index("ix_notifications_deleted", table_name="notifications")
    op.drop_index("ix_notifications_seen", table_name="notifications")
    op.drop_index("ix_notifications_notification_type_id", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_notification_types_name", table_name="notification_types")
    op.drop_table("notification_types")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
