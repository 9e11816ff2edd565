"""Create users, disasters and notifications tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: accounts, disaster reports and per-recipient
       notifications.
How:   Portable column types (sa.Uuid, JSON, timezone-aware DateTime) so the
       same revision runs on PostgreSQL and SQLite.

Foreign keys:
    disasters.reported_by_id          → users.id      ON DELETE CASCADE
    disasters.assigned_to_id          → users.id      ON DELETE SET NULL
    notifications.recipient_id        → users.id      ON DELETE CASCADE
    notifications.related_disaster_id → disasters.id  ON DELETE CASCADE

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("location", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("phone", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("skills", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("profile_image", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "disasters",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.JSON(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("estimated_casualties", sa.Integer(), nullable=True),
        sa.Column("estimated_damage", sa.String(20), nullable=True),
        sa.Column("emergency_contacts", sa.JSON(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reported_by_id", sa.Uuid(), nullable=False),
        sa.Column("assigned_to_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["reported_by_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_to_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_disasters_reported_by_id", "disasters", ["reported_by_id"])
    op.create_index("ix_disasters_assigned_to_id", "disasters", ["assigned_to_id"])
    op.create_index("idx_disasters_status_created_at", "disasters", ["status", "created_at"])
    op.create_index("idx_disasters_lat_lng", "disasters", ["latitude", "longitude"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("priority", sa.String(10), nullable=False, server_default=sa.text("'medium'")),
        sa.Column("action_url", sa.String(255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("recipient_id", sa.Uuid(), nullable=False),
        sa.Column("related_disaster_id", sa.Uuid(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["related_disaster_id"], ["disasters.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_notifications_recipient_created_at",
        "notifications",
        ["recipient_id", "created_at"],
    )
    op.create_index("ix_notifications_related_disaster_id", "notifications", ["related_disaster_id"])


def downgrade() -> None:
    """Drop all three tables, children first. Destroys all data."""
    op.drop_index("ix_notifications_related_disaster_id", table_name="notifications")
    op.drop_index("idx_notifications_recipient_created_at", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_disasters_lat_lng", table_name="disasters")
    op.drop_index("idx_disasters_status_created_at", table_name="disasters")
    op.drop_index("ix_disasters_assigned_to_id", table_name="disasters")
    op.drop_index("ix_disasters_reported_by_id", table_name="disasters")
    op.drop_table("disasters")

    op.drop_index("idx_users_role_active", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
