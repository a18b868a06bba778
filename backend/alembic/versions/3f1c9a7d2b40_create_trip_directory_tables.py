"""create trip directory tables

Revision ID: 3f1c9a7d2b40
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import text

# revision identifiers, used by Alembic.
revision = "3f1c9a7d2b40"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_NAME_INDEX = "uq_trip_members_active_display_name"


def upgrade() -> None:
    op.create_table(
        "trips",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("pin_hash", sa.String(length=255), nullable=False),
        sa.Column("pin_rotated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pin_rotated_by", sa.String(length=32), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("activity_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_by", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "trip_members",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "trip_id",
            sa.String(length=32),
            sa.ForeignKey("trips.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("is_creator", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_child", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("removed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("removed_by", sa.String(length=32), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_trip_members_trip_id", "trip_members", ["trip_id"])

    # display names only need to be unique among ACTIVE members
    op.create_index(
        ACTIVE_NAME_INDEX,
        "trip_members",
        ["trip_id", "display_name"],
        unique=True,
        postgresql_where=text("state = 'active'"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "trip_id",
            sa.String(length=32),
            sa.ForeignKey("trips.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("message", sa.String(length=500), nullable=False),
        sa.Column("created_by", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("read_by", sa.JSON(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
    )
    op.create_index("ix_notifications_trip_id", "notifications", ["trip_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_trip_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index(ACTIVE_NAME_INDEX, table_name="trip_members")
    op.drop_index("ix_trip_members_trip_id", table_name="trip_members")
    op.drop_table("trip_members")
    op.drop_table("trips")
