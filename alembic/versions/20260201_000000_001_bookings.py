"""Bookings table for slot holds and confirmations.

Revision ID: 001
Revises:
Create Date: 2026-02-01 00:00:00.000000

Adds:
- bookings table with the three capability tokens
- slot_key unique constraint serialising live claims on a slot
- composite indexes for overlap, calendar and expiry queries
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the bookings table."""

    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        # Capability tokens
        sa.Column("session_token", sa.String(80), nullable=False),
        sa.Column("cancel_token", sa.String(64), nullable=False),
        sa.Column("reschedule_token", sa.String(64), nullable=False),
        # Slot
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("time", sa.String(5), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("slot_key", sa.String(16), nullable=True),
        # Lifecycle
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locale", sa.String(5), nullable=False),
        # Contact
        sa.Column("contact_full_name", sa.String(200), nullable=True),
        sa.Column("contact_email", sa.String(320), nullable=True),
        sa.Column("contact_phone", sa.String(20), nullable=True),
        sa.Column("contact_clinic_name", sa.String(200), nullable=True),
        sa.Column("contact_message", sa.Text(), nullable=True),
        sa.Column("roi", sa.JSON(), nullable=True),
        # Confirmation message tracking
        sa.Column(
            "notification_sent",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("notification_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notification_provider", sa.String(50), nullable=True),
        sa.Column("notification_message_id", sa.String(200), nullable=True),
        sa.Column("notification_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_bookings"),
        sa.UniqueConstraint("slot_key", name="uq_bookings_slot_key"),
    )

    op.create_index(
        "ix_bookings_session_token", "bookings", ["session_token"], unique=True
    )
    op.create_index(
        "ix_bookings_cancel_token", "bookings", ["cancel_token"], unique=True
    )
    op.create_index(
        "ix_bookings_reschedule_token", "bookings", ["reschedule_token"], unique=True
    )
    op.create_index("ix_bookings_date", "bookings", ["date"])
    op.create_index("ix_bookings_start_at", "bookings", ["start_at"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index(
        "ix_bookings_start_end_status", "bookings", ["start_at", "end_at", "status"]
    )
    op.create_index("ix_bookings_date_time", "bookings", ["date", "time"])
    op.create_index(
        "ix_bookings_status_expires_at", "bookings", ["status", "expires_at"]
    )


def downgrade() -> None:
    """Drop the bookings table."""
    op.drop_index("ix_bookings_status_expires_at", table_name="bookings")
    op.drop_index("ix_bookings_date_time", table_name="bookings")
    op.drop_index("ix_bookings_start_end_status", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_start_at", table_name="bookings")
    op.drop_index("ix_bookings_date", table_name="bookings")
    op.drop_index("ix_bookings_reschedule_token", table_name="bookings")
    op.drop_index("ix_bookings_cancel_token", table_name="bookings")
    op.drop_index("ix_bookings_session_token", table_name="bookings")
    op.drop_table("bookings")
