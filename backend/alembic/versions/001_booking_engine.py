"""Booking engine tables: time_slots, slot_locks, bookings, booking_attempts

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "time_slots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(64), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_capacity", sa.Integer(), nullable=False),
        sa.Column("confirmed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(16), nullable=False, server_default="open"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("total_capacity > 0", name="ck_time_slots_capacity_positive"),
        sa.CheckConstraint("confirmed_count >= 0", name="ck_time_slots_confirmed_non_negative"),
        sa.CheckConstraint("confirmed_count <= total_capacity", name="ck_time_slots_confirmed_within_capacity"),
        sa.CheckConstraint("end_time > start_time", name="ck_time_slots_time_order"),
        sa.CheckConstraint("status IN ('open', 'full', 'withdrawn')", name="ck_time_slots_status"),
    )
    op.create_index("ix_time_slots_event_id", "time_slots", ["event_id"])
    op.create_index("ix_time_slots_start_time", "time_slots", ["start_time"])

    op.create_table(
        "slot_locks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("slot_id", sa.String(36), sa.ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("session_token", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("release_reason", sa.String(16), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_slot_locks_quantity_positive"),
        sa.CheckConstraint("(user_id IS NULL) <> (session_token IS NULL)", name="ck_slot_locks_single_holder"),
    )
    op.create_index("ix_slot_locks_user_id", "slot_locks", ["user_id"])
    op.create_index("ix_slot_locks_session_token", "slot_locks", ["session_token"])
    op.create_index("ix_slot_locks_slot_active_expires", "slot_locks", ["slot_id", "is_active", "expires_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("slot_id", sa.String(36), sa.ForeignKey("time_slots.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "lock_id", sa.String(36), sa.ForeignKey("slot_locks.id", ondelete="SET NULL"), nullable=True, unique=True
        ),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("session_token", sa.String(64), nullable=True),
        sa.Column("first_name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="confirmed"),
        sa.Column("reference_code", sa.String(32), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_bookings_quantity_positive"),
        sa.CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'no_show', 'completed')", name="ck_bookings_status"
        ),
    )
    op.create_index("ix_bookings_slot_id", "bookings", ["slot_id"])
    op.create_index("ix_bookings_reference_code", "bookings", ["reference_code"], unique=True)

    op.create_table(
        "booking_attempts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slot_id", sa.String(36), nullable=True),
        sa.Column("lock_id", sa.String(36), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("failure_code", sa.String(32), nullable=True),
        sa.Column("attempted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_booking_attempts_id", "booking_attempts", ["id"])
    op.create_index("ix_booking_attempts_slot_id", "booking_attempts", ["slot_id"])


def downgrade() -> None:
    op.drop_table("booking_attempts")
    op.drop_table("bookings")
    op.drop_table("slot_locks")
    op.drop_table("time_slots")
