"""Confirmed allocation of slot capacity, created only by consuming one lock."""
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text

from slotkeeper.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    slot_id = Column(String(36), ForeignKey("time_slots.id", ondelete="RESTRICT"), nullable=False, index=True)
    lock_id = Column(String(36), ForeignKey("slot_locks.id", ondelete="SET NULL"), nullable=True, unique=True)
    user_id = Column(String(64), nullable=True)
    session_token = Column(String(64), nullable=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    notes = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="confirmed")  # confirmed | cancelled | no_show | completed
    reference_code = Column(String(32), nullable=False, unique=True, index=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_bookings_quantity_positive"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'no_show', 'completed')",
            name="ck_bookings_status",
        ),
    )
