"""Capacity ledger row: one bookable time window with its total and confirmed capacity."""
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from slotkeeper.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(String(64), nullable=False, index=True)  # parent event; display metadata lives elsewhere
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)
    total_capacity = Column(Integer, nullable=False)
    confirmed_count = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="open")  # open | full | withdrawn
    price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("total_capacity > 0", name="ck_time_slots_capacity_positive"),
        CheckConstraint("confirmed_count >= 0", name="ck_time_slots_confirmed_non_negative"),
        CheckConstraint("confirmed_count <= total_capacity", name="ck_time_slots_confirmed_within_capacity"),
        CheckConstraint("end_time > start_time", name="ck_time_slots_time_order"),
        CheckConstraint("status IN ('open', 'full', 'withdrawn')", name="ck_time_slots_status"),
    )
