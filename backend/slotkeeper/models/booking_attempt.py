"""Log of booking completion attempts (success, failure, abandoned hold). Reporting only."""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from slotkeeper.db.base import Base


class BookingAttempt(Base):
    __tablename__ = "booking_attempts"

    id = Column(Integer, primary_key=True, index=True)
    slot_id = Column(String(36), nullable=True, index=True)
    lock_id = Column(String(36), nullable=True)
    email = Column(String(255), nullable=True)
    status = Column(String(16), nullable=False)  # success | failed | abandoned
    failure_code = Column(String(32), nullable=True)  # null if success; BookingError.code if failed
    attempted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
