"""Temporary hold on N units of a slot's capacity.

Active means is_active AND expires_at > now. A row still flagged active past its expiry is inert;
every read path applies the expiry filter itself and the sweep job only tidies the flag.
Exactly one of user_id / session_token identifies the holder.
"""
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String

from slotkeeper.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class SlotLock(Base):
    __tablename__ = "slot_locks"

    id = Column(String(36), primary_key=True, default=_uuid)
    slot_id = Column(String(36), ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=True, index=True)
    session_token = Column(String(64), nullable=True, index=True)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    released_at = Column(DateTime(timezone=True), nullable=True)
    release_reason = Column(String(16), nullable=True)  # released | expired | consumed | superseded

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_slot_locks_quantity_positive"),
        CheckConstraint(
            "(user_id IS NULL) <> (session_token IS NULL)",
            name="ck_slot_locks_single_holder",
        ),
        Index("ix_slot_locks_slot_active_expires", "slot_id", "is_active", "expires_at"),
    )
