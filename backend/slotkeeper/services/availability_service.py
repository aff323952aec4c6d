"""
Availability calculator: lock-aware bookable capacity per slot.

available = total_capacity - confirmed_count - live locks held by *other* holders.
The caller's own hold is left out so a user mid-reservation still sees the seats they are holding.
Results are advisory snapshots; nothing here reserves anything. create_lock re-checks under a row lock.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotkeeper.core.clock import as_utc, utcnow
from slotkeeper.core.constants import SLOT_OPEN
from slotkeeper.core.errors import BookingSystemError, validate_quantity
from slotkeeper.core.holder import HolderIdentity
from slotkeeper.models.slot import TimeSlot
from slotkeeper.services.ledger import available_capacity, expire_stale_locks, held_quantities_by_slot

logger = logging.getLogger(__name__)


def _open_future_slots(db: Session, event_id: str, now: datetime) -> list[TimeSlot]:
    return (
        db.query(TimeSlot)
        .filter(
            TimeSlot.event_id == event_id,
            TimeSlot.status == SLOT_OPEN,
            TimeSlot.start_time > now,
        )
        .order_by(TimeSlot.start_time.asc())
        .all()
    )


def get_available_slots(
    db: Session,
    event_id: str,
    caller: HolderIdentity | None = None,
    *,
    now: datetime | None = None,
) -> list[dict]:
    """
    Open, future slots of event_id with available > 0, soonest first.
    Sweeps expired locks on those slots first so stale holds never hide capacity.
    """
    now = as_utc(now) if now is not None else utcnow()
    try:
        slots = _open_future_slots(db, event_id, now)
        slot_ids = [s.id for s in slots]
        expire_stale_locks(db, now, slot_ids=slot_ids)
        held = held_quantities_by_slot(db, slot_ids, now, exclude_holder=caller)
        out = []
        for s in slots:
            available = available_capacity(s, held.get(s.id, 0))
            if available <= 0:
                continue
            out.append(
                {
                    "slot_id": s.id,
                    "start_time": as_utc(s.start_time).isoformat(),
                    "end_time": as_utc(s.end_time).isoformat(),
                    "total_capacity": s.total_capacity,
                    "available": available,
                    "price": str(s.price),
                    "currency": s.currency,
                }
            )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("get_available_slots failed for event %s: %s", event_id, e)
        raise BookingSystemError(event_id=event_id) from e
    return out


def can_book_event(db: Session, event_id: str, quantity: int, *, now: datetime | None = None) -> dict:
    """
    Advisory pre-flight: is there room for quantity seats anywhere in the event right now?
    Returns {"can_book", "reason", "available_seats"}; never a guarantee.
    """
    quantity = validate_quantity(quantity)
    now = as_utc(now) if now is not None else utcnow()
    try:
        slots = _open_future_slots(db, event_id, now)
        held = held_quantities_by_slot(db, [s.id for s in slots], now)
        total = sum(max(0, available_capacity(s, held.get(s.id, 0))) for s in slots)
        db.rollback()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("can_book_event failed for event %s: %s", event_id, e)
        raise BookingSystemError(event_id=event_id) from e
    if total == 0:
        return {"can_book": False, "reason": "No available slots", "available_seats": 0}
    if total < quantity:
        return {"can_book": False, "reason": f"Only {total} seat(s) available", "available_seats": total}
    return {"can_book": True, "reason": None, "available_seats": total}
