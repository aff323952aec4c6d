"""
Booking finalizer: turn one valid lock into a confirmed booking, atomically.

Order inside the transaction (slot row first, then lock row, same order create_lock uses):
  1. lock must be active and unexpired, else LockExpired
  2. quantity must match the lock and still fit the slot (this lock's own hold excluded),
     else CapacityChanged / CapacityExceeded
  3. insert booking with a unique reference code, bump confirmed_count (flip to full at capacity),
     consume the lock; one commit.

Terminal failures (LockExpired, CapacityChanged, CapacityExceeded) retire the lock. Anything else,
e.g. a database fault, rolls back and leaves the lock usable until its natural expiry.
"""
from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotkeeper.config import settings
from slotkeeper.core.clock import as_utc, utcnow
from slotkeeper.core.constants import (
    ATTEMPT_FAILED,
    ATTEMPT_SUCCESS,
    BOOKING_CONFIRMED,
    LOCK_EXPIRED,
    LOCK_NOT_FOUND,
    LOCK_RELEASED,
    REFERENCE_ALPHABET,
    REFERENCE_PREFIX,
    REFERENCE_RANDOM_LENGTH,
    RELEASE_CONSUMED,
    RELEASE_EXPIRED,
    RELEASE_RELEASED,
    SLOT_FULL,
    SLOT_WITHDRAWN,
)
from slotkeeper.core.errors import (
    BookingError,
    BookingSystemError,
    CapacityChanged,
    CapacityExceeded,
    LockExpired,
    validate_quantity,
)
from slotkeeper.models.booking import Booking
from slotkeeper.models.slot import TimeSlot
from slotkeeper.models.slot_lock import SlotLock
from slotkeeper.services import attempt_log
from slotkeeper.services.ledger import available_capacity, held_quantity, load_slot_for_update

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$"


class ContactDetails(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=128)
    last_name: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    phone: str | None = Field(None, max_length=32)
    notes: str | None = Field(None, max_length=2000)


@dataclass(frozen=True)
class ConfirmedBooking:
    id: str
    reference_code: str
    slot_id: str
    event_id: str
    start_time: datetime
    end_time: datetime
    first_name: str
    last_name: str
    email: str
    phone: str | None
    notes: str | None
    quantity: int
    price: Decimal
    currency: str
    status: str
    confirmed_at: datetime

    def to_dict(self) -> dict:
        out = asdict(self)
        for key in ("start_time", "end_time", "confirmed_at"):
            out[key] = out[key].isoformat()
        out["price"] = str(self.price)
        return out


def generate_reference_code(now: datetime) -> str:
    """Human-shareable code, e.g. BK-20261019-7KQ2MXRP."""
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_RANDOM_LENGTH))
    return f"{REFERENCE_PREFIX}-{now:%Y%m%d}-{suffix}"


def _unique_reference(db: Session, now: datetime) -> str:
    for attempt in range(1, settings.reference_code_max_attempts + 1):
        code = generate_reference_code(now)
        taken = db.query(Booking.id).filter(Booking.reference_code == code).first()
        if taken is None:
            return code
        logger.warning("Reference code collision on attempt %s; regenerating", attempt)
    raise BookingSystemError("Could not allocate a booking reference. Please try again.")


def complete_booking(
    db: Session,
    lock_id: str,
    contact: ContactDetails,
    quantity: int,
    *,
    now: datetime | None = None,
) -> ConfirmedBooking:
    """
    Consume lock_id and confirm quantity seats for contact. quantity is required and re-validated.

    Raises InvalidQuantity (lock untouched), LockExpired / CapacityChanged / CapacityExceeded
    (lock retired, restart from slot selection), or BookingSystemError (lock untouched, retry).
    """
    quantity = validate_quantity(quantity)
    now = as_utc(now) if now is not None else utcnow()
    slot_id: str | None = None
    try:
        slot_id = db.query(SlotLock.slot_id).filter(SlotLock.id == lock_id).scalar()
        if slot_id is None:
            raise LockExpired(lock_id=lock_id, reason=LOCK_NOT_FOUND)
        slot = load_slot_for_update(db, slot_id)
        lock = db.query(SlotLock).filter(SlotLock.id == lock_id).with_for_update().one()

        if not lock.is_active:
            reason = LOCK_EXPIRED if lock.release_reason == RELEASE_EXPIRED else LOCK_RELEASED
            raise LockExpired(lock_id=lock_id, reason=reason)
        if as_utc(lock.expires_at) <= now:
            raise LockExpired(lock_id=lock_id, reason=LOCK_EXPIRED)
        if quantity != lock.quantity:
            raise CapacityChanged(
                f"Quantity mismatch: requested {quantity}, reserved {lock.quantity}.",
                lock_id=lock_id,
                requested=quantity,
                locked=lock.quantity,
            )
        if slot is None or slot.status == SLOT_WITHDRAWN:
            raise CapacityChanged(lock_id=lock_id, slot_id=slot_id)

        others = held_quantity(db, slot.id, now, exclude_lock_id=lock.id)
        available = available_capacity(slot, others)
        if quantity > available:
            raise CapacityExceeded(
                lock_id=lock_id, slot_id=slot.id, requested=quantity, available=max(0, available)
            )

        booking = Booking(
            id=str(uuid.uuid4()),
            slot_id=slot.id,
            lock_id=lock.id,
            user_id=lock.user_id,
            session_token=lock.session_token,
            first_name=contact.first_name.strip(),
            last_name=contact.last_name.strip(),
            email=contact.email.strip(),
            phone=(contact.phone or "").strip() or None,
            notes=_booking_notes(contact.notes, quantity),
            quantity=quantity,
            status=BOOKING_CONFIRMED,
            reference_code=_unique_reference(db, now),
            confirmed_at=now,
            created_at=now,
        )
        db.add(booking)
        _apply_capacity(slot, quantity)
        _consume_lock(lock, now)
        db.add(
            attempt_log.attempt_row(
                status=ATTEMPT_SUCCESS, slot_id=slot.id, lock_id=lock_id, email=booking.email
            )
        )
        result = _confirmed(booking, slot)
        db.commit()
    except BookingError as e:
        db.rollback()
        if e.terminal_for_lock:
            _retire_lock(db, lock_id, now, RELEASE_EXPIRED if isinstance(e, LockExpired) else RELEASE_RELEASED)
        logger.info("complete_booking %s rejected: %s %s", lock_id, e.code, e.details)
        attempt_log.record_attempt(
            db, status=ATTEMPT_FAILED, slot_id=slot_id, lock_id=lock_id, email=contact.email, failure_code=e.code
        )
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("complete_booking %s failed; lock left intact: %s", lock_id, e)
        attempt_log.record_attempt(
            db,
            status=ATTEMPT_FAILED,
            slot_id=slot_id,
            lock_id=lock_id,
            email=contact.email,
            failure_code=BookingSystemError.code,
        )
        raise BookingSystemError(lock_id=lock_id) from e

    logger.info(
        "Booking %s confirmed: %s seat(s) on slot %s (lock %s)",
        result.reference_code, quantity, result.slot_id, lock_id,
    )
    return result


def _booking_notes(notes: str | None, quantity: int) -> str | None:
    notes = (notes or "").strip()
    if notes:
        return notes
    if quantity > 1:
        return f"Group booking: {quantity} seats"
    return None


def _apply_capacity(slot: TimeSlot, quantity: int) -> None:
    """Ledger write: confirmed_count += quantity, slot goes full when it reaches capacity."""
    slot.confirmed_count = int(slot.confirmed_count or 0) + quantity
    if slot.confirmed_count >= slot.total_capacity:
        slot.status = SLOT_FULL


def _consume_lock(lock: SlotLock, now: datetime) -> None:
    lock.is_active = False
    lock.released_at = now
    lock.release_reason = RELEASE_CONSUMED


def _retire_lock(db: Session, lock_id: str, now: datetime, reason: str) -> None:
    """Switch off a lock that can no longer complete. Best effort; expiry covers a failure here."""
    try:
        updated = (
            db.query(SlotLock)
            .filter(SlotLock.id == lock_id, SlotLock.is_active.is_(True))
            .update(
                {"is_active": False, "released_at": now, "release_reason": reason},
                synchronize_session=False,
            )
        )
        db.commit()
        if updated:
            logger.info("Lock %s retired (%s) after terminal failure", lock_id, reason)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Could not retire lock %s: %s", lock_id, e)


def _confirmed(booking: Booking, slot: TimeSlot) -> ConfirmedBooking:
    return ConfirmedBooking(
        id=booking.id,
        reference_code=booking.reference_code,
        slot_id=slot.id,
        event_id=slot.event_id,
        start_time=as_utc(slot.start_time),
        end_time=as_utc(slot.end_time),
        first_name=booking.first_name,
        last_name=booking.last_name,
        email=booking.email,
        phone=booking.phone,
        notes=booking.notes,
        quantity=booking.quantity,
        price=Decimal(str(slot.price if slot.price is not None else 0)),
        currency=slot.currency or settings.default_currency,
        status=booking.status,
        confirmed_at=as_utc(booking.confirmed_at),
    )


def get_booking_by_reference(db: Session, reference_code: str) -> ConfirmedBooking | None:
    """Look up a booking for the confirmation page. Reference codes are matched case-insensitively."""
    code = (reference_code or "").strip().upper()
    if not code:
        return None
    row = (
        db.query(Booking, TimeSlot)
        .join(TimeSlot, TimeSlot.id == Booking.slot_id)
        .filter(Booking.reference_code == code)
        .one_or_none()
    )
    if row is None:
        db.rollback()
        return None
    booking, slot = row
    result = _confirmed(booking, slot)
    db.rollback()
    return result
