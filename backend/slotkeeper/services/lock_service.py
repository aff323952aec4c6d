"""
Lock manager: create, verify, release and sweep temporary holds on slot capacity.

- create_lock runs under a row lock on the slot: recompute availability from the ledger,
  retire the holder's previous lock on the slot, insert the new one. Expiry is server-assigned.
- verify_lock reports NotFound / Released / Expired; an expired-but-flagged lock is switched off as a side effect.
- release_lock is idempotent and never raises; expiry is the backstop when it fails.
- sweep_expired_locks is the periodic tidy-up; correctness never depends on it.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotkeeper.config import settings
from slotkeeper.core.clock import as_utc, utcnow
from slotkeeper.core.constants import (
    ATTEMPT_ABANDONED,
    LOCK_EXPIRED,
    LOCK_NOT_FOUND,
    LOCK_RELEASED,
    RELEASE_EXPIRED,
    RELEASE_RELEASED,
    RELEASE_SUPERSEDED,
    SLOT_FULL,
    SLOT_OPEN,
)
from slotkeeper.core.errors import (
    BookingError,
    BookingSystemError,
    CapacityExceeded,
    SlotNotAvailable,
    SlotNotFound,
    validate_quantity,
)
from slotkeeper.core.holder import HolderIdentity
from slotkeeper.models.slot_lock import SlotLock
from slotkeeper.services import attempt_log
from slotkeeper.services.ledger import (
    available_capacity,
    expire_stale_locks,
    held_by,
    held_quantity,
    load_slot_for_update,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockGrant:
    """Result of a successful create_lock. expires_at is the only source of truth for time remaining."""

    lock_id: str
    slot_id: str
    quantity: int
    expires_at: datetime
    holder: HolderIdentity

    def to_dict(self) -> dict:
        return {
            "lock_id": self.lock_id,
            "slot_id": self.slot_id,
            "quantity": self.quantity,
            "expires_at": self.expires_at.isoformat(),
            # Returned so an anonymous caller can keep using the same holder identity.
            "session_token": self.holder.session_token,
        }


@dataclass(frozen=True)
class LockStatus:
    valid: bool
    reason: str | None
    expires_at: datetime | None
    slot_id: str | None = None
    quantity: int | None = None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.valid,
            "reason": self.reason,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "slot_id": self.slot_id,
            "quantity": self.quantity,
        }


def lock_ttl() -> timedelta:
    return timedelta(minutes=settings.lock_ttl_minutes)


def create_lock(
    db: Session,
    slot_id: str,
    quantity: int,
    holder: HolderIdentity | None = None,
    *,
    now: datetime | None = None,
    ttl: timedelta | None = None,
) -> LockGrant:
    """
    Reserve quantity seats on slot_id for holder until now + TTL.

    Raises InvalidQuantity, SlotNotFound, SlotNotAvailable, CapacityExceeded, or BookingSystemError.
    A holder that already has a live lock on this slot gets it replaced, never accumulated.
    With holder=None a fresh anonymous session token is issued (see LockGrant.holder).
    """
    quantity = validate_quantity(quantity)
    holder = holder or HolderIdentity.anonymous()
    now = as_utc(now) if now is not None else utcnow()
    ttl = lock_ttl() if ttl is None else ttl
    try:
        slot = load_slot_for_update(db, slot_id)
        if slot is None:
            raise SlotNotFound(slot_id=slot_id)
        if slot.status == SLOT_FULL:
            raise CapacityExceeded(slot_id=slot_id, requested=quantity, available=0)
        if slot.status != SLOT_OPEN:
            raise SlotNotAvailable(slot_id=slot_id, status=slot.status)
        if as_utc(slot.start_time) <= now:
            raise SlotNotAvailable("That time slot has already started.", slot_id=slot_id)

        expire_stale_locks(db, now, slot_ids=[slot_id])
        superseded = _retire_holder_locks(db, slot_id, holder, now)

        held = held_quantity(db, slot_id, now)
        available = available_capacity(slot, held)
        if quantity > available:
            raise CapacityExceeded(slot_id=slot_id, requested=quantity, available=max(0, available))

        lock_id = str(uuid.uuid4())
        expires_at = now + ttl
        db.add(
            SlotLock(
                id=lock_id,
                slot_id=slot_id,
                user_id=holder.user_id,
                session_token=holder.session_token,
                quantity=quantity,
                created_at=now,
                expires_at=expires_at,
                is_active=True,
            )
        )
        db.commit()
    except BookingError:
        # Also restores a superseded lock: a failed retry never costs the holder their current hold.
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("create_lock failed for slot %s: %s", slot_id, e)
        raise BookingSystemError(slot_id=slot_id) from e

    logger.info(
        "Lock %s: %s seat(s) on slot %s for %s until %s (superseded %s)",
        lock_id, quantity, slot_id, holder, expires_at.isoformat(), superseded,
    )
    return LockGrant(
        lock_id=lock_id,
        slot_id=slot_id,
        quantity=quantity,
        expires_at=expires_at,
        holder=holder,
    )


def _retire_holder_locks(db: Session, slot_id: str, holder: HolderIdentity, now: datetime) -> int:
    """One active lock per holder per slot: switch off whatever the holder still has here."""
    result = db.execute(
        update(SlotLock)
        .where(SlotLock.slot_id == slot_id, SlotLock.is_active.is_(True), held_by(holder))
        .values(is_active=False, released_at=now, release_reason=RELEASE_SUPERSEDED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def verify_lock(db: Session, lock_id: str, *, now: datetime | None = None) -> LockStatus:
    """
    Server-authoritative check of a lock. Expired locks are switched off here.
    Raises BookingSystemError on database failure.
    """
    now = as_utc(now) if now is not None else utcnow()
    try:
        lock = db.query(SlotLock).filter(SlotLock.id == lock_id).one_or_none()
        if lock is None:
            db.rollback()
            return LockStatus(valid=False, reason=LOCK_NOT_FOUND, expires_at=None)
        expires_at = as_utc(lock.expires_at)
        if not lock.is_active:
            reason = LOCK_EXPIRED if lock.release_reason == RELEASE_EXPIRED else LOCK_RELEASED
            status = LockStatus(False, reason, expires_at, lock.slot_id, lock.quantity)
            db.rollback()
            return status
        if expires_at <= now:
            status = LockStatus(False, LOCK_EXPIRED, expires_at, lock.slot_id, lock.quantity)
            _deactivate(db, lock_id, now, RELEASE_EXPIRED)
            db.commit()
            logger.info("Lock %s expired at %s (found on verify)", lock_id, expires_at.isoformat())
            return status
        status = LockStatus(True, None, expires_at, lock.slot_id, lock.quantity)
        db.rollback()
        return status
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("verify_lock failed for %s: %s", lock_id, e)
        raise BookingSystemError(lock_id=lock_id) from e


def release_lock(db: Session, lock_id: str, *, now: datetime | None = None) -> bool:
    """
    Best-effort, idempotent release. True only if this call switched a live lock off;
    a lock already past its expiry stays Expired.
    Never raises: a lock that could not be released simply runs out at its expiry.
    """
    now = as_utc(now) if now is not None else utcnow()
    try:
        released = _deactivate(db, lock_id, now, RELEASE_RELEASED, live_only=True) == 1
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("release_lock %s failed (expiry will reclaim it): %s", lock_id, e)
        return False
    if released:
        logger.info("Lock %s released", lock_id)
        attempt_log.record_attempt(db, status=ATTEMPT_ABANDONED, lock_id=lock_id)
    return released


def sweep_expired_locks(db: Session, *, now: datetime | None = None) -> int:
    """Switch off every lock past its expiry. Returns how many rows changed."""
    now = as_utc(now) if now is not None else utcnow()
    try:
        count = expire_stale_locks(db, now)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("sweep_expired_locks failed: %s", e)
        raise BookingSystemError() from e
    if count:
        logger.info("Swept %s expired locks", count)
    return count


def _deactivate(db: Session, lock_id: str, now: datetime, reason: str, *, live_only: bool = False) -> int:
    """
    Conditional flip of one lock; only an active row changes, so repeats are no-ops.
    With live_only, a row already past its expiry is left for the expiry path.
    """
    stmt = update(SlotLock).where(SlotLock.id == lock_id, SlotLock.is_active.is_(True))
    if live_only:
        stmt = stmt.where(SlotLock.expires_at > now)
    result = db.execute(
        stmt
        .values(is_active=False, released_at=now, release_reason=reason)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
