"""
Capacity ledger: the arithmetic shared by availability, lock creation and booking completion.

available = total_capacity - confirmed_count - sum(quantity of active, unexpired locks)

A lock counts only while is_active AND expires_at > now. The stored flag alone is never trusted,
so a sweep that has not run yet cannot make a slot look fuller than it is.
Callers that mutate capacity must hold the slot row (load_slot_for_update) for the whole transaction.
"""
import logging
from datetime import datetime

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Session

from slotkeeper.core.constants import RELEASE_EXPIRED
from slotkeeper.core.holder import HolderIdentity
from slotkeeper.models.slot import TimeSlot
from slotkeeper.models.slot_lock import SlotLock

logger = logging.getLogger(__name__)


def lock_is_live(now: datetime):
    """SQL condition for a lock that currently holds capacity."""
    return and_(SlotLock.is_active.is_(True), SlotLock.expires_at > now)


def held_by(holder: HolderIdentity):
    """SQL condition matching locks owned by holder."""
    if holder.user_id is not None:
        return SlotLock.user_id == holder.user_id
    return SlotLock.session_token == holder.session_token


def not_held_by(holder: HolderIdentity):
    # NULL-safe: an anonymous lock has user_id NULL, which would drop out of a plain != comparison.
    if holder.user_id is not None:
        return or_(SlotLock.user_id.is_(None), SlotLock.user_id != holder.user_id)
    return or_(SlotLock.session_token.is_(None), SlotLock.session_token != holder.session_token)


def load_slot_for_update(db: Session, slot_id: str) -> TimeSlot | None:
    """Fetch the slot row with a row lock (SELECT ... FOR UPDATE). Serializes all capacity changes on it."""
    return db.query(TimeSlot).filter(TimeSlot.id == slot_id).with_for_update().one_or_none()


def held_quantity(
    db: Session,
    slot_id: str,
    now: datetime,
    *,
    exclude_lock_id: str | None = None,
    exclude_holder: HolderIdentity | None = None,
) -> int:
    """Sum of live lock quantities on one slot, optionally leaving out one lock or one holder's locks."""
    q = db.query(func.coalesce(func.sum(SlotLock.quantity), 0)).filter(
        SlotLock.slot_id == slot_id,
        lock_is_live(now),
    )
    if exclude_lock_id is not None:
        q = q.filter(SlotLock.id != exclude_lock_id)
    if exclude_holder is not None:
        q = q.filter(not_held_by(exclude_holder))
    return int(q.scalar() or 0)


def held_quantities_by_slot(
    db: Session,
    slot_ids: list[str],
    now: datetime,
    *,
    exclude_holder: HolderIdentity | None = None,
) -> dict[str, int]:
    """slot_id -> live held quantity for many slots in one query."""
    if not slot_ids:
        return {}
    q = (
        db.query(SlotLock.slot_id, func.coalesce(func.sum(SlotLock.quantity), 0))
        .filter(SlotLock.slot_id.in_(slot_ids), lock_is_live(now))
        .group_by(SlotLock.slot_id)
    )
    if exclude_holder is not None:
        q = q.filter(not_held_by(exclude_holder))
    return {slot_id: int(total or 0) for slot_id, total in q.all()}


def available_capacity(slot: TimeSlot, held: int) -> int:
    """Seats still bookable on slot given held seats. Can be negative after an admin capacity cut."""
    return int(slot.total_capacity) - int(slot.confirmed_count or 0) - int(held)


def expire_stale_locks(db: Session, now: datetime, *, slot_ids: list[str] | None = None) -> int:
    """
    Flip is_active off for locks whose expiry has passed. Does not commit.
    Optimization only: every capacity read already ignores expired locks.
    """
    stmt = (
        update(SlotLock)
        .where(SlotLock.is_active.is_(True), SlotLock.expires_at <= now)
        .values(is_active=False, released_at=now, release_reason=RELEASE_EXPIRED)
        .execution_options(synchronize_session=False)
    )
    if slot_ids is not None:
        if not slot_ids:
            return 0
        stmt = stmt.where(SlotLock.slot_id.in_(slot_ids))
    result = db.execute(stmt)
    count = result.rowcount or 0
    if count:
        logger.debug("Expired %s stale locks", count)
    return count
