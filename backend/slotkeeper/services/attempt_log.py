"""Booking attempt log (success / failed / abandoned) for reporting. Writes never affect a booking outcome."""
import logging

from sqlalchemy.orm import Session

from slotkeeper.models.booking_attempt import BookingAttempt

logger = logging.getLogger(__name__)


def attempt_row(
    *,
    status: str,
    slot_id: str | None = None,
    lock_id: str | None = None,
    email: str | None = None,
    failure_code: str | None = None,
) -> BookingAttempt:
    return BookingAttempt(
        slot_id=slot_id,
        lock_id=lock_id,
        email=email,
        status=status,
        failure_code=failure_code,
    )


def record_attempt(db: Session, **fields) -> bool:
    """Insert one attempt row in its own transaction. Returns False (and logs) if that fails."""
    try:
        db.add(attempt_row(**fields))
        db.commit()
        return True
    except Exception as e:
        db.rollback()
        logger.warning("Could not record booking attempt %s: %s", fields.get("status"), e)
        return False


def recent_attempts(db: Session, limit: int = 100) -> list[dict]:
    """Newest attempts first, as dicts."""
    rows = (
        db.query(BookingAttempt)
        .order_by(BookingAttempt.attempted_at.desc(), BookingAttempt.id.desc())
        .limit(limit)
        .all()
    )
    out = [
        {
            "id": r.id,
            "slot_id": r.slot_id,
            "lock_id": r.lock_id,
            "email": r.email,
            "status": r.status,
            "failure_code": r.failure_code,
            "attempted_at": r.attempted_at.isoformat() if r.attempted_at else None,
        }
        for r in rows
    ]
    db.rollback()
    return out
