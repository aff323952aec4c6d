"""
Expired-lock sweep: every LOCK_SWEEP_INTERVAL_SECONDS, switch off locks whose expiry has passed.

Housekeeping only. Availability, create_lock and complete_booking all ignore expired locks
on their own, so a missed or failed run never affects correctness.
"""
import logging

from slotkeeper.db.session import SessionLocal
from slotkeeper.services.lock_service import sweep_expired_locks

logger = logging.getLogger(__name__)


def run_lock_sweep_job(session_factory=SessionLocal) -> int:
    db = session_factory()
    try:
        count = sweep_expired_locks(db)
        if count:
            logger.info("Lock sweep job: %s locks expired", count)
        else:
            logger.debug("Lock sweep job: nothing to expire")
        return count
    except Exception as e:
        logger.exception("Lock sweep job failed: %s", e)
        return 0
    finally:
        db.close()
