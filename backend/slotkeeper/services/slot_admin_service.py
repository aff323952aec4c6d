"""
Admin: generate and edit slots (the capacity ledger's administrative write path).

Not lock-aware: list_event_slots is for management screens only and must never
drive a booking decision. Capacity edits take the same slot row lock as the booking path.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotkeeper.config import settings
from slotkeeper.core.clock import as_utc, utcnow
from slotkeeper.core.constants import MAX_GENERATED_SLOTS, SLOT_FULL, SLOT_OPEN, SLOT_WITHDRAWN
from slotkeeper.core.errors import (
    BookingError,
    BookingSystemError,
    CapacityExceeded,
    SlotNotFound,
    validate_quantity,
)
from slotkeeper.db.tables import TRUNCATE_ORDER
from slotkeeper.models.slot import TimeSlot
from slotkeeper.services.ledger import held_quantities_by_slot, held_quantity, load_slot_for_update

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def _weekday_numbers(weekdays: list[str] | None) -> set[int]:
    if not weekdays:
        return set(range(7))
    out = set()
    for name in weekdays:
        key = (name or "").strip().lower()
        if key not in WEEKDAY_NAMES:
            raise ValueError(f"Unknown weekday: {name!r}")
        out.add(WEEKDAY_NAMES.index(key))
    return out


def plan_slot_windows(
    start_date: date,
    end_date: date,
    daily_start: time,
    daily_end: time,
    duration_minutes: int,
    buffer_minutes: int = 0,
    weekdays: list[str] | None = None,
    tz: str = "UTC",
) -> list[tuple[datetime, datetime]]:
    """
    (start, end) UTC pairs for back-to-back slots of duration_minutes, buffer_minutes apart,
    between daily_start and daily_end on each allowed weekday of [start_date, end_date].
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    if buffer_minutes < 0:
        raise ValueError("buffer_minutes must be >= 0")
    if end_date < start_date:
        raise ValueError("end_date must be on or after start_date")
    allowed = _weekday_numbers(weekdays)
    zone = ZoneInfo(tz)
    duration = timedelta(minutes=duration_minutes)
    step = duration + timedelta(minutes=buffer_minutes)
    windows: list[tuple[datetime, datetime]] = []
    day = start_date
    while day <= end_date:
        if day.weekday() in allowed:
            start = datetime.combine(day, daily_start, tzinfo=zone)
            day_end = datetime.combine(day, daily_end, tzinfo=zone)
            while start + duration <= day_end:
                windows.append((start.astimezone(timezone.utc), (start + duration).astimezone(timezone.utc)))
                if len(windows) > MAX_GENERATED_SLOTS:
                    raise ValueError(f"Refusing to generate more than {MAX_GENERATED_SLOTS} slots in one batch")
                start += step
        day += timedelta(days=1)
    return windows


def generate_event_slots(
    db: Session,
    event_id: str,
    start_date: date,
    end_date: date,
    daily_start: time,
    daily_end: time,
    duration_minutes: int,
    capacity_per_slot: int,
    *,
    buffer_minutes: int = 0,
    weekdays: list[str] | None = None,
    price: Decimal | float | int = 0,
    currency: str | None = None,
    tz: str = "UTC",
) -> int:
    """Insert the planned slots for event_id. Returns how many were created."""
    capacity_per_slot = validate_quantity(capacity_per_slot)
    windows = plan_slot_windows(
        start_date, end_date, daily_start, daily_end, duration_minutes, buffer_minutes, weekdays, tz
    )
    try:
        for start, end in windows:
            db.add(
                TimeSlot(
                    event_id=event_id,
                    start_time=start,
                    end_time=end,
                    total_capacity=capacity_per_slot,
                    confirmed_count=0,
                    status=SLOT_OPEN,
                    price=Decimal(str(price)),
                    currency=(currency or settings.default_currency).upper(),
                )
            )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("generate_event_slots failed for event %s: %s", event_id, e)
        raise BookingSystemError(event_id=event_id) from e
    logger.info("Generated %s slots for event %s (%s..%s)", len(windows), event_id, start_date, end_date)
    return len(windows)


def _slot_row(slot: TimeSlot, held: int) -> dict:
    return {
        "id": slot.id,
        "event_id": slot.event_id,
        "start_time": as_utc(slot.start_time).isoformat(),
        "end_time": as_utc(slot.end_time).isoformat(),
        "total_capacity": slot.total_capacity,
        "confirmed_count": slot.confirmed_count,
        "held_count": held,
        "status": slot.status,
        "price": str(slot.price),
        "currency": slot.currency,
    }


def list_event_slots(db: Session, event_id: str, *, now: datetime | None = None) -> list[dict]:
    """Every slot of the event with confirmed and currently-held counts. Management view only."""
    now = as_utc(now) if now is not None else utcnow()
    slots = db.query(TimeSlot).filter(TimeSlot.event_id == event_id).order_by(TimeSlot.start_time.asc()).all()
    held = held_quantities_by_slot(db, [s.id for s in slots], now)
    rows = [_slot_row(s, held.get(s.id, 0)) for s in slots]
    db.rollback()
    return rows


def update_slot_capacity(db: Session, slot_id: str, total_capacity: int) -> dict:
    """
    Change a slot's total capacity under its row lock. Cannot go below confirmed seats.
    Live locks above the new capacity are left alone; they fail at completion instead.
    """
    total_capacity = validate_quantity(total_capacity)
    try:
        slot = load_slot_for_update(db, slot_id)
        if slot is None:
            raise SlotNotFound(slot_id=slot_id)
        if total_capacity < slot.confirmed_count:
            raise CapacityExceeded(
                f"Capacity {total_capacity} is below the {slot.confirmed_count} seat(s) already confirmed.",
                slot_id=slot_id,
                confirmed=slot.confirmed_count,
            )
        slot.total_capacity = total_capacity
        if slot.status != SLOT_WITHDRAWN:
            slot.status = SLOT_FULL if slot.confirmed_count >= total_capacity else SLOT_OPEN
        row = _slot_row(slot, held_quantity(db, slot_id, utcnow()))
        db.commit()
    except BookingError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("update_slot_capacity failed for %s: %s", slot_id, e)
        raise BookingSystemError(slot_id=slot_id) from e
    logger.info("Slot %s capacity set to %s (status %s)", slot_id, total_capacity, row["status"])
    return row


def withdraw_slot(db: Session, slot_id: str) -> dict:
    """Take a slot off sale. No new locks; existing locks fail at completion with CapacityChanged."""
    try:
        slot = load_slot_for_update(db, slot_id)
        if slot is None:
            raise SlotNotFound(slot_id=slot_id)
        slot.status = SLOT_WITHDRAWN
        row = _slot_row(slot, held_quantity(db, slot_id, utcnow()))
        db.commit()
    except BookingError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("withdraw_slot failed for %s: %s", slot_id, e)
        raise BookingSystemError(slot_id=slot_id) from e
    logger.info("Slot %s withdrawn", slot_id)
    return row


def create_slot(
    db: Session,
    event_id: str,
    start_time: datetime,
    end_time: datetime,
    total_capacity: int,
    *,
    price: Decimal | float | int = 0,
    currency: str | None = None,
) -> str:
    """Insert a single slot. Returns its id."""
    total_capacity = validate_quantity(total_capacity)
    start_time, end_time = as_utc(start_time), as_utc(end_time)
    if end_time <= start_time:
        raise ValueError("end_time must be after start_time")
    slot = TimeSlot(
        event_id=event_id,
        start_time=start_time,
        end_time=end_time,
        total_capacity=total_capacity,
        confirmed_count=0,
        status=SLOT_OPEN,
        price=Decimal(str(price)),
        currency=(currency or settings.default_currency).upper(),
    )
    try:
        db.add(slot)
        db.flush()
        slot_id = slot.id
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("create_slot failed for event %s: %s", event_id, e)
        raise BookingSystemError(event_id=event_id) from e
    return slot_id


def clear_booking_data(db: Session) -> dict[str, int]:
    """
    Delete every row from the booking tables, children first. Dev/test reset only.
    Returns {table: rows deleted}.
    """
    deleted: dict[str, int] = {}
    try:
        for table in TRUNCATE_ORDER:
            deleted[table] = db.execute(text(f"DELETE FROM {table}")).rowcount or 0
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("clear_booking_data failed: %s", e)
        raise BookingSystemError() from e
    logger.info("Cleared booking tables: %s", deleted)
    return deleted
