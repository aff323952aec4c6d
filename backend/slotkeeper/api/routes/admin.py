"""
Admin: slot generation, capacity edits, withdrawal, manual lock sweep, attempt log.

Management views here are not lock-aware availability and must not drive booking decisions.
"""
import logging
from datetime import date, time
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from slotkeeper.db.session import get_db
from slotkeeper.services.attempt_log import recent_attempts
from slotkeeper.services.lock_service import sweep_expired_locks
from slotkeeper.services.slot_admin_service import (
    generate_event_slots,
    list_event_slots,
    update_slot_capacity,
    withdraw_slot,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class GenerateSlotsRequest(BaseModel):
    start_date: date
    end_date: date
    daily_start: time
    daily_end: time
    duration_minutes: int = Field(..., gt=0)
    buffer_minutes: int = Field(0, ge=0)
    capacity_per_slot: int
    weekdays: list[str] | None = Field(None, description="e.g. ['monday', 'friday']; all days when omitted")
    price: Decimal = Decimal("0")
    currency: str | None = Field(None, min_length=3, max_length=3)
    timezone: str = "UTC"


class UpdateCapacityRequest(BaseModel):
    total_capacity: int


@router.post("/events/{event_id}/slots/generate", status_code=201)
def generate_slots(event_id: str, body: GenerateSlotsRequest, db: Session = Depends(get_db)) -> dict[str, Any]:
    try:
        created = generate_event_slots(
            db,
            event_id,
            body.start_date,
            body.end_date,
            body.daily_start,
            body.daily_end,
            body.duration_minutes,
            body.capacity_per_slot,
            buffer_minutes=body.buffer_minutes,
            weekdays=body.weekdays,
            price=body.price,
            currency=body.currency,
            tz=body.timezone,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"event_id": event_id, "created": created}


@router.get("/events/{event_id}/slots")
def all_event_slots(event_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"event_id": event_id, "slots": list_event_slots(db, event_id)}


@router.patch("/slots/{slot_id}")
def patch_slot_capacity(slot_id: str, body: UpdateCapacityRequest, db: Session = Depends(get_db)) -> dict[str, Any]:
    return update_slot_capacity(db, slot_id, body.total_capacity)


@router.post("/slots/{slot_id}/withdraw")
def post_withdraw_slot(slot_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    return withdraw_slot(db, slot_id)


@router.post("/locks/sweep")
def post_sweep_locks(db: Session = Depends(get_db)) -> dict[str, int]:
    count = sweep_expired_locks(db)
    logger.info("Manual lock sweep: %s expired", count)
    return {"expired": count}


@router.get("/booking-attempts")
def list_booking_attempts(
    db: Session = Depends(get_db),
    limit: int = Query(100, ge=1, le=500),
) -> list[dict[str, Any]]:
    return recent_attempts(db, limit=limit)
