"""
Availability: lock-aware open slots for an event and the can-book pre-flight.

Every number returned here is advisory (a snapshot). Reserving happens only via POST /locks.
"""
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from slotkeeper.api.deps import holder_identity
from slotkeeper.core.holder import HolderIdentity
from slotkeeper.db.session import get_db
from slotkeeper.services.availability_service import can_book_event, get_available_slots

router = APIRouter()


@router.get("/events/{event_id}/slots")
def list_available_slots(
    event_id: str,
    db: Session = Depends(get_db),
    caller: HolderIdentity | None = Depends(holder_identity),
) -> dict[str, Any]:
    """Open future slots with available > 0. The caller's own hold is not subtracted."""
    slots = get_available_slots(db, event_id, caller)
    return {"event_id": event_id, "advisory": True, "slots": slots}


@router.get("/events/{event_id}/can-book")
def can_book(
    event_id: str,
    quantity: int = Query(..., description="Seats wanted; required, no default"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Pre-flight check across all of the event's slots. Advisory only."""
    result = can_book_event(db, event_id, quantity)
    return {**result, "advisory": True}
