"""
Bookings: convert a held lock into a confirmed booking; look one up by reference.
"""
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from slotkeeper.db.session import get_db
from slotkeeper.services.booking_service import ContactDetails, complete_booking, get_booking_by_reference
from slotkeeper.services.email_notify import dispatch_booking_confirmed

router = APIRouter()


class CompleteBookingRequest(BaseModel):
    lock_id: str = Field(..., min_length=1)
    quantity: int = Field(..., description="Must equal the locked quantity; never defaulted")
    contact: ContactDetails


@router.post("/bookings", status_code=201)
def create_booking(
    body: CompleteBookingRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Confirm the booking held by lock_id. The confirmation email goes out after the response;
    its failure never affects the booking.
    """
    booking = complete_booking(db, body.lock_id, body.contact, body.quantity)
    payload = booking.to_dict()
    background_tasks.add_task(dispatch_booking_confirmed, payload)
    return payload


@router.get("/bookings/{reference_code}")
def get_booking(reference_code: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    booking = get_booking_by_reference(db, reference_code)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking.to_dict()
