from slotkeeper.models.booking import Booking
from slotkeeper.models.booking_attempt import BookingAttempt
from slotkeeper.models.slot import TimeSlot
from slotkeeper.models.slot_lock import SlotLock

__all__ = [
    "Booking",
    "BookingAttempt",
    "SlotLock",
    "TimeSlot",
]
