"""Client side of the booking flow: HTTP gateway, lock countdown, reservation state machine."""
from slotkeeper.client.countdown import LockCountdown
from slotkeeper.client.gateway import BookingGateway, HeldLock, HttpBookingGateway, LockCheck, SlotOffer
from slotkeeper.client.reservation_flow import FlowState, ReservationFlow

__all__ = [
    "BookingGateway",
    "FlowState",
    "HeldLock",
    "HttpBookingGateway",
    "LockCheck",
    "LockCountdown",
    "ReservationFlow",
    "SlotOffer",
]
