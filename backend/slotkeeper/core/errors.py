"""
Centralized error handling for the booking engine.

Typed failures raised by the lock manager and finalizer. Each class carries its HTTP status
and stable code so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_UNPROCESSABLE = 422
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_GONE = 410
STATUS_SERVICE_UNAVAILABLE = 503  # db down, lock timeout, anything retryable after backoff

MSG_INVALID_QUANTITY = "Quantity must be a positive whole number."
MSG_SLOT_NOT_FOUND = "That time slot does not exist."
MSG_SLOT_NOT_AVAILABLE = "That time slot is no longer available. Please pick another time."
MSG_CAPACITY_EXCEEDED = "This slot just filled up. Please pick another time."
MSG_LOCK_EXPIRED = "Your reservation timed out. Please start again."
MSG_CAPACITY_CHANGED = "Availability for this slot changed. Please select a time again."
MSG_INVALID_HOLDER = "A reservation needs exactly one holder: a user id or a session token."
MSG_SYSTEM_ERROR = "Something went wrong on our side. Please try again in a moment."


class BookingError(Exception):
    """Base class for every failure the engine reports to callers."""

    code = "BOOKING_ERROR"
    status_code = STATUS_CONFLICT
    default_message = MSG_SYSTEM_ERROR
    # True when the current lock can no longer be used; caller restarts from slot selection.
    terminal_for_lock = False
    retryable = False

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class InvalidQuantity(BookingError):
    code = "INVALID_QUANTITY"
    status_code = STATUS_UNPROCESSABLE
    default_message = MSG_INVALID_QUANTITY


class InvalidHolder(BookingError):
    code = "INVALID_HOLDER"
    status_code = STATUS_UNPROCESSABLE
    default_message = MSG_INVALID_HOLDER


class SlotNotFound(BookingError):
    code = "SLOT_NOT_FOUND"
    status_code = STATUS_NOT_FOUND
    default_message = MSG_SLOT_NOT_FOUND


class SlotNotAvailable(BookingError):
    code = "SLOT_NOT_AVAILABLE"
    status_code = STATUS_CONFLICT
    default_message = MSG_SLOT_NOT_AVAILABLE


class CapacityExceeded(BookingError):
    code = "CAPACITY_EXCEEDED"
    status_code = STATUS_CONFLICT
    default_message = MSG_CAPACITY_EXCEEDED
    terminal_for_lock = True


class LockExpired(BookingError):
    code = "LOCK_EXPIRED"
    status_code = STATUS_GONE
    default_message = MSG_LOCK_EXPIRED
    terminal_for_lock = True


class CapacityChanged(BookingError):
    code = "CAPACITY_CHANGED"
    status_code = STATUS_CONFLICT
    default_message = MSG_CAPACITY_CHANGED
    terminal_for_lock = True


class BookingSystemError(BookingError):
    """Infrastructure fault (database, network). Safe to retry after backoff with the same lock."""

    code = "SYSTEM_ERROR"
    status_code = STATUS_SERVICE_UNAVAILABLE
    default_message = MSG_SYSTEM_ERROR
    retryable = True


# code -> class, used by the HTTP client gateway to rebuild typed errors from response bodies.
ERROR_CLASSES_BY_CODE: dict[str, type[BookingError]] = {
    cls.code: cls
    for cls in (
        InvalidQuantity,
        InvalidHolder,
        SlotNotFound,
        SlotNotAvailable,
        CapacityExceeded,
        LockExpired,
        CapacityChanged,
        BookingSystemError,
    )
}


def error_from_payload(payload: dict[str, Any] | None) -> BookingError:
    """Rebuild a BookingError from an {"code", "message", "details"} body. Unknown codes become BookingSystemError."""
    payload = payload or {}
    cls = ERROR_CLASSES_BY_CODE.get(payload.get("code") or "", BookingSystemError)
    details = payload.get("details") or {}
    return cls(payload.get("message") or None, **details)


def validate_quantity(quantity: Any) -> int:
    """Quantity is always explicit: a positive int, never a bool, never defaulted."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(
            f"Invalid quantity: {quantity!r}. Must be a positive integer.",
            quantity=quantity if isinstance(quantity, (int, float, str)) else repr(quantity),
        )
    return quantity
