"""
Client reservation state machine: SELECTING_SLOT -> AWAITING_DETAILS -> COMPLETED.

Holds at most one lock. The countdown is a projection of the server's expires_at; once it
passes, the flow reverifies with the server, and the state change always follows that round-trip.
Local capacity numbers are hints for the UI (quantity_hint_ok) and never stand in for the server's answer.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from slotkeeper.client.countdown import LockCountdown
from slotkeeper.client.gateway import BookingGateway, HeldLock, SlotOffer
from slotkeeper.core.clock import utcnow
from slotkeeper.core.errors import BookingError, LockExpired

logger = logging.getLogger(__name__)


class FlowState(str, enum.Enum):
    SELECTING_SLOT = "select-slot"
    AWAITING_DETAILS = "fill-details"
    COMPLETED = "completed"


class ReservationFlow:
    def __init__(self, gateway: BookingGateway, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.gateway = gateway
        self._clock = clock
        self.state = FlowState.SELECTING_SLOT
        self.held: HeldLock | None = None
        self.countdown: LockCountdown | None = None
        self.booking: dict[str, Any] | None = None
        self.error: BookingError | None = None
        self.verifying = False
        self._reverified_for: datetime | None = None

    # --- read-only helpers ---

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error else None

    def seconds_remaining(self, now: datetime | None = None) -> int:
        if self.countdown is None:
            return 0
        return self.countdown.remaining(now or self._clock())

    @staticmethod
    def quantity_hint_ok(slot: SlotOffer, quantity: int) -> bool:
        """
        UX hint only (e.g. grey out an obviously-too-large quantity). Advisory numbers can be stale;
        select_slot always asks the server regardless of what this says.
        """
        return isinstance(quantity, int) and 0 < quantity <= slot.available

    # --- transitions ---

    async def load_slots(self, event_id: str) -> list[SlotOffer]:
        return await self.gateway.get_available_slots(event_id)

    async def select_slot(self, slot_id: str, quantity: int) -> HeldLock | None:
        """
        SELECTING_SLOT -> AWAITING_DETAILS on a successful create_lock.
        Any lock already held is dropped locally first and released best-effort.
        """
        prior = self.held
        self._clear_reservation()
        self.booking = None
        self.error = None
        if prior is not None:
            await self._release_quietly(prior.lock_id)
        try:
            held = await self.gateway.create_lock(slot_id, quantity)
        except BookingError as e:
            self.error = e
            logger.info("select_slot %s x%s failed: %s", slot_id, quantity, e.code)
            return None
        self.held = held
        self.countdown = LockCountdown(held.expires_at)
        self.state = FlowState.AWAITING_DETAILS
        return held

    async def tick(self, now: datetime | None = None) -> FlowState:
        """
        Drive from a UI timer. Once expires_at has passed, reverify with the server; a "still valid"
        answer re-arms this, so a later tick past the adopted expiry asks again.
        """
        if self.state is not FlowState.AWAITING_DETAILS or self.held is None or self.countdown is None:
            return self.state
        if self.countdown.is_due(now or self._clock()) and self._reverified_for != self.held.expires_at:
            self._reverified_for = self.held.expires_at
            return await self.on_countdown_elapsed()
        return self.state

    async def on_countdown_elapsed(self) -> FlowState:
        """
        Reverify with the server before assuming expiry. Unless the server confirms the lock is
        still valid, go back to SELECTING_SLOT; the details step never outlives its lock.
        """
        if self.state is not FlowState.AWAITING_DETAILS or self.held is None or self.verifying:
            return self.state
        held = self.held
        self.verifying = True
        try:
            check = await self.gateway.verify_lock(held.lock_id)
        except BookingError as e:
            logger.info("verify_lock %s failed after countdown: %s", held.lock_id, e.code)
            check = None
        finally:
            self.verifying = False
        if self.held is not held:
            # Selection changed while we were waiting on the server.
            return self.state
        if check is not None and check.is_valid and check.expires_at is not None:
            # Server says still valid (local clock ran ahead): adopt its expiry.
            self.held = replace(held, expires_at=check.expires_at)
            self.countdown = LockCountdown(check.expires_at)
            self._reverified_for = None
            return self.state
        self._hard_reset(LockExpired(lock_id=held.lock_id, reason=check.reason if check else None))
        return self.state

    async def complete(self, contact: dict[str, Any]) -> dict[str, Any] | None:
        """
        AWAITING_DETAILS -> COMPLETED on success. Sends the held quantity explicitly.
        Lock-terminal errors reset to SELECTING_SLOT; a system error keeps the lock for a retry.
        """
        if self.state is not FlowState.AWAITING_DETAILS or self.held is None:
            self._hard_reset(LockExpired("No active reservation. Please select a time slot."))
            return None
        held = self.held
        try:
            booking = await self.gateway.complete_booking(held.lock_id, contact, held.quantity)
        except BookingError as e:
            if e.terminal_for_lock:
                self._hard_reset(e)
            else:
                self.error = e
            return None
        self._clear_reservation()
        self.booking = booking
        self.error = None
        self.state = FlowState.COMPLETED
        return booking

    async def cancel(self) -> None:
        """AWAITING_DETAILS -> SELECTING_SLOT. Local state is cleared before the release is even sent."""
        held = self.held
        self._clear_reservation()
        self.error = None
        if held is not None:
            await self._release_quietly(held.lock_id)

    def reset(self) -> None:
        """Back to a blank SELECTING_SLOT (e.g. 'book another'). Does not touch the server."""
        self._clear_reservation()
        self.booking = None
        self.error = None

    # --- internals ---

    def _clear_reservation(self) -> None:
        self.held = None
        self.countdown = None
        self._reverified_for = None
        self.state = FlowState.SELECTING_SLOT

    def _hard_reset(self, error: BookingError) -> None:
        self._clear_reservation()
        self.booking = None
        self.error = error

    async def _release_quietly(self, lock_id: str) -> None:
        try:
            await self.gateway.release_lock(lock_id)
        except Exception as e:
            logger.warning("release_lock %s failed; lock will expire on its own: %s", lock_id, e)
