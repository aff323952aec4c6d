from datetime import timedelta

import pytest

from slotkeeper.client.countdown import LockCountdown
from slotkeeper.client.gateway import HeldLock, LockCheck, SlotOffer
from slotkeeper.client.reservation_flow import FlowState, ReservationFlow
from slotkeeper.core.errors import (
    BookingSystemError,
    CapacityChanged,
    CapacityExceeded,
    InvalidQuantity,
    LockExpired,
)
from tests.helpers import NOW, contact

TTL = timedelta(minutes=10)


class DummyClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class DummyGateway:
    """Records calls; each method's outcome can be swapped per test."""

    def __init__(self):
        self.calls = []
        self.lock_error = None
        self.verify_result = None
        self.verify_error = None
        self.complete_error = None
        self.release_error = None
        self._next = 0

    async def get_available_slots(self, event_id):
        self.calls.append(("slots", event_id))
        return [
            SlotOffer("slot-a", NOW + timedelta(days=1), NOW + timedelta(days=1, hours=1), 10, 4, "20.00"),
        ]

    async def create_lock(self, slot_id, quantity):
        self.calls.append(("lock", slot_id, quantity))
        if self.lock_error:
            raise self.lock_error
        self._next += 1
        return HeldLock(f"lock-{self._next}", slot_id, quantity, NOW + TTL)

    async def verify_lock(self, lock_id):
        self.calls.append(("verify", lock_id))
        if self.verify_error:
            raise self.verify_error
        return self.verify_result or LockCheck(False, "Expired", NOW + TTL)

    async def release_lock(self, lock_id):
        self.calls.append(("release", lock_id))
        if self.release_error:
            raise self.release_error
        return True

    async def complete_booking(self, lock_id, contact_details, quantity):
        self.calls.append(("complete", lock_id, quantity))
        if self.complete_error:
            raise self.complete_error
        return {"reference_code": "BK-20300115-ABCDEFGH", "quantity": quantity}

    def names(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def gateway():
    return DummyGateway()


@pytest.fixture
def clock():
    return DummyClock()


@pytest.fixture
def flow(gateway, clock):
    return ReservationFlow(gateway, clock=clock)


def test_countdown_projection():
    countdown = LockCountdown(NOW + TTL)
    assert countdown.remaining(NOW) == 600
    assert countdown.remaining(NOW + timedelta(seconds=0.5)) == 599
    assert countdown.label(NOW + timedelta(seconds=65)) == "8:55"
    assert not countdown.is_due(NOW + TTL - timedelta(seconds=1.5))
    # label already reads 0:00 here, but the lock has not expired yet
    assert countdown.label(NOW + TTL - timedelta(seconds=0.5)) == "0:00"
    assert not countdown.is_due(NOW + TTL - timedelta(seconds=0.5))
    assert countdown.is_due(NOW + TTL)
    assert countdown.remaining(NOW + TTL + timedelta(hours=1)) == 0


@pytest.mark.asyncio
async def test_select_slot_moves_to_details(flow, gateway):
    held = await flow.select_slot("slot-a", 2)
    assert held.lock_id == "lock-1"
    assert flow.state is FlowState.AWAITING_DETAILS
    assert flow.seconds_remaining() == 600
    assert gateway.calls == [("lock", "slot-a", 2)]


@pytest.mark.asyncio
async def test_select_slot_failure_stays_on_selection(flow, gateway):
    gateway.lock_error = CapacityExceeded()
    assert await flow.select_slot("slot-a", 2) is None
    assert flow.state is FlowState.SELECTING_SLOT
    assert flow.held is None
    assert flow.error_message == "This slot just filled up. Please pick another time."


@pytest.mark.asyncio
async def test_selecting_again_releases_previous_lock(flow, gateway):
    await flow.select_slot("slot-a", 2)
    await flow.select_slot("slot-b", 1)
    assert gateway.calls[1:] == [("release", "lock-1"), ("lock", "slot-b", 1)]
    assert flow.held.lock_id == "lock-2"


@pytest.mark.asyncio
async def test_reselect_proceeds_when_release_fails(flow, gateway):
    await flow.select_slot("slot-a", 2)
    gateway.release_error = BookingSystemError()
    assert (await flow.select_slot("slot-b", 1)).lock_id == "lock-2"


@pytest.mark.asyncio
async def test_tick_before_expiry_does_nothing(flow, gateway, clock):
    await flow.select_slot("slot-a", 1)
    clock.advance(minutes=9, seconds=58)
    assert await flow.tick() is FlowState.AWAITING_DETAILS
    assert "verify" not in gateway.names()


@pytest.mark.asyncio
async def test_countdown_expiry_reverifies_then_resets(flow, gateway, clock):
    await flow.select_slot("slot-a", 1)
    clock.advance(minutes=10)
    assert await flow.tick() is FlowState.SELECTING_SLOT
    assert gateway.names().count("verify") == 1
    assert flow.held is None
    assert isinstance(flow.error, LockExpired)


@pytest.mark.asyncio
async def test_server_confirmed_lock_survives_local_clock_drift(flow, gateway, clock):
    await flow.select_slot("slot-a", 1)
    gateway.verify_result = LockCheck(True, None, NOW + TTL + timedelta(seconds=30))
    clock.advance(minutes=10)
    assert await flow.tick() is FlowState.AWAITING_DETAILS
    assert flow.seconds_remaining() == 30
    # not due again until the adopted expiry passes
    assert await flow.tick() is FlowState.AWAITING_DETAILS
    assert gateway.names().count("verify") == 1


@pytest.mark.asyncio
async def test_verify_failure_is_treated_as_not_valid(flow, gateway, clock):
    await flow.select_slot("slot-a", 1)
    gateway.verify_error = BookingSystemError()
    clock.advance(minutes=11)
    assert await flow.tick() is FlowState.SELECTING_SLOT


@pytest.mark.asyncio
async def test_complete_sends_held_quantity(flow, gateway):
    await flow.select_slot("slot-a", 3)
    booking = await flow.complete(contact())
    assert booking["reference_code"] == "BK-20300115-ABCDEFGH"
    assert flow.state is FlowState.COMPLETED
    assert flow.held is None
    assert ("complete", "lock-1", 3) in gateway.calls


@pytest.mark.asyncio
async def test_system_error_keeps_lock_for_retry(flow, gateway):
    await flow.select_slot("slot-a", 2)
    gateway.complete_error = BookingSystemError()
    assert await flow.complete(contact()) is None
    assert flow.state is FlowState.AWAITING_DETAILS
    assert flow.held.lock_id == "lock-1"
    assert flow.error.retryable

    gateway.complete_error = None
    assert await flow.complete(contact()) is not None
    assert flow.state is FlowState.COMPLETED


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [LockExpired(), CapacityChanged(), CapacityExceeded()])
async def test_terminal_errors_reset_to_selection(flow, gateway, error):
    await flow.select_slot("slot-a", 2)
    gateway.complete_error = error
    assert await flow.complete(contact()) is None
    assert flow.state is FlowState.SELECTING_SLOT
    assert flow.held is None
    assert flow.error is error


@pytest.mark.asyncio
async def test_non_terminal_booking_error_keeps_lock(flow, gateway):
    await flow.select_slot("slot-a", 2)
    gateway.complete_error = InvalidQuantity()
    await flow.complete(contact())
    assert flow.state is FlowState.AWAITING_DETAILS


@pytest.mark.asyncio
async def test_complete_without_lock(flow, gateway):
    assert await flow.complete(contact()) is None
    assert isinstance(flow.error, LockExpired)
    assert "complete" not in gateway.names()


@pytest.mark.asyncio
async def test_cancel_clears_state_even_if_release_fails(flow, gateway):
    await flow.select_slot("slot-a", 2)
    gateway.release_error = RuntimeError("network down")
    await flow.cancel()
    assert flow.state is FlowState.SELECTING_SLOT
    assert flow.held is None
    assert gateway.calls[-1] == ("release", "lock-1")


@pytest.mark.asyncio
async def test_reset_after_completion(flow):
    await flow.select_slot("slot-a", 1)
    await flow.complete(contact())
    flow.reset()
    assert flow.state is FlowState.SELECTING_SLOT
    assert flow.booking is None


@pytest.mark.asyncio
async def test_quantity_hint_is_advisory_only(flow, gateway):
    (offer,) = await flow.load_slots("evt-1")
    assert ReservationFlow.quantity_hint_ok(offer, 4)
    assert not ReservationFlow.quantity_hint_ok(offer, 5)
    assert not ReservationFlow.quantity_hint_ok(offer, 0)
    assert "approximate" in offer.availability_label()
    # the hint never stops the server call
    await flow.select_slot(offer.slot_id, 5)
    assert ("lock", "slot-a", 5) in gateway.calls


@pytest.mark.asyncio
async def test_zero_label_before_expiry_does_not_reverify_early(flow, gateway, clock):
    await flow.select_slot("slot-a", 1)
    clock.advance(minutes=9, seconds=59.5)
    assert await flow.tick() is FlowState.AWAITING_DETAILS
    assert flow.seconds_remaining() == 0
    assert "verify" not in gateway.names()

    gateway.verify_result = LockCheck(False, "Expired", None)
    clock.advance(seconds=60)
    assert await flow.tick() is FlowState.SELECTING_SLOT
    assert gateway.names().count("verify") == 1
    assert flow.held is None


@pytest.mark.asyncio
async def test_valid_answer_for_same_expiry_rearms_reverify(flow, gateway, clock):
    await flow.select_slot("slot-a", 1)
    # server clock lags ours: it still vouches for the original expiry
    gateway.verify_result = LockCheck(True, None, NOW + TTL)
    clock.advance(minutes=10)
    assert await flow.tick() is FlowState.AWAITING_DETAILS

    gateway.verify_result = LockCheck(False, "Expired", None)
    clock.advance(seconds=1)
    assert await flow.tick() is FlowState.SELECTING_SLOT
    assert gateway.names().count("verify") == 2
    assert isinstance(flow.error, LockExpired)
