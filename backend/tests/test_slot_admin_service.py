from datetime import date, datetime, time, timedelta, timezone

import pytest

from slotkeeper.core.constants import SLOT_FULL, SLOT_OPEN, SLOT_WITHDRAWN
from slotkeeper.core.errors import CapacityExceeded, InvalidQuantity, SlotNotAvailable, SlotNotFound
from slotkeeper.core.holder import HolderIdentity
from slotkeeper.models import TimeSlot
from slotkeeper.services.lock_service import create_lock
from slotkeeper.services.slot_admin_service import (
    clear_booking_data,
    create_slot,
    generate_event_slots,
    list_event_slots,
    plan_slot_windows,
    update_slot_capacity,
    withdraw_slot,
)
from tests.helpers import NOW

TTL = timedelta(minutes=10)
UTC = timezone.utc


def test_plan_back_to_back_windows():
    windows = plan_slot_windows(date(2030, 1, 15), date(2030, 1, 16), time(9), time(12), 60)
    assert len(windows) == 6
    assert windows[0] == (datetime(2030, 1, 15, 9, tzinfo=UTC), datetime(2030, 1, 15, 10, tzinfo=UTC))
    assert windows[-1] == (datetime(2030, 1, 16, 11, tzinfo=UTC), datetime(2030, 1, 16, 12, tzinfo=UTC))


def test_plan_buffer_spacing():
    windows = plan_slot_windows(date(2030, 1, 15), date(2030, 1, 15), time(9), time(12), 60, buffer_minutes=30)
    assert [(w[0].hour, w[0].minute) for w in windows] == [(9, 0), (10, 30)]


def test_plan_weekday_filter():
    # 2030-01-14 is a Monday
    windows = plan_slot_windows(
        date(2030, 1, 14), date(2030, 1, 20), time(9), time(10), 60, weekdays=["Monday", "friday"]
    )
    assert [w[0].date() for w in windows] == [date(2030, 1, 14), date(2030, 1, 18)]


def test_plan_converts_local_time_to_utc():
    windows = plan_slot_windows(date(2030, 1, 15), date(2030, 1, 15), time(9), time(10), 60, tz="America/New_York")
    assert windows == [(datetime(2030, 1, 15, 14, tzinfo=UTC), datetime(2030, 1, 15, 15, tzinfo=UTC))]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"duration_minutes": 0},
        {"buffer_minutes": -5},
        {"weekdays": ["funday"]},
        {"start_date": date(2030, 1, 16), "end_date": date(2030, 1, 15)},
    ],
)
def test_plan_rejects_bad_input(kwargs):
    args = {
        "start_date": date(2030, 1, 15),
        "end_date": date(2030, 1, 15),
        "daily_start": time(9),
        "daily_end": time(12),
        "duration_minutes": 60,
    }
    args.update(kwargs)
    with pytest.raises(ValueError):
        plan_slot_windows(**args)


def test_generate_event_slots(db):
    created = generate_event_slots(
        db, "gen-event", date(2030, 1, 15), date(2030, 1, 15), time(9), time(12), 60, 8, price=15, currency="eur"
    )
    assert created == 3
    rows = list_event_slots(db, "gen-event", now=NOW)
    assert len(rows) == 3
    assert {r["total_capacity"] for r in rows} == {8}
    assert {r["currency"] for r in rows} == {"EUR"}
    assert {r["price"] for r in rows} == {"15.00"}
    assert [r["start_time"] for r in rows] == sorted(r["start_time"] for r in rows)


def test_generate_event_slots_rejects_bad_capacity(db):
    with pytest.raises(InvalidQuantity):
        generate_event_slots(db, "gen-event", date(2030, 1, 15), date(2030, 1, 15), time(9), time(12), 60, 0)


def test_list_event_slots_shows_held_and_confirmed(db, make_slot):
    slot_id = make_slot(10, confirmed=2, event_id="listed")
    create_lock(db, slot_id, 3, HolderIdentity(user_id="alice"), now=NOW, ttl=TTL)
    (row,) = list_event_slots(db, "listed", now=NOW)
    assert row["confirmed_count"] == 2
    assert row["held_count"] == 3
    assert list_event_slots(db, "listed", now=NOW + TTL)[0]["held_count"] == 0


def test_update_capacity_cannot_go_below_confirmed(db, make_slot, read_slot):
    slot_id = make_slot(10, confirmed=4)
    with pytest.raises(CapacityExceeded):
        update_slot_capacity(db, slot_id, 3)
    assert read_slot(slot_id) == (10, 4, SLOT_OPEN)


def test_update_capacity_recomputes_status(db, make_slot, read_slot):
    slot_id = make_slot(10, confirmed=4)
    assert update_slot_capacity(db, slot_id, 4)["status"] == SLOT_FULL
    assert read_slot(slot_id) == (4, 4, SLOT_FULL)
    assert update_slot_capacity(db, slot_id, 6)["status"] == SLOT_OPEN
    assert read_slot(slot_id) == (6, 4, SLOT_OPEN)


def test_update_capacity_keeps_withdrawn(db, make_slot):
    slot_id = make_slot(10, status=SLOT_WITHDRAWN)
    assert update_slot_capacity(db, slot_id, 12)["status"] == SLOT_WITHDRAWN


def test_update_capacity_unknown_slot(db):
    with pytest.raises(SlotNotFound):
        update_slot_capacity(db, "missing", 3)


def test_withdraw_slot_blocks_new_locks(db, make_slot, read_slot):
    slot_id = make_slot(10)
    assert withdraw_slot(db, slot_id)["status"] == SLOT_WITHDRAWN
    assert read_slot(slot_id)[2] == SLOT_WITHDRAWN
    with pytest.raises(SlotNotAvailable):
        create_lock(db, slot_id, 1, HolderIdentity(user_id="alice"), now=NOW, ttl=TTL)


def test_withdraw_unknown_slot(db):
    with pytest.raises(SlotNotFound):
        withdraw_slot(db, "missing")


def test_create_slot(db, read_slot):
    start = NOW + timedelta(days=2)
    slot_id = create_slot(db, "single", start, start + timedelta(minutes=45), 6, price=9)
    assert read_slot(slot_id) == (6, 0, SLOT_OPEN)
    with pytest.raises(ValueError):
        create_slot(db, "single", start, start, 6)


def test_clear_booking_data(db, make_slot, count_rows):
    slot_id = make_slot(5)
    create_lock(db, slot_id, 1, HolderIdentity(user_id="alice"), now=NOW, ttl=TTL)
    deleted = clear_booking_data(db)
    assert deleted["time_slots"] == 1
    assert deleted["slot_locks"] == 1
    assert count_rows(TimeSlot) == 0
