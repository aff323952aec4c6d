"""Shared fixtures: a file-backed SQLite database per test, slot factory, FastAPI app wired to it."""
import os

# Settings are read at import time; point them at SQLite and keep the scheduler off.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from slotkeeper.core.constants import SLOT_OPEN
from slotkeeper.db.base import Base
from slotkeeper.db.session import build_engine, get_db
from slotkeeper.models import Booking, BookingAttempt, SlotLock, TimeSlot  # noqa: F401
from tests.helpers import EVENT_ID, NOW


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'slotkeeper.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_slot(session_factory):
    """Insert a slot and return its id. Starts a day after NOW unless start is given."""

    def _make(
        total_capacity=10,
        *,
        event_id=EVENT_ID,
        start=None,
        hours=1,
        confirmed=0,
        status=SLOT_OPEN,
        price=25,
    ):
        start = start or NOW + timedelta(days=1)
        slot_id = str(uuid.uuid4())
        session = session_factory()
        try:
            session.add(
                TimeSlot(
                    id=slot_id,
                    event_id=event_id,
                    start_time=start,
                    end_time=start + timedelta(hours=hours),
                    total_capacity=total_capacity,
                    confirmed_count=confirmed,
                    status=status,
                    price=Decimal(str(price)),
                    currency="USD",
                )
            )
            session.commit()
        finally:
            session.close()
        return slot_id

    return _make


@pytest.fixture
def read_slot(session_factory):
    """Fresh-session snapshot of a slot row: (total_capacity, confirmed_count, status)."""

    def _read(slot_id):
        session = session_factory()
        try:
            s = session.get(TimeSlot, slot_id)
            return s.total_capacity, s.confirmed_count, s.status
        finally:
            session.close()

    return _read


@pytest.fixture
def read_lock(session_factory):
    """Fresh-session snapshot of a lock row: (is_active, release_reason)."""

    def _read(lock_id):
        session = session_factory()
        try:
            lock = session.get(SlotLock, lock_id)
            return lock.is_active, lock.release_reason
        finally:
            session.close()

    return _read


@pytest.fixture
def count_rows(session_factory):
    def _count(model, **filters):
        session = session_factory()
        try:
            return session.query(model).filter_by(**filters).count()
        finally:
            session.close()

    return _count


@pytest.fixture
def app(session_factory):
    from slotkeeper.main import app as fastapi_app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
