"""Shared constants, fakes and small builders for tests."""
from datetime import datetime, timezone

NOW = datetime(2030, 1, 15, 12, 0, tzinfo=timezone.utc)
EVENT_ID = "evt-1"

REFERENCE_RE = r"^BK-\d{8}-[ABCDEFGHJKLMNPQRSTUVWXYZ23456789]{8}$"


def contact(**overrides):
    data = {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "phone": "+1 555 0100"}
    data.update(overrides)
    return data
