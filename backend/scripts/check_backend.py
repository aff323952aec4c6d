#!/usr/bin/env python3
"""
Pre-flight checks for the booking engine. Run from backend/:
  python scripts/check_backend.py
"""
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    problems = []

    try:
        from slotkeeper.config import settings

        print(f"OK  Settings loaded (lock TTL {settings.lock_ttl_minutes} min)")
    except Exception as e:
        print("FAIL Settings:", e)
        return 1

    try:
        from sqlalchemy import inspect

        from slotkeeper.db.session import engine
        from slotkeeper.db.tables import ALL_TABLE_NAMES

        missing = sorted(set(ALL_TABLE_NAMES) - set(inspect(engine).get_table_names()))
    except Exception as e:
        print("FAIL Database:", e)
        return 1
    if missing:
        problems.append(f"Booking tables missing: {missing}. Run: alembic upgrade head")
    else:
        print("OK  Booking tables present:", ", ".join(ALL_TABLE_NAMES))

    if not settings.scheduler_enabled:
        print("WARN Lock sweep job disabled; expired locks are only cleaned up lazily")
    if not (settings.smtp_user and settings.smtp_password):
        print("WARN SMTP not configured; confirmation emails will be skipped")

    if problems:
        for p in problems:
            print("FAIL", p)
        return 1
    print("\nReady. Start with: uvicorn slotkeeper.main:app --reload")
    return 0


if __name__ == "__main__":
    sys.exit(main())
