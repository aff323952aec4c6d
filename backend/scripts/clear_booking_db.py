#!/usr/bin/env python3
"""Delete all slots, locks, bookings and attempt logs. Local/dev databases only.
Run from backend: python scripts/clear_booking_db.py
"""
import sys
from pathlib import Path

# Ensure backend is on path when run as script
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from slotkeeper.db.session import SessionLocal
from slotkeeper.services.slot_admin_service import clear_booking_data


def main():
    db = SessionLocal()
    try:
        deleted = clear_booking_data(db)
        print("Database cleared. Rows deleted:")
        for table, count in deleted.items():
            print(f"  {table}: {count}")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
