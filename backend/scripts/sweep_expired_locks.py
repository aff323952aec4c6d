#!/usr/bin/env python3
"""
Deactivate expired slot locks once (same work as the scheduled sweep job).
Useful when the API runs with SCHEDULER_ENABLED=false, e.g. from cron.

Run from backend dir:
  python scripts/sweep_expired_locks.py
"""
import logging
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from dotenv import load_dotenv

load_dotenv(backend_dir / ".env")

from slotkeeper.scheduler.lock_sweep_job import run_lock_sweep_job


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    n = run_lock_sweep_job()
    print(f"Expired {n} lock(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
