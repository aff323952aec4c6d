"""
Centralized constants for the booking engine (statuses, reasons, job ids).

Change names here instead of scattering literals across services and routes.
"""

# time_slots.status
SLOT_OPEN = "open"
SLOT_FULL = "full"
SLOT_WITHDRAWN = "withdrawn"
SLOT_STATUSES = (SLOT_OPEN, SLOT_FULL, SLOT_WITHDRAWN)

# slot_locks.release_reason (why is_active flipped to false)
RELEASE_RELEASED = "released"
RELEASE_EXPIRED = "expired"
RELEASE_CONSUMED = "consumed"
RELEASE_SUPERSEDED = "superseded"

# verify_lock reasons
LOCK_NOT_FOUND = "NotFound"
LOCK_RELEASED = "Released"
LOCK_EXPIRED = "Expired"

# bookings.status
BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"
BOOKING_NO_SHOW = "no_show"
BOOKING_COMPLETED = "completed"
BOOKING_STATUSES = (BOOKING_CONFIRMED, BOOKING_CANCELLED, BOOKING_NO_SHOW, BOOKING_COMPLETED)

# booking_attempts.status
ATTEMPT_SUCCESS = "success"
ATTEMPT_FAILED = "failed"
ATTEMPT_ABANDONED = "abandoned"

# Reference codes: BK-YYYYMMDD-XXXXXXXX, unambiguous uppercase alphabet (no 0/O/1/I)
REFERENCE_PREFIX = "BK"
REFERENCE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERENCE_RANDOM_LENGTH = 8

# Anonymous holders get a session token of this many url-safe bytes
SESSION_TOKEN_BYTES = 18

# Scheduler job IDs (must match ids used in main.py add_job)
LOCK_SWEEP_JOB_ID = "lock_sweep"

# Admin slot generation: refuse ranges that would create absurd batches
MAX_GENERATED_SLOTS = 5000
