"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE in scripts). Alembic env asserts
that the registered models match this tuple exactly.
"""
ALL_TABLE_NAMES = (
    "time_slots",
    "slot_locks",
    "bookings",
    "booking_attempts",
)

# Reverse FK order: children first.
TRUNCATE_ORDER = (
    "booking_attempts",
    "bookings",
    "slot_locks",
    "time_slots",
)
