from slotkeeper.db.base import Base
from slotkeeper.db.session import get_db, engine, SessionLocal
from slotkeeper.db.tables import ALL_TABLE_NAMES, TRUNCATE_ORDER

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "TRUNCATE_ORDER"]
