"""
Database session and engine.

PostgreSQL serializes capacity checks with SELECT ... FOR UPDATE on the slot row.
SQLite has no row locks, so SQLite engines open every transaction with BEGIN IMMEDIATE,
which takes the database write lock up front and gives the same one-writer-per-operation order.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from slotkeeper.config import settings


def _enable_sqlite_immediate_transactions(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite's implicit transactions.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine for url. SQLite gets immediate transactions; other backends get the pool settings."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        eng = create_engine(url, connect_args=connect_args, **kwargs)
        _enable_sqlite_immediate_transactions(eng)
        return eng
    kwargs.setdefault("pool_size", 8)
    kwargs.setdefault("max_overflow", 10)
    kwargs.setdefault("pool_pre_ping", True)
    kwargs.setdefault("pool_recycle", 300)
    kwargs.setdefault("pool_timeout", 30)
    return create_engine(url, **kwargs)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
