# salon_booking/database.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

Base = declarative_base()

# Execution option marking a connection that only reads
READ_ONLY_OPTION = "salon_read_only"


def create_db_engine(database_url: str, timeout_seconds: float = 10.0, **kwargs) -> Engine:
    """
    Build the engine for the configured database.

    SQLite connections open every transaction with BEGIN IMMEDIATE so that
    writers take the database lock before reading; competing bookings wait up
    to ``timeout_seconds`` for it instead of reading stale state. Connections
    carrying the ``READ_ONLY_OPTION`` execution option begin DEFERRED and
    never queue behind a booking.
    """
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", timeout_seconds)
        engine = create_engine(database_url, connect_args=connect_args, **kwargs)

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin(conn):
            # Read-only sessions take no write lock
            if conn.get_execution_options().get(READ_ONLY_OPTION):
                conn.exec_driver_sql("BEGIN DEFERRED")
            else:
                conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    # For PostgreSQL
    return create_engine(database_url, pool_pre_ping=True, **kwargs)


engine = create_db_engine(settings.database_url, settings.transaction_timeout_seconds)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = None):
    # Register the mapped tables before creating them
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
