"""Database configuration and session management.

This module builds the SQLAlchemy engine shared by request handlers, the
background scheduler and the test suite. Attendance operations rely on the
database for all coordination between service instances, so the engine is
configured so that every transaction is isolated from concurrent writers.

Engine Configuration Choices:
    - **BEGIN IMMEDIATE (SQLite)**: pysqlite normally defers ``BEGIN`` until
      the first write, which lets two transactions read the same going-count
      before either writes. We disable the driver's own transaction handling
      and emit ``BEGIN IMMEDIATE`` ourselves, so a transaction holds the
      database write lock from its first statement and concurrent admissions
      run one after another.

    - **Busy timeout (SQLite)**: writers queue behind the lock instead of
      failing immediately with "database is locked".

    - **WAL and foreign keys (SQLite)**: WAL lets the confirmation sweep read
      while requests write; foreign keys keep records tied to real events and
      users.

    - **Row locks (other databases)**: server databases get no special
      engine setup. The attendance store locks the parent event row with
      ``SELECT ... FOR UPDATE`` at the start of every critical section.
"""

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from rsvp.core.config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(url: str, echo: bool = False, **kwargs):
    """Create an engine with the transaction behaviour attendance code expects.

    Extra keyword arguments are passed to ``create_engine`` (the test suite
    uses this to supply ``poolclass=StaticPool`` for in-memory databases).
    """
    if not _is_sqlite(url):
        return create_engine(url, echo=echo, **kwargs)

    connect_args = {
        "check_same_thread": False,
        "timeout": settings.database_busy_timeout_seconds,
    }
    engine = create_engine(url, connect_args=connect_args, echo=echo, **kwargs)

    @sa_event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Configure SQLite on each new connection.

        These settings are connection-level, so they must be applied every
        time the pool opens a connection.
        """
        # Stop pysqlite from issuing its own deferred BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @sa_event.listens_for(engine, "begin")
    def begin_immediate(conn):
        """Take the write lock as soon as a transaction starts."""
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = build_engine(settings.database_url, echo=settings.debug)


def create_db_and_tables():
    """Create all database tables."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session
