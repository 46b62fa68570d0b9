"""SQLAlchemy engine, session factory and declarative base."""

from __future__ import annotations

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..core.config import settings

IS_SQLITE = settings.DB_URL.startswith("sqlite")

# SQLite connections are shared across FastAPI worker threads, so the
# same-thread check has to be off. Other engines ignore the argument.
CONNECT_ARGS = {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT_S} if IS_SQLITE else {}

engine = create_engine(settings.DB_URL, connect_args=CONNECT_ARGS)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


if IS_SQLITE:

    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_connection, _record) -> None:
        # Ledger rows reference items and distributions; SQLite ignores that unless asked.
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def begin_write(db: Session) -> None:
    """Take the database write lock before a read-check-write unit starts.

    SQLite has no row locks and only starts its transaction at the first
    write, so two distributions could both read the same stock figure. On
    SQLite the unit opens with ``BEGIN IMMEDIATE`` instead; a second writer
    waits until the first commits. Other backends rely on ``FOR UPDATE``.
    """

    if db.get_bind().dialect.name != "sqlite":
        return
    raw = db.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.execute(text("BEGIN IMMEDIATE"))


def get_db():
    """FastAPI dependency that yields a session and guarantees cleanup."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
