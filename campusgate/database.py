# campusgate/database.py
"""
Database connection, session management, transactions and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite accepted for local runs and tests).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from campusgate.config import settings
from campusgate.errors import GateAccessError, PersistenceError


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,   # Auto-reconnect if DB connection drops
        "pool_size": 10,
        "max_overflow": 20,
    }


def enable_sqlite_savepoints(sqlite_engine):
    """
    pysqlite defers BEGIN until the first write, which breaks SAVEPOINT.
    Let SQLAlchemy emit BEGIN itself so begin_nested() behaves as on PostgreSQL.
    """
    @event.listens_for(sqlite_engine, "connect")
    def _no_implicit_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return sqlite_engine


engine = create_engine(settings.DATABASE_URL, echo=False, **_engine_options(settings.DATABASE_URL))
if settings.DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency - yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """
    One store-level transaction per mutating operation.
    Commits on success; rolls back on any failure. Typed service errors pass
    through unchanged, anything raised by the store becomes PersistenceError.
    """
    try:
        yield db
        db.commit()
    except GateAccessError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Store operation failed: {exc.__class__.__name__}: {exc}") from exc
    except Exception:
        db.rollback()
        raise


def create_tables(bind=None):
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    # Entity directory
    from campusgate.models.user import User               # noqa
    from campusgate.models.vendor import Vendor           # noqa
    # Visit workflow
    from campusgate.models.guest_request import GuestVisitRequest, Guest  # noqa
    # Ledger
    from campusgate.models.movement_log import MovementLog                 # noqa

    Base.metadata.create_all(bind=bind or engine)
