from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from config import DATABASE_URL, SQL_ECHO


# ── Engine ───────────────────────────────────────────────────
# check_same_thread=False is required for SQLite + FastAPI
# because requests may be handled on different threads
def make_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, echo=SQL_ECHO, **kwargs)


engine = make_engine()


# SQLite ignores FOREIGN KEY clauses unless asked per connection
@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# ── Session factory ──────────────────────────────────────────
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ── Base class ───────────────────────────────────────────────
# All models inherit from this
Base = declarative_base()


# ── Helper: get a DB session (use with `with` or dependency injection) ─
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ── Unit of work ─────────────────────────────────────────────
@contextmanager
def unit_of_work(db: Session):
    """
    One all-or-nothing transaction around a multi-row mutation.

    The outermost caller owns commit/rollback. Everything called inside
    only adds/flushes on `db`; the first exception rolls all of it back
    and is re-raised to the caller.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


# ── Create all tables on startup ─────────────────────────────
def init_db(bind: Engine = None):
    import models  # noqa: F401  registers the mappers on Base

    Base.metadata.create_all(bind=bind or engine)
