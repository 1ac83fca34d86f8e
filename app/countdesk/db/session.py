import time

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker

from app.countdesk.core.config import settings
from app.countdesk.core.db_timing import add_db_time, timing_active

_STARTED_AT = "countdesk_statement_started"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _statement_started(conn, cursor, statement, parameters, context, executemany):
    if timing_active():
        conn.info[_STARTED_AT] = time.perf_counter()


def _statement_finished(conn, cursor, statement, parameters, context, executemany):
    started = conn.info.pop(_STARTED_AT, None)
    if started is not None and timing_active():
        add_db_time((time.perf_counter() - started) * 1000)


def build_engine(database_url: str) -> Engine:
    """Create an engine with statement timing; SQLite also enforces foreign keys."""
    is_sqlite = database_url.startswith("sqlite")
    engine = create_engine(
        database_url,
        future=True,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    event.listen(engine, "before_cursor_execute", _statement_started)
    event.listen(engine, "after_cursor_execute", _statement_finished)
    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
