import time

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.pdv.core.config import settings
from app.pdv.core.db_timing import add_db_time, is_timing


def _connect_args(database_url: str) -> dict:
    if not database_url.startswith("sqlite"):
        return {}
    # Concurrent writers wait on the file lock instead of failing at once.
    return {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT_SEC}


engine = create_engine(settings.DATABASE_URL, future=True, connect_args=_connect_args(settings.DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@event.listens_for(engine, "before_cursor_execute")
def _start_statement_clock(conn, cursor, statement, parameters, context, executemany):
    if is_timing():
        conn.info["pdv_statement_started"] = time.perf_counter()


@event.listens_for(engine, "after_cursor_execute")
def _stop_statement_clock(conn, cursor, statement, parameters, context, executemany):
    started = conn.info.pop("pdv_statement_started", None)
    if started is not None:
        add_db_time((time.perf_counter() - started) * 1000)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
