import time
from contextlib import contextmanager
from contextvars import ContextVar, Token

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.stockflow.core.config import settings

_db_time_ms: ContextVar[float | None] = ContextVar("db_time_ms", default=None)


def start_db_timer() -> Token:
    return _db_time_ms.set(0.0)


def stop_db_timer(token: Token) -> None:
    _db_time_ms.reset(token)


def get_db_time_ms() -> float | None:
    return _db_time_ms.get()


def _add_db_time(delta_ms: float) -> None:
    current = _db_time_ms.get()
    if current is None:
        return
    _db_time_ms.set(current + delta_ms)


def build_engine(database_url: str):
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    new_engine = create_engine(database_url, echo=False, future=True, connect_args=connect_args)

    @event.listens_for(new_engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if get_db_time_ms() is None:
            return
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(new_engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = conn.info.pop("query_start_time", None)
        if start is None:
            return
        _add_db_time((time.perf_counter() - start) * 1000)

    return new_engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session, *, on_stale=None):
    """Commit everything done in the block as one transaction, or nothing.

    ``on_stale`` turns a flush-time version mismatch into a domain error.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        if on_stale is None:
            raise
        raise on_stale() from exc
    except Exception:
        db.rollback()
        raise
