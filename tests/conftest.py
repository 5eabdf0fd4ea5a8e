import importlib
import os
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config
from sqlalchemy.orm import sessionmaker

from tests.db_utils import create_postgres_test_database


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    os.environ["SECRET_KEY"] = "test-secret"

    import app.stockflow.core.config as config
    import app.stockflow.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


def _database_url(tmp_path: Path, name: str):
    database_url = os.getenv("DATABASE_URL", "")
    if database_url.startswith("postgres"):
        return create_postgres_test_database(database_url)
    return f"sqlite+pysqlite:///{tmp_path / name}", None


@pytest.fixture()
def client(tmp_path: Path):
    database_url, cleanup = _database_url(tmp_path, "test.db")

    _run_migrations(database_url)
    app, session = _setup_app(database_url)

    with TestClient(app) as client:
        yield client

    session.engine.dispose()
    if cleanup:
        cleanup()


@pytest.fixture()
def db_session(client):
    from app.stockflow.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class SteppingClock:
    """Deterministic clock that moves one second forward per call."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture()
def clock():
    return SteppingClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture()
def session_factory(tmp_path: Path):
    from app.stockflow.db.models import Base
    from app.stockflow.db.session import build_engine

    database_url, cleanup = _database_url(tmp_path, "service.db")
    engine = build_engine(database_url)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    yield factory

    engine.dispose()
    if cleanup:
        cleanup()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def service(db, clock):
    from app.stockflow.services.transfers import TransferService

    return TransferService(db, clock=clock)
