import importlib
import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient

from tests.db_utils import create_postgres_test_database


def _migrate(database_url: str) -> None:
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


def _load_app(database_url: str):
    """Rebuild settings, engine and app so they point at this test's database."""
    os.environ["DATABASE_URL"] = database_url
    os.environ["SECRET_KEY"] = "test-secret"

    import app.main as main
    import app.pdv.core.config as config
    import app.pdv.db.session as session

    for module in (config, session, main):
        importlib.reload(module)
    return main.create_app(), session


@pytest.fixture()
def database_url(tmp_path: Path):
    """Fresh sqlite file per test, or a throwaway database when DATABASE_URL points at PostgreSQL."""
    configured = os.getenv("DATABASE_URL", "")
    drop = None
    if configured.startswith("postgres"):
        url, drop = create_postgres_test_database(configured)
    else:
        url = f"sqlite+pysqlite:///{tmp_path / 'test.db'}"

    _migrate(url)
    yield url
    if drop is not None:
        drop()


@pytest.fixture()
def client(database_url: str):
    from app.pdv.core.metrics import metrics

    metrics.reset()
    app, session = _load_app(database_url)
    with TestClient(app) as test_client:
        yield test_client
    session.engine.dispose()


@pytest.fixture()
def db_session(client):
    from app.pdv.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
