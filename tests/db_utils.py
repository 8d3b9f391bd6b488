from __future__ import annotations

import uuid
from collections.abc import Callable

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, make_url


def _run_autocommit(server_url: URL, *statements: tuple[str, dict]) -> None:
    engine = create_engine(server_url, isolation_level="AUTOCOMMIT", future=True)
    try:
        with engine.connect() as conn:
            for sql, params in statements:
                conn.execute(text(sql), params)
    finally:
        engine.dispose()


def create_postgres_test_database(base_url: str) -> tuple[str, Callable[[], None]]:
    """Create a throwaway PostgreSQL database next to ``base_url``.

    Returns the URL of the new database and a callback that drops it.
    """
    url = make_url(base_url)
    server_url = url.set(database="postgres")
    db_name = f"pdv_test_{uuid.uuid4().hex[:16]}"

    _run_autocommit(server_url, (f'CREATE DATABASE "{db_name}"', {}))

    def drop() -> None:
        _run_autocommit(
            server_url,
            (
                "SELECT pg_terminate_backend(pid) FROM pg_stat_activity WHERE datname = :db_name",
                {"db_name": db_name},
            ),
            (f'DROP DATABASE IF EXISTS "{db_name}"', {}),
        )

    return url.set(database=db_name).render_as_string(hide_password=False), drop
