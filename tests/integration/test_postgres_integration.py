import os

import pytest

from ledgerorm import AdapterConnectionError, PostgresAdapter, Session
from ledgerorm.adapters import ConnectionConfig

from tests.support.integration import run_savepoint_scenario


def _require_postgres_config():
    try:
        import psycopg  # noqa: F401
    except ImportError:
        pytest.skip("psycopg driver not installed")
    dsn = os.getenv("LEDGERORM_POSTGRES_DSN")
    if not dsn:
        pytest.skip("LEDGERORM_POSTGRES_DSN not set; skipping Postgres integration test")
    return ConnectionConfig.from_dsn(dsn)


def test_postgres_savepoint_isolation():
    config = _require_postgres_config()

    def make_session(registry):
        try:
            return Session(PostgresAdapter(), registry, connection_config=config)
        except AdapterConnectionError as exc:  # pragma: no cover - environment dependent
            pytest.skip(f"Cannot connect to Postgres for integration test: {exc}")

    run_savepoint_scenario(make_session, "id SERIAL PRIMARY KEY")
