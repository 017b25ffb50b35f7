"""
PostgreSQL database adapter implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from ..dialects.postgres import PostgresDialect
from ..errors import AdapterConfigurationError, AdapterConnectionError, AdapterExecutionError
from .base import BaseAdapter, ConnectionConfig, count_pyformat_placeholders


def _load_driver():
    try:
        import psycopg

        return psycopg
    except ImportError:
        return None


@dataclass
class PostgresConnectionState:
    connection: Any
    config: ConnectionConfig
    driver: Any


class PostgresAdapter(BaseAdapter):
    """
    Adapter wrapping the psycopg PostgreSQL driver.

    Store-assigned identifiers are read from an ``INSERT ... RETURNING`` row.
    """

    def __init__(self, slow_query_ms: int | None = None) -> None:
        super().__init__(PostgresDialect(), slow_query_ms=slow_query_ms)
        self._state: PostgresConnectionState | None = None

    def connect(self, config: ConnectionConfig) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError("psycopg is required to use PostgresAdapter.")

        options = dict(config.options or {})
        if config.ssl:
            for key, value in config.ssl.postgres_options().items():
                options.setdefault(key, value)
        if config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.timeout)

        self.logger.info(
            "Connecting to PostgreSQL %s (autocommit=%s)",
            config.descriptive_label(),
            config.autocommit,
        )

        try:
            connection = driver.connect(config.url, **options)
        except driver.Error as exc:
            raise AdapterConnectionError("Failed to connect to PostgreSQL.") from exc
        connection.autocommit = bool(config.autocommit)
        if config.isolation_level:
            setattr(connection, "isolation_level", config.isolation_level)

        self._state = PostgresConnectionState(connection, config, driver)
        self._reset_state()
        return connection

    def close(self) -> None:
        if self._state:
            try:
                self._state.connection.close()
            finally:
                self._state = None
        self._reset_state()

    def _ensure_connection(self):
        if not self._state:
            raise AdapterConnectionError("PostgresAdapter is not connected.")
        conn = self._state.connection
        if getattr(conn, "closed", False):
            if self._in_transaction:
                raise AdapterConnectionError("PostgreSQL connection closed during a transaction.")
            self.logger.warning("PostgreSQL connection closed; reconnecting.")
            conn = self.connect(self._state.config)
        return conn

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        if self._state is None:
            return ()
        return (self._state.driver.Error,)

    def _validate_params(self, sql: str, params: Sequence[Any]) -> None:
        placeholder_count = count_pyformat_placeholders(sql)
        if placeholder_count != len(params):
            raise AdapterExecutionError(
                f"Parameter count mismatch: expected {placeholder_count}, received {len(params)}.",
                sql=sql,
            )

    # psycopg opens a transaction implicitly unless the connection is in autocommit mode.
    def _begin_connection(self, connection: Any) -> None:
        if connection.autocommit:
            self.execute(self.dialect.begin_sql())

    def _commit_connection(self, connection: Any) -> None:
        if connection.autocommit:
            connection.cursor().execute("COMMIT")
        else:
            connection.commit()

    def _rollback_connection(self, connection: Any) -> None:
        if connection.autocommit:
            connection.cursor().execute("ROLLBACK")
        else:
            connection.rollback()

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any:
        row = cursor.fetchone()
        if not row:
            raise AdapterExecutionError(
                f"No RETURNING data available for {table}.{pk_column}."
            )
        return row[0]
