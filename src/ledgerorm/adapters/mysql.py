"""
MySQL database adapter implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from ..dialects.mysql import MySQLDialect
from ..errors import AdapterConfigurationError, AdapterConnectionError, AdapterExecutionError
from .base import BaseAdapter, ConnectionConfig, count_pyformat_placeholders


def _load_driver():
    try:
        import pymysql  # type: ignore[import-untyped]

        return pymysql
    except ImportError:
        try:
            import MySQLdb

            return MySQLdb
        except ImportError:
            return None


@dataclass
class MySQLConnectionState:
    connection: Any
    config: ConnectionConfig
    driver: Any


class MySQLAdapter(BaseAdapter):
    """
    Adapter wrapping a MySQL DB-API driver (PyMySQL or mysqlclient).
    """

    def __init__(self, slow_query_ms: int | None = None) -> None:
        super().__init__(MySQLDialect(), slow_query_ms=slow_query_ms)
        self._state: MySQLConnectionState | None = None

    def connect(self, config: ConnectionConfig) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError(
                "PyMySQL or mysqlclient is required to use MySQLAdapter."
            )
        if not config.dsn:
            raise AdapterConfigurationError(
                "ConnectionConfig must be built from a DSN for MySQL connections."
            )

        options = dict(config.options or {})
        if config.ssl:
            for key, value in config.ssl.mysql_options().items():
                options.setdefault(key, value)
        if config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.timeout)

        self.logger.info(
            "Connecting to MySQL %s (autocommit=%s)",
            config.descriptive_label(),
            config.autocommit,
        )

        dsn = config.dsn
        connect_kwargs = {
            "host": dsn.host or "localhost",
            "user": dsn.username,
            "password": dsn.password,
            "database": dsn.database,
            **options,
        }
        if dsn.port:
            connect_kwargs["port"] = dsn.port

        try:
            connection = driver.connect(**connect_kwargs)
        except driver.Error as exc:
            raise AdapterConnectionError("Failed to connect to MySQL.") from exc
        connection.autocommit(config.autocommit)

        self._state = MySQLConnectionState(connection, config, driver)
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
            raise AdapterConnectionError("MySQLAdapter is not connected.")
        return self._state.connection

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

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any:
        return cursor.lastrowid
