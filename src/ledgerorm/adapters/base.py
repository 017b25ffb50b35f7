"""
Adapter protocol and shared connection bookkeeping for LedgerORM.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from ..config import parse_bool, parse_float, parse_int, resolve_slow_query_ms
from ..dialects.base import Dialect
from ..errors import (
    AdapterConfigurationError,
    AdapterExecutionError,
    SavepointError,
    TransactionStateError,
)
from ..utils import get_logger, redact_params, time_call
from .dsn import DSNConfig, parse_dsn


@dataclass
class SSLConfig:
    mode: str | None = None
    rootcert: str | None = None
    cert: str | None = None
    key: str | None = None
    ca: str | None = None
    check_hostname: bool | None = None

    def postgres_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if self.mode:
            options["sslmode"] = self.mode
        if self.rootcert:
            options["sslrootcert"] = self.rootcert
        if self.cert:
            options["sslcert"] = self.cert
        if self.key:
            options["sslkey"] = self.key
        return options

    def mysql_options(self) -> dict[str, Any]:
        ssl: dict[str, Any] = {}
        if self.ca:
            ssl["ca"] = self.ca
        if self.cert:
            ssl["cert"] = self.cert
        if self.key:
            ssl["key"] = self.key
        if self.check_hostname is not None:
            ssl["check_hostname"] = self.check_hostname
        return {"ssl": ssl} if ssl else {}

    def is_empty(self) -> bool:
        return not any(
            [self.mode, self.rootcert, self.cert, self.key, self.ca, self.check_hostname is not None]
        )


_SSL_KEYS = {
    "sslmode": "mode",
    "sslrootcert": "rootcert",
    "sslcert": "cert",
    "sslkey": "key",
    "ssl_ca": "ca",
    "ssl_cert": "cert",
    "ssl_key": "key",
}


def _parse_ssl(query: dict[str, str]) -> SSLConfig | None:
    ssl = SSLConfig()
    for key, attribute in _SSL_KEYS.items():
        if key in query:
            setattr(ssl, attribute, query.pop(key))
    if "ssl_check_hostname" in query:
        ssl.check_hostname = parse_bool(query.pop("ssl_check_hostname"), key="ssl_check_hostname")
    return None if ssl.is_empty() else ssl


def _parse_option_values(query: dict[str, str]) -> dict[str, Any]:
    options: dict[str, Any] = {}
    for key, value in query.items():
        if key == "connect_timeout":
            options[key] = parse_int(value, key=key)
        else:
            options[key] = value
    return options


@dataclass
class ConnectionConfig:
    """
    Normalized connection configuration for adapters.
    """

    url: str
    autocommit: bool = False
    isolation_level: str | None = None
    timeout: float | None = None
    options: dict[str, Any] | None = None
    ssl: SSLConfig | None = None
    dsn: DSNConfig | None = None
    source: str | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> "ConnectionConfig":
        """
        Build a connection config by parsing the DSN string.

        Keyword arguments override values found in the DSN query string.
        """

        parsed = parse_dsn(dsn)
        query = dict(parsed.query)

        parsed_autocommit = parse_bool(query.pop("autocommit"), key="autocommit") if "autocommit" in query else None
        parsed_timeout = parse_float(query.pop("timeout"), key="timeout") if "timeout" in query else None
        parsed_isolation_level = query.pop("isolation_level", None)
        parsed_ssl = _parse_ssl(query)

        options = _parse_option_values(query)
        options.update(kwargs.pop("options", None) or {})

        autocommit = kwargs.pop("autocommit", parsed_autocommit)
        return cls(
            url=dsn,
            dsn=parsed,
            autocommit=bool(autocommit) if autocommit is not None else False,
            isolation_level=kwargs.pop("isolation_level", parsed_isolation_level),
            timeout=kwargs.pop("timeout", parsed_timeout),
            options=options or None,
            ssl=kwargs.pop("ssl", parsed_ssl),
            **kwargs,
        )

    @classmethod
    def from_env(cls, env_var: str, **kwargs: Any) -> "ConnectionConfig":
        """
        Build a config from an environment variable containing a DSN.
        """

        value = os.getenv(env_var)
        if not value:
            raise AdapterConfigurationError(f"Environment variable {env_var} is not set")
        return cls.from_dsn(value, source=env_var, **kwargs)

    def redacted_dsn(self) -> str:
        if self.dsn:
            return self.dsn.redacted()
        return parse_dsn(self.url).redacted() if "://" in self.url else self.url

    def descriptive_label(self) -> str:
        redacted = self.redacted_dsn()
        if self.source:
            return f"{self.source} ({redacted})"
        return redacted


class DatabaseAdapter(Protocol):
    """
    Connection interface consumed by the unit of work and the session.
    """

    dialect: Dialect
    slow_query_ms: int

    @property
    def in_transaction(self) -> bool: ...

    @property
    def savepoints(self) -> tuple[str, ...]: ...

    def connect(self, config: ConnectionConfig) -> Any: ...

    def close(self) -> None: ...

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any: ...

    def fetch_one(self, sql: str, params: Sequence[Any] | None = None) -> dict[str, Any] | None: ...

    def fetch_all(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]: ...

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any: ...

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def create_savepoint(self, name: str) -> None: ...

    def release_savepoint(self, name: str) -> None: ...

    def rollback_to_savepoint(self, name: str) -> None: ...


def count_pyformat_placeholders(sql: str) -> int:
    count = 0
    idx = 0
    while idx < len(sql) - 1:
        if sql[idx] == "%" and sql[idx + 1] == "s":
            count += 1
            idx += 2
            continue
        if sql[idx] == "%" and sql[idx + 1] == "%":
            idx += 2
            continue
        idx += 1
    return count


class BaseAdapter:
    """
    Transaction and savepoint bookkeeping shared by the bundled adapters.

    Subclasses provide the driver connection (``_ensure_connection``) and the
    driver exception types (``_driver_errors``). Every statement goes through
    :meth:`execute`, so driver failures surface as
    :class:`AdapterExecutionError` carrying the failing SQL.
    """

    dialect: Dialect
    logger: logging.Logger

    def __init__(self, dialect: Dialect, *, slow_query_ms: int | None = None) -> None:
        self.dialect = dialect
        self.slow_query_ms = resolve_slow_query_ms(default=100, override=slow_query_ms)
        self.logger = get_logger(f"adapters.{dialect.name}")
        self._in_transaction = False
        self._savepoints: list[str] = []

    # ------------------------------------------------------------------ #
    # Driver hooks
    # ------------------------------------------------------------------ #
    def _ensure_connection(self) -> Any:
        raise NotImplementedError

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        raise NotImplementedError

    def _validate_params(self, sql: str, params: Sequence[Any]) -> None:
        return None

    def _reset_state(self) -> None:
        self._in_transaction = False
        self._savepoints.clear()

    # ------------------------------------------------------------------ #
    # Execution helpers
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        connection = self._ensure_connection()
        params = tuple(params or ())
        self._validate_params(sql, params)
        cursor = connection.cursor()
        safe_params = redact_params(params)
        with time_call(
            f"{self.dialect.name}.execute",
            self.logger,
            sql=sql,
            params=safe_params,
            threshold_ms=self.slow_query_ms,
        ):
            try:
                cursor.execute(sql, params)
            except self._driver_errors() as exc:
                raise AdapterExecutionError(str(exc), sql=sql, params=safe_params) from exc
        return cursor

    def fetch_one(self, sql: str, params: Sequence[Any] | None = None) -> dict[str, Any] | None:
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_dict(cursor, row)

    def fetch_all(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        cursor = self.execute(sql, params)
        return [self._row_to_dict(cursor, row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_dict(cursor: Any, row: Any) -> dict[str, Any]:
        if isinstance(row, dict):
            return dict(row)
        columns = [description[0] for description in cursor.description or ()]
        return dict(zip(columns, row))

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def begin(self) -> None:
        if self._in_transaction:
            raise TransactionStateError("A transaction is already active.")
        self._begin_connection(self._ensure_connection())
        self._in_transaction = True
        self._savepoints.clear()

    def commit(self) -> None:
        self._require_transaction("commit")
        try:
            self._commit_connection(self._ensure_connection())
        except self._driver_errors() as exc:
            raise AdapterExecutionError(str(exc), sql="COMMIT") from exc
        finally:
            self._reset_state()

    def rollback(self) -> None:
        self._require_transaction("roll back")
        try:
            self._rollback_connection(self._ensure_connection())
        except self._driver_errors() as exc:
            raise AdapterExecutionError(str(exc), sql="ROLLBACK") from exc
        finally:
            self._reset_state()

    def _begin_connection(self, connection: Any) -> None:
        self.execute(self.dialect.begin_sql())

    def _commit_connection(self, connection: Any) -> None:
        connection.commit()

    def _rollback_connection(self, connection: Any) -> None:
        connection.rollback()

    # ------------------------------------------------------------------ #
    # Savepoints
    # ------------------------------------------------------------------ #
    @property
    def savepoints(self) -> tuple[str, ...]:
        return tuple(self._savepoints)

    def create_savepoint(self, name: str) -> None:
        self._require_transaction("create a savepoint")
        self._require_savepoint_support()
        if name in self._savepoints:
            raise SavepointError(f"Savepoint '{name}' already exists.", name=name)
        self.execute(self.dialect.savepoint_sql(name))
        self._savepoints.append(name)
        self.logger.debug("Savepoint %s created", name)

    def release_savepoint(self, name: str) -> None:
        self._require_transaction("release a savepoint")
        self._require_savepoint_support()
        index = self._savepoint_index(name)
        self.execute(self.dialect.release_savepoint_sql(name))
        del self._savepoints[index:]
        self.logger.debug("Savepoint %s released", name)

    def rollback_to_savepoint(self, name: str) -> None:
        """
        Roll back to ``name`` and discard it along with every later savepoint.
        """
        self._require_transaction("roll back to a savepoint")
        self._require_savepoint_support()
        index = self._savepoint_index(name)
        self.execute(self.dialect.rollback_to_savepoint_sql(name))
        self.execute(self.dialect.release_savepoint_sql(name))
        del self._savepoints[index:]
        self.logger.debug("Rolled back to savepoint %s", name)

    def _savepoint_index(self, name: str) -> int:
        try:
            return self._savepoints.index(name)
        except ValueError:
            raise SavepointError(f"Unknown savepoint '{name}'.", name=name) from None

    def _require_transaction(self, action: str) -> None:
        if not self._in_transaction:
            raise TransactionStateError(f"Cannot {action}: no active transaction.")

    def _require_savepoint_support(self) -> None:
        if not self.dialect.capabilities.supports_savepoints:
            raise SavepointError(
                f"Savepoints are not supported by the '{self.dialect.name}' dialect."
            )
