"""
SQLite database adapter implementation.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

from ..dialects.sqlite import SQLiteDialect
from ..errors import AdapterConnectionError
from .base import BaseAdapter, ConnectionConfig


@dataclass(slots=True)
class SQLiteConnectionState:
    connection: sqlite3.Connection
    path: str


class SQLiteAdapter(BaseAdapter):
    """
    Adapter wrapping the Python stdlib sqlite3 module.

    The connection runs with ``isolation_level=None`` so that BEGIN, COMMIT and
    savepoint statements are issued only by this adapter.
    """

    def __init__(self, slow_query_ms: int | None = None) -> None:
        super().__init__(SQLiteDialect(), slow_query_ms=slow_query_ms)
        self._state: SQLiteConnectionState | None = None

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        path = self._normalize_path(config.url)
        timeout = config.timeout if config.timeout is not None else 5.0

        try:
            connection = sqlite3.connect(
                path,
                isolation_level=None,
                timeout=timeout,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise AdapterConnectionError(f"Failed to open SQLite database at {path!r}.") from exc
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")

        self._state = SQLiteConnectionState(connection, path)
        self._reset_state()
        self.logger.debug("Connected to SQLite %s", path)
        return connection

    def close(self) -> None:
        if self._state:
            self._state.connection.close()
            self._state = None
        self._reset_state()

    def _ensure_connection(self) -> sqlite3.Connection:
        if not self._state:
            raise AdapterConnectionError("SQLiteAdapter is not connected.")
        return self._state.connection

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        return (sqlite3.Error,)

    # ------------------------------------------------------------------ #
    def last_insert_id(self, cursor: sqlite3.Cursor, table: str, pk_column: str) -> Any:
        return cursor.lastrowid

    @staticmethod
    def _normalize_path(url: str) -> str:
        if url in ("sqlite:///:memory:", "sqlite://", ":memory:"):
            return ":memory:"
        prefix = "sqlite:///"
        if url.startswith(prefix):
            return url[len(prefix) :]
        return url
