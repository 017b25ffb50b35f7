"""
Database adapter interfaces and implementations.
"""

from ..errors import (
    AdapterConfigurationError,
    AdapterConnectionError,
    AdapterError,
    AdapterExecutionError,
)
from .base import BaseAdapter, ConnectionConfig, DatabaseAdapter, SSLConfig
from .dsn import DSNConfig, parse_dsn
from .mysql import MySQLAdapter
from .postgres import PostgresAdapter
from .sqlite import SQLiteAdapter

__all__ = [
    "AdapterConfigurationError",
    "AdapterConnectionError",
    "AdapterError",
    "AdapterExecutionError",
    "BaseAdapter",
    "ConnectionConfig",
    "DSNConfig",
    "DatabaseAdapter",
    "MySQLAdapter",
    "PostgresAdapter",
    "SQLiteAdapter",
    "SSLConfig",
    "parse_dsn",
]
