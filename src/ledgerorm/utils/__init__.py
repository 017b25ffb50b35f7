"""
Utility helpers shared across LedgerORM packages.
"""

from .logging import configure_logging, get_correlation_id, get_logger, set_correlation_id, time_call
from .naming import camel_to_snake, default_join_column, default_join_table, default_table_name
from .redaction import redact_params, redact_value

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "default_join_column",
    "default_join_table",
    "default_table_name",
    "get_correlation_id",
    "get_logger",
    "redact_params",
    "redact_value",
    "set_correlation_id",
    "time_call",
]
