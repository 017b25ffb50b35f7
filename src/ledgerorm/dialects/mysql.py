"""
MySQL / MariaDB dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, StandardSavepointsMixin


class MySQLDialect(StandardSavepointsMixin):
    """
    MySQL dialect using percent-style placeholders and backtick quoting.
    """

    name: Final[str] = "mysql"
    param_style: Final[str] = "pyformat"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_returning=False,
        supports_savepoints=True,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace("`", "``")
        return f"`{escaped}`"

    def format_table(self, table_name: str) -> str:
        if "." in table_name:
            schema, table = table_name.split(".", 1)
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table_name)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "%s"

    def begin_sql(self) -> str:
        return "START TRANSACTION"
