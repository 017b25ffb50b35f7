"""
Dialect strategy interfaces describing the SQL fragments the engine emits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DialectCapabilities:
    """
    Feature flags describing backend capabilities.
    """

    supports_returning: bool = False
    supports_savepoints: bool = True


class Dialect(Protocol):
    """
    Strategy interface consumed by adapters and the entity persister.
    """

    @property
    def name(self) -> str: ...

    @property
    def param_style(self) -> str: ...

    @property
    def capabilities(self) -> DialectCapabilities: ...

    def quote_identifier(self, identifier: str) -> str: ...

    def format_table(self, table_name: str) -> str: ...

    def parameter_placeholder(self, position: int | None = None) -> str: ...

    def begin_sql(self) -> str: ...

    def savepoint_sql(self, name: str) -> str: ...

    def release_savepoint_sql(self, name: str) -> str: ...

    def rollback_to_savepoint_sql(self, name: str) -> str: ...


class StandardSavepointsMixin:
    """
    ANSI savepoint statements shared by the bundled dialects.
    """

    def quote_identifier(self, identifier: str) -> str:
        raise NotImplementedError

    def begin_sql(self) -> str:
        return "BEGIN"

    def savepoint_sql(self, name: str) -> str:
        return f"SAVEPOINT {self.quote_identifier(name)}"

    def release_savepoint_sql(self, name: str) -> str:
        return f"RELEASE SAVEPOINT {self.quote_identifier(name)}"

    def rollback_to_savepoint_sql(self, name: str) -> str:
        return f"ROLLBACK TO SAVEPOINT {self.quote_identifier(name)}"
