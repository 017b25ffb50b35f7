"""
Error hierarchy shared across LedgerORM packages.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence


class LedgerError(Exception):
    """Base error for all LedgerORM failures."""


class MappingError(LedgerError):
    """Raised when an entity type is unknown or its mapping is invalid."""


class EntityNotManagedError(LedgerError):
    """Raised when an operation targets an entity the unit of work does not track."""

    def __init__(self, entity: object, operation: str | None = None) -> None:
        self.entity = entity
        self.operation = operation
        type_name = type(entity).__name__
        if operation:
            message = f"Cannot {operation} entity of type '{type_name}': it is not managed by the unit of work."
        else:
            message = f"Entity of type '{type_name}' is not managed by the unit of work."
        super().__init__(message)


class EntityNotFoundError(LedgerError):
    """Raised when a row expected to back a managed entity no longer exists."""

    def __init__(self, entity_type: type, identifier: Any) -> None:
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(
            f"Entity of type '{entity_type.__name__}' with identifier {identifier!r} not found."
        )


class DuplicateIdentityError(LedgerError):
    """Raised when two distinct objects claim the same (type, identifier) slot."""

    def __init__(self, entity_type: type, identifier: Any) -> None:
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(
            f"Another instance of '{entity_type.__name__}' with identifier {identifier!r} "
            "is already registered in the identity map."
        )


class UnresolvableDependencyCycleError(LedgerError):
    """Raised when pending inserts reference each other through mandatory foreign keys."""

    def __init__(self, entities: Sequence[object]) -> None:
        self.entities = list(entities)
        names = " -> ".join(_describe(entity) for entity in self.entities)
        super().__init__(
            f"Cannot order inserts: mandatory foreign keys form a cycle ({names})."
        )


class TransactionStateError(LedgerError):
    """Raised when a transaction operation does not match the connection state."""


class SavepointError(LedgerError):
    """Raised for unknown savepoint names or platforms without savepoints."""

    def __init__(self, message: str, *, name: str | None = None) -> None:
        self.name = name
        super().__init__(message)


class AdapterError(LedgerError):
    """Base error for adapter-related failures."""


class AdapterConfigurationError(AdapterError):
    """Raised when configuration or required dependencies are invalid."""


class AdapterConnectionError(AdapterError):
    """Raised when establishing or using a connection fails."""


class AdapterExecutionError(AdapterError):
    """Raised when SQL execution or parameter validation fails."""

    def __init__(
        self,
        message: str,
        *,
        sql: str | None = None,
        params: Iterable[Any] | None = None,
    ) -> None:
        self.sql = sql
        self.params = list(params) if params is not None else None
        if sql:
            message = f"{message} SQL: {sql}"
        super().__init__(message)


def _describe(entity: object) -> str:
    return f"{type(entity).__name__}@{id(entity):#x}"


__all__ = [
    "AdapterConfigurationError",
    "AdapterConnectionError",
    "AdapterError",
    "AdapterExecutionError",
    "DuplicateIdentityError",
    "EntityNotFoundError",
    "EntityNotManagedError",
    "LedgerError",
    "MappingError",
    "SavepointError",
    "TransactionStateError",
    "UnresolvableDependencyCycleError",
]
