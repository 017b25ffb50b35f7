"""
LedgerORM public package initialization.

A unit-of-work persistence engine: identity mapping, dirty checking,
dependency-ordered flushes and savepoint-nested units of work.
"""

from .adapters import ConnectionConfig, MySQLAdapter, PostgresAdapter, SQLiteAdapter  # noqa: F401
from .config import Settings  # noqa: F401
from .errors import (  # noqa: F401
    AdapterConfigurationError,
    AdapterConnectionError,
    AdapterError,
    AdapterExecutionError,
    DuplicateIdentityError,
    EntityNotFoundError,
    EntityNotManagedError,
    LedgerError,
    MappingError,
    SavepointError,
    TransactionStateError,
    UnresolvableDependencyCycleError,
)
from .hooks import hooks  # noqa: F401
from .mapping import (  # noqa: F401
    AssociationKind,
    BooleanType,
    DateTimeType,
    DateType,
    DecimalType,
    FloatType,
    IdGeneration,
    IntegerType,
    JsonType,
    MetadataRegistry,
    StringType,
    UuidType,
)
from .persistence import EntityState, FlushResult, Session, UnitOfWork  # noqa: F401

__all__ = [
    "AdapterConfigurationError",
    "AdapterConnectionError",
    "AdapterError",
    "AdapterExecutionError",
    "AssociationKind",
    "BooleanType",
    "ConnectionConfig",
    "DateTimeType",
    "DateType",
    "DecimalType",
    "DuplicateIdentityError",
    "EntityNotFoundError",
    "EntityNotManagedError",
    "EntityState",
    "FloatType",
    "FlushResult",
    "IdGeneration",
    "IntegerType",
    "JsonType",
    "LedgerError",
    "MappingError",
    "MetadataRegistry",
    "MySQLAdapter",
    "PostgresAdapter",
    "SQLiteAdapter",
    "SavepointError",
    "Session",
    "Settings",
    "StringType",
    "TransactionStateError",
    "UnitOfWork",
    "UnresolvableDependencyCycleError",
    "UuidType",
    "hooks",
]
