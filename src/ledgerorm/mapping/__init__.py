"""
Entity mapping metadata, value types and the metadata registry.
"""

from .metadata import (
    AssociationKind,
    AssociationMapping,
    EntityMetadata,
    FieldMapping,
    IdentifierMapping,
    IdGeneration,
    JoinTable,
)
from .registry import EntityMapper, MetadataRegistry
from .types import (
    BooleanType,
    DateTimeType,
    DateType,
    DecimalType,
    FloatType,
    IntegerType,
    JsonType,
    StringType,
    TimeType,
    Type,
    UuidType,
    register_type,
    resolve_type,
)

__all__ = [
    "AssociationKind",
    "AssociationMapping",
    "BooleanType",
    "DateTimeType",
    "DateType",
    "DecimalType",
    "EntityMapper",
    "EntityMetadata",
    "FieldMapping",
    "FloatType",
    "IdGeneration",
    "IdentifierMapping",
    "IntegerType",
    "JoinTable",
    "JsonType",
    "MetadataRegistry",
    "StringType",
    "TimeType",
    "Type",
    "UuidType",
    "register_type",
    "resolve_type",
]
