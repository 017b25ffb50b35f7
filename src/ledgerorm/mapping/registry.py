"""
Code-built registry of entity mappings.

Mappings are declared with a fluent builder instead of class decorators or
metaclasses, so plain classes can be persisted::

    registry = MetadataRegistry()
    registry.entity(Category, table="categories").identifier("id", "uuid", generation=IdGeneration.UUID)
    registry.entity(Task, table="tasks").field("title", "string").many_to_one(
        "category", "Category", nullable=False
    )
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple, Type as PyType

from ..errors import MappingError
from ..utils import camel_to_snake, default_join_column, default_join_table, default_table_name, get_logger
from .metadata import (
    AssociationKind,
    AssociationMapping,
    EntityMetadata,
    FieldMapping,
    Getter,
    IdentifierMapping,
    IdGeneration,
    JoinTable,
    Setter,
)
from .types import IntegerType, Type, resolve_type

logger = get_logger("mapping.registry")


class EntityMapper:
    """
    Fluent builder returned by :meth:`MetadataRegistry.entity`.
    """

    def __init__(self, registry: "MetadataRegistry", metadata: EntityMetadata) -> None:
        self.registry = registry
        self.metadata = metadata

    def identifier(
        self,
        name: str = "id",
        type_: Type | str | None = None,
        *,
        column: Optional[str] = None,
        generation: IdGeneration = IdGeneration.IDENTITY,
        getter: Optional[Getter] = None,
        setter: Optional[Setter] = None,
    ) -> "EntityMapper":
        if type_ is None:
            type_ = "uuid" if generation is IdGeneration.UUID else IntegerType()
        self.metadata.identifier = IdentifierMapping(
            name=name,
            column=column or name,
            type=resolve_type(type_),
            nullable=False,
            getter=getter,  # type: ignore[arg-type]
            setter=setter,  # type: ignore[arg-type]
            generation=generation,
        )
        return self

    def field(
        self,
        name: str,
        type_: Type | str | None = None,
        *,
        column: Optional[str] = None,
        nullable: bool = True,
        getter: Optional[Getter] = None,
        setter: Optional[Setter] = None,
    ) -> "EntityMapper":
        self._ensure_free(name)
        self.metadata.fields[name] = FieldMapping(
            name=name,
            column=column or name,
            type=resolve_type(type_),
            nullable=nullable,
            getter=getter,  # type: ignore[arg-type]
            setter=setter,  # type: ignore[arg-type]
        )
        return self

    def many_to_one(
        self,
        name: str,
        target: PyType | str,
        *,
        join_column: Optional[str] = None,
        referenced_column: str = "id",
        nullable: bool = True,
        inversed_by: Optional[str] = None,
        getter: Optional[Getter] = None,
        setter: Optional[Setter] = None,
    ) -> "EntityMapper":
        return self._associate(
            AssociationMapping(
                field_name=name,
                target=target,
                kind=AssociationKind.MANY_TO_ONE,
                join_column=join_column or default_join_column(name, referenced_column),
                referenced_column=referenced_column,
                nullable=nullable,
                inversed_by=inversed_by,
                getter=getter,  # type: ignore[arg-type]
                setter=setter,  # type: ignore[arg-type]
            )
        )

    def one_to_one(
        self,
        name: str,
        target: PyType | str,
        *,
        join_column: Optional[str] = None,
        referenced_column: str = "id",
        nullable: bool = True,
        mapped_by: Optional[str] = None,
        inversed_by: Optional[str] = None,
        getter: Optional[Getter] = None,
        setter: Optional[Setter] = None,
    ) -> "EntityMapper":
        if mapped_by is None:
            join_column = join_column or default_join_column(name, referenced_column)
        return self._associate(
            AssociationMapping(
                field_name=name,
                target=target,
                kind=AssociationKind.ONE_TO_ONE,
                join_column=join_column,
                referenced_column=referenced_column,
                nullable=nullable,
                mapped_by=mapped_by,
                inversed_by=inversed_by,
                getter=getter,  # type: ignore[arg-type]
                setter=setter,  # type: ignore[arg-type]
            )
        )

    def one_to_many(
        self,
        name: str,
        target: PyType | str,
        *,
        mapped_by: str,
        getter: Optional[Getter] = None,
        setter: Optional[Setter] = None,
    ) -> "EntityMapper":
        return self._associate(
            AssociationMapping(
                field_name=name,
                target=target,
                kind=AssociationKind.ONE_TO_MANY,
                mapped_by=mapped_by,
                getter=getter,  # type: ignore[arg-type]
                setter=setter,  # type: ignore[arg-type]
            )
        )

    def many_to_many(
        self,
        name: str,
        target: PyType | str,
        *,
        join_table: Optional[str] = None,
        join_column: Optional[str] = None,
        inverse_join_column: Optional[str] = None,
        mapped_by: Optional[str] = None,
        inversed_by: Optional[str] = None,
        getter: Optional[Getter] = None,
        setter: Optional[Setter] = None,
    ) -> "EntityMapper":
        association = AssociationMapping(
            field_name=name,
            target=target,
            kind=AssociationKind.MANY_TO_MANY,
            mapped_by=mapped_by,
            inversed_by=inversed_by,
            getter=getter,  # type: ignore[arg-type]
            setter=setter,  # type: ignore[arg-type]
        )
        if mapped_by is None:
            # Table name needs the target's table; it is filled in once the target resolves.
            self.registry._pending_join_tables[id(association)] = (join_table, join_column, inverse_join_column)
        return self._associate(association)

    def _associate(self, association: AssociationMapping) -> "EntityMapper":
        self._ensure_free(association.field_name)
        self.metadata.associations[association.field_name] = association
        self.registry._register_association(self.metadata, association)
        return self

    def _ensure_free(self, name: str) -> None:
        if name in self.metadata.fields or name in self.metadata.associations:
            raise MappingError(f"'{self.metadata.name}.{name}' is already mapped.")


class MetadataRegistry:
    """
    Metadata provider consumed by the unit of work.
    """

    def __init__(self) -> None:
        self._metadata: Dict[PyType, EntityMetadata] = {}
        self._labels: Dict[str, PyType] = {}
        self._pending: List[Tuple[EntityMetadata, AssociationMapping]] = []
        self._pending_join_tables: Dict[int, Tuple[Optional[str], Optional[str], Optional[str]]] = {}

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def entity(
        self,
        entity_type: PyType,
        *,
        table: Optional[str] = None,
        factory: Optional[Callable[[], object]] = None,
    ) -> EntityMapper:
        metadata = self._metadata.get(entity_type)
        if metadata is None:
            metadata = EntityMetadata(
                entity_type=entity_type,
                table=table or default_table_name(entity_type),
                identifier=IdentifierMapping(name="id", column="id", type=IntegerType(), nullable=False),
                factory=factory,
            )
            self._metadata[entity_type] = metadata
            self._labels[entity_type.__name__] = entity_type
            logger.debug("Registered entity %s -> %s", entity_type.__name__, metadata.table)
            self._resolve_pending()
        else:
            if table:
                metadata.table = table
            if factory:
                metadata.factory = factory
        return EntityMapper(self, metadata)

    def _register_association(self, metadata: EntityMetadata, association: AssociationMapping) -> None:
        target = self._resolve_target(association.target)
        if target is None:
            self._pending.append((metadata, association))
            return
        self._bind(metadata, association, target)

    def _resolve_pending(self) -> None:
        unresolved = []
        for metadata, association in self._pending:
            target = self._resolve_target(association.target)
            if target is None:
                unresolved.append((metadata, association))
                continue
            self._bind(metadata, association, target)
        self._pending = unresolved

    def _resolve_target(self, target: PyType | str) -> Optional[PyType]:
        if isinstance(target, type):
            return target
        label = target.split(".")[-1]
        return self._labels.get(label)

    def _bind(self, metadata: EntityMetadata, association: AssociationMapping, target: PyType) -> None:
        association.target = target
        overrides = self._pending_join_tables.pop(id(association), None)
        if overrides is None:
            return
        table, join_column, inverse_join_column = overrides
        target_table = self._metadata[target].table if target in self._metadata else default_table_name(target)
        association.join_table = JoinTable(
            name=table or default_join_table(metadata.table, target_table),
            join_column=join_column or f"{camel_to_snake(metadata.name)}_id",
            inverse_join_column=inverse_join_column or f"{camel_to_snake(target.__name__)}_id",
        )

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #
    def is_registered(self, entity_type: PyType) -> bool:
        return self._find(entity_type) is not None

    def metadata_for(self, entity_type: PyType) -> EntityMetadata:
        metadata = self._find(entity_type)
        if metadata is None:
            raise MappingError(f"Entity type '{entity_type.__name__}' is not registered.")
        for association in metadata.associations.values():
            if isinstance(association.target, str):
                raise MappingError(
                    f"Association '{metadata.name}.{association.field_name}' targets "
                    f"unregistered type '{association.target}'."
                )
        return metadata

    def metadata_of(self, entity: object) -> EntityMetadata:
        return self.metadata_for(type(entity))

    def _find(self, entity_type: PyType) -> Optional[EntityMetadata]:
        for candidate in entity_type.__mro__:
            metadata = self._metadata.get(candidate)
            if metadata is not None:
                return metadata
        return None

    def registered_types(self) -> List[PyType]:
        return list(self._metadata)

    # ------------------------------------------------------------------ #
    # Provider operations
    # ------------------------------------------------------------------ #
    def identifier_field(self, entity_type: PyType) -> IdentifierMapping:
        return self.metadata_for(entity_type).identifier

    def field_mappings(self, entity_type: PyType) -> List[FieldMapping]:
        """
        Non-identifier field mappings in declaration order.
        """
        return list(self.metadata_for(entity_type).fields.values())

    def association_mappings(self, entity_type: PyType) -> List[AssociationMapping]:
        return list(self.metadata_for(entity_type).associations.values())

    def new_instance(self, entity_type: PyType) -> object:
        """
        Build an empty instance without running ``__init__``, unless a factory was registered.
        """
        metadata = self.metadata_for(entity_type)
        if metadata.factory is not None:
            return metadata.factory()
        return metadata.entity_type.__new__(metadata.entity_type)

    def get_field_value(self, entity: object, name: str) -> Any:
        return self._accessor(entity, name).get(entity)

    def set_field_value(self, entity: object, name: str, value: Any) -> None:
        self._accessor(entity, name).set(entity, value)

    def _accessor(self, entity: object, name: str) -> FieldMapping | AssociationMapping:
        metadata = self.metadata_of(entity)
        if name == metadata.identifier.name:
            return metadata.identifier
        if name in metadata.fields:
            return metadata.fields[name]
        if name in metadata.associations:
            return metadata.associations[name]
        raise MappingError(f"'{metadata.name}' has no mapped field '{name}'.")
