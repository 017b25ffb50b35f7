"""
Mapping metadata describing how entity types are stored.
"""

from __future__ import annotations

import enum
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Type as PyType

from .types import Type

Getter = Callable[[object], Any]
Setter = Callable[[object, Any], None]


class IdGeneration(enum.Enum):
    """
    Strategy used to obtain an entity identifier.
    """

    IDENTITY = "identity"
    UUID = "uuid"
    ASSIGNED = "assigned"


class AssociationKind(enum.Enum):
    MANY_TO_ONE = "many-to-one"
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"


def attribute_getter(name: str) -> Getter:
    return operator.attrgetter(name)


def attribute_setter(name: str) -> Setter:
    def setter(entity: object, value: Any) -> None:
        setattr(entity, name, value)

    return setter


def _safe_getter(name: str) -> Getter:
    # Instances built with cls.__new__ may not carry every attribute yet.
    def getter(entity: object) -> Any:
        return getattr(entity, name, None)

    return getter


@dataclass
class FieldMapping:
    name: str
    column: str
    type: Type
    nullable: bool = True
    getter: Getter = None  # type: ignore[assignment]
    setter: Setter = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.getter is None:
            self.getter = _safe_getter(self.name)
        if self.setter is None:
            self.setter = attribute_setter(self.name)

    def get(self, entity: object) -> Any:
        return self.getter(entity)

    def set(self, entity: object, value: Any) -> None:
        self.setter(entity, value)


@dataclass
class IdentifierMapping(FieldMapping):
    generation: IdGeneration = IdGeneration.IDENTITY


@dataclass(frozen=True)
class JoinTable:
    """
    Link table backing a many-to-many association.
    """

    name: str
    join_column: str
    inverse_join_column: str


@dataclass
class AssociationMapping:
    field_name: str
    target: PyType | str
    kind: AssociationKind
    join_column: Optional[str] = None
    referenced_column: str = "id"
    nullable: bool = True
    mapped_by: Optional[str] = None
    inversed_by: Optional[str] = None
    join_table: Optional[JoinTable] = None
    getter: Getter = None  # type: ignore[assignment]
    setter: Setter = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.getter is None:
            self.getter = _safe_getter(self.field_name)
        if self.setter is None:
            self.setter = attribute_setter(self.field_name)

    @property
    def to_many(self) -> bool:
        return self.kind in (AssociationKind.ONE_TO_MANY, AssociationKind.MANY_TO_MANY)

    @property
    def owning_side(self) -> bool:
        """
        True when this side holds the foreign key or the join-table rows.
        """
        if self.kind is AssociationKind.ONE_TO_MANY:
            return False
        return self.mapped_by is None

    @property
    def writes_foreign_key(self) -> bool:
        return self.owning_side and not self.to_many

    @property
    def target_type(self) -> PyType:
        if isinstance(self.target, str):
            raise LookupError(f"Association '{self.field_name}' target '{self.target}' is unresolved.")
        return self.target

    def get(self, entity: object) -> Any:
        return self.getter(entity)

    def set(self, entity: object, value: Any) -> None:
        self.setter(entity, value)

    def related(self, entity: object) -> List[object]:
        """
        Return the entities currently referenced by this association.
        """
        value = self.get(entity)
        if value is None:
            return []
        if self.to_many:
            return list(value)
        return [value]


@dataclass
class EntityMetadata:
    entity_type: PyType
    table: str
    identifier: IdentifierMapping
    fields: Dict[str, FieldMapping] = field(default_factory=dict)
    associations: Dict[str, AssociationMapping] = field(default_factory=dict)
    factory: Optional[Callable[[], object]] = None

    @property
    def name(self) -> str:
        return self.entity_type.__name__

    def all_fields(self) -> Iterator[FieldMapping]:
        """
        Identifier first, then the remaining fields in declaration order.
        """
        yield self.identifier
        yield from self.fields.values()

    def owning_to_one(self) -> Iterable[AssociationMapping]:
        return [assoc for assoc in self.associations.values() if assoc.writes_foreign_key]

    def owning_many_to_many(self) -> Iterable[AssociationMapping]:
        return [
            assoc
            for assoc in self.associations.values()
            if assoc.kind is AssociationKind.MANY_TO_MANY and assoc.owning_side
        ]

    def get_identifier(self, entity: object) -> Any:
        return self.identifier.get(entity)

    def set_identifier(self, entity: object, value: Any) -> None:
        self.identifier.set(entity, value)

    def identity_key(self, entity: object) -> Tuple[PyType, Any] | None:
        identifier = self.get_identifier(entity)
        if identifier is None:
            return None
        return (self.entity_type, self.identifier.type.to_python(identifier))

    def column_for(self, column: str) -> FieldMapping | None:
        for mapping in self.all_fields():
            if mapping.column == column:
                return mapping
        return None
