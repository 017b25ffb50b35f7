"""
Snapshots and change-set computation for dirty checking.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, Tuple

from ..mapping.metadata import AssociationMapping, EntityMetadata
from ..mapping.registry import MetadataRegistry

Snapshot = Mapping


@dataclass(frozen=True)
class FieldChange:
    old: Any
    new: Any


class ChangeSet(Mapping):
    """
    Read-only mapping of field name to :class:`FieldChange` for one entity.
    """

    def __init__(self, entity: object, changes: Dict[str, FieldChange] | None = None) -> None:
        self.entity = entity
        self._changes = dict(changes or {})

    def __getitem__(self, name: str) -> FieldChange:
        return self._changes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def __repr__(self) -> str:
        return f"ChangeSet({type(self.entity).__name__}, {self._changes!r})"


def _same_members(old: Tuple[object, ...], new: Tuple[object, ...]) -> bool:
    return {id(item) for item in old} == {id(item) for item in new}


class ChangeSetComputer:
    """
    Keeps one snapshot per entity (by object identity) and diffs against it.

    Mapped fields are copied through their type and compared with the type's
    semantic equality. Owning to-one references are compared by identity and
    owning many-to-many collections by membership.
    """

    def __init__(self, registry: MetadataRegistry) -> None:
        self.registry = registry
        # The entity is kept alongside its snapshot so its id() cannot be reused.
        self._snapshots: Dict[int, Tuple[object, Snapshot]] = {}

    def extract(self, entity: object, metadata: EntityMetadata | None = None) -> Dict[str, Any]:
        metadata = metadata or self.registry.metadata_of(entity)
        state: Dict[str, Any] = {}
        for mapping in metadata.all_fields():
            state[mapping.name] = mapping.type.copy(mapping.get(entity))
        for association in metadata.owning_to_one():
            state[association.field_name] = association.get(entity)
        for association in metadata.owning_many_to_many():
            state[association.field_name] = tuple(association.related(entity))
        return state

    def snapshot(self, entity: object) -> Snapshot:
        snapshot = MappingProxyType(self.extract(entity))
        self._snapshots[id(entity)] = (entity, snapshot)
        return snapshot

    def restore(self, entity: object, snapshot: Snapshot) -> None:
        """
        Install a snapshot taken by another computer (when a unit hands entities over).
        """
        self._snapshots[id(entity)] = (entity, snapshot)

    def get_snapshot(self, entity: object) -> Snapshot | None:
        entry = self._snapshots.get(id(entity))
        return entry[1] if entry is not None else None

    def has_snapshot(self, entity: object) -> bool:
        return id(entity) in self._snapshots

    def forget(self, entity: object) -> None:
        self._snapshots.pop(id(entity), None)

    def clear(self) -> None:
        self._snapshots.clear()

    def insert_change_set(self, entity: object) -> ChangeSet:
        current = self.extract(entity)
        changes = {}
        for name, value in current.items():
            if value is None or value == ():
                continue
            changes[name] = FieldChange(None, value)
        return ChangeSet(entity, changes)

    def compute_change_set(self, entity: object) -> ChangeSet:
        snapshot = self.get_snapshot(entity)
        if snapshot is None:
            return self.insert_change_set(entity)

        metadata = self.registry.metadata_of(entity)
        current = self.extract(entity, metadata)
        changes: Dict[str, FieldChange] = {}
        for mapping in metadata.all_fields():
            old, new = snapshot.get(mapping.name), current[mapping.name]
            if not mapping.type.equals(old, new):
                changes[mapping.name] = FieldChange(old, new)
        for association in metadata.owning_to_one():
            old, new = snapshot.get(association.field_name), current[association.field_name]
            if old is not new:
                changes[association.field_name] = FieldChange(old, new)
        for association in metadata.owning_many_to_many():
            old, new = snapshot.get(association.field_name, ()), current[association.field_name]
            if not _same_members(old, new):
                changes[association.field_name] = FieldChange(old, new)
        return ChangeSet(entity, changes)

    def collection_diff(
        self, entity: object, association: AssociationMapping
    ) -> Tuple[list, list]:
        """
        Members added to and removed from an owning many-to-many collection.
        """
        snapshot = self.get_snapshot(entity)
        old = tuple(snapshot.get(association.field_name, ())) if snapshot is not None else ()
        new = tuple(association.related(entity))
        old_ids = {id(item) for item in old}
        new_ids = {id(item) for item in new}
        added = [item for item in new if id(item) not in old_ids]
        removed = [item for item in old if id(item) not in new_ids]
        return added, removed
