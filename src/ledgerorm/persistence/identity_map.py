"""
Identity map ensuring a single in-memory instance per row.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple, Type

from ..errors import DuplicateIdentityError
from ..mapping.registry import MetadataRegistry


class IdentityMap:
    """
    Stores entities keyed by (entity type, identifier).

    Entities without an identifier are never stored; registration is retried
    once the identifier is known (after insert).
    """

    def __init__(self, registry: MetadataRegistry) -> None:
        self.registry = registry
        self._store: Dict[Tuple[Type, Any], object] = {}

    def _make_key(self, entity: object) -> Tuple[Type, Any] | None:
        return self.registry.metadata_of(entity).identity_key(entity)

    def _lookup_key(self, entity_type: Type, identifier: Any) -> Tuple[Type, Any]:
        metadata = self.registry.metadata_for(entity_type)
        return (metadata.entity_type, metadata.identifier.type.to_python(identifier))

    def register(self, entity: object, *, replace: bool = False) -> bool:
        """
        Store ``entity``; return False when it has no identifier yet.
        """
        key = self._make_key(entity)
        if key is None:
            return False
        existing = self._store.get(key)
        if existing is not None and existing is not entity and not replace:
            raise DuplicateIdentityError(key[0], key[1])
        self._store[key] = entity
        return True

    def lookup(self, entity_type: Type, identifier: Any) -> object | None:
        if identifier is None:
            return None
        return self._store.get(self._lookup_key(entity_type, identifier))

    def forget(self, entity: object) -> None:
        key = self._make_key(entity)
        if key is not None and self._store.get(key) is entity:
            del self._store[key]

    def contains_entity(self, entity: object) -> bool:
        key = self._make_key(entity)
        return key is not None and self._store.get(key) is entity

    def clear(self) -> None:
        self._store.clear()

    def values(self) -> List[object]:
        return list(self._store.values())

    def __len__(self) -> int:
        return len(self._store)
