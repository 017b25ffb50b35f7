"""
Cascade resolver scheduling related entities for insertion.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Set

from ..errors import MappingError
from ..mapping.metadata import AssociationKind
from ..mapping.registry import MetadataRegistry

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


class CascadeResolver:
    """
    Walks the association graph of a persisted entity depth-first.

    Every reachable entity that no unit of work tracks is scheduled for
    insertion on ``unit_of_work``. Tracked entities stop the walk, as do objects
    already visited during the same call, so reference cycles terminate.
    """

    def __init__(self, registry: MetadataRegistry) -> None:
        self.registry = registry

    def expand(self, root: object, unit_of_work: "UnitOfWork") -> List[object]:
        """
        Return the entities newly scheduled because of ``root``, in discovery order.
        """
        visited: Set[int] = {id(root)}
        discovered: List[object] = []
        stack = [root]
        while stack:
            entity = stack.pop()
            children = []
            for related in self._related(entity):
                if id(related) in visited:
                    continue
                visited.add(id(related))
                if unit_of_work.is_tracked(related):
                    continue
                unit_of_work.schedule_insert(related)
                discovered.append(related)
                children.append(related)
            # Reversed so the first association is walked first.
            stack.extend(reversed(children))
        return discovered

    def _related(self, entity: object) -> List[object]:
        metadata = self.registry.metadata_of(entity)
        related: List[object] = []
        for association in metadata.associations.values():
            for item in association.related(entity):
                if not self.registry.is_registered(type(item)):
                    raise MappingError(
                        f"'{metadata.name}.{association.field_name}' references an instance of "
                        f"unregistered type '{type(item).__name__}'."
                    )
                if association.kind is AssociationKind.ONE_TO_MANY and association.mapped_by:
                    self._link_inverse(item, association.mapped_by, entity)
                related.append(item)
        return related

    def _link_inverse(self, child: object, field_name: str, parent: object) -> None:
        inverse = self.registry.metadata_of(child).associations.get(field_name)
        if inverse is not None and inverse.get(child) is None:
            inverse.set(child, parent)
