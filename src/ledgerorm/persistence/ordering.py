"""
Dependency ordering for inserts and deletes.

Pending writes form a graph whose edges come from owning to-one associations.
Kahn's algorithm orders the graph, breaking ties by scheduling order. Cycles
are broken on a nullable edge: that foreign key is written separately (an
``UPDATE`` after the inserts, or a ``NULL`` before the deletes). A cycle made
only of mandatory foreign keys cannot be written and is reported before any
SQL runs.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set

from ..errors import UnresolvableDependencyCycleError
from ..mapping.metadata import AssociationMapping
from ..mapping.registry import MetadataRegistry


@dataclass(frozen=True, eq=False)
class Dependency:
    """
    ``prerequisite`` must be written before ``dependent``.

    ``owner`` is the entity holding the foreign key described by ``association``.
    """

    dependent: object
    prerequisite: object
    owner: object
    association: AssociationMapping

    @property
    def nullable(self) -> bool:
        return self.association.nullable


@dataclass
class WritePlan:
    order: List[object] = field(default_factory=list)
    deferred: List[Dependency] = field(default_factory=list)


def _foreign_key_edges(entities: Sequence[object], registry: MetadataRegistry):
    """
    Yield ``(owner, association, referenced)`` for references between ``entities``.
    """
    members = {id(entity) for entity in entities}
    for owner in entities:
        metadata = registry.metadata_of(owner)
        for association in metadata.owning_to_one():
            referenced = association.get(owner)
            if referenced is not None and id(referenced) in members:
                yield owner, association, referenced


def plan_inserts(entities: Sequence[object], registry: MetadataRegistry) -> WritePlan:
    """
    Order pending inserts so every referenced row exists before its referrer.
    """
    edges = []
    for owner, association, referenced in _foreign_key_edges(entities, registry):
        if referenced is owner and _has_identifier(owner, registry):
            # A row may reference itself in one statement when its key is known up front.
            continue
        edges.append(Dependency(owner, referenced, owner, association))
    return sort_dependencies(entities, edges)


def plan_deletes(entities: Sequence[object], registry: MetadataRegistry) -> WritePlan:
    """
    Order pending deletes so referrers are removed before the rows they reference.
    """
    edges = [
        Dependency(referenced, owner, owner, association)
        for owner, association, referenced in _foreign_key_edges(entities, registry)
        if referenced is not owner
    ]
    return sort_dependencies(entities, edges)


def _has_identifier(entity: object, registry: MetadataRegistry) -> bool:
    return registry.metadata_of(entity).get_identifier(entity) is not None


def sort_dependencies(nodes: Sequence[object], dependencies: Sequence[Dependency]) -> WritePlan:
    position: Dict[int, int] = {id(node): index for index, node in enumerate(nodes)}
    outgoing: Dict[int, List[Dependency]] = {id(node): [] for node in nodes}
    waiting: Dict[int, List[Dependency]] = {id(node): [] for node in nodes}
    for dependency in dependencies:
        outgoing[id(dependency.prerequisite)].append(dependency)
        waiting[id(dependency.dependent)].append(dependency)

    plan = WritePlan()
    removed: Set[int] = set()
    emitted: Set[int] = set()
    remaining = {id(node): len(waiting[id(node)]) for node in nodes}
    ready = [position[id(node)] for node in nodes if remaining[id(node)] == 0]
    heapq.heapify(ready)

    while len(plan.order) < len(nodes):
        while ready:
            node = nodes[heapq.heappop(ready)]
            plan.order.append(node)
            emitted.add(id(node))
            for dependency in outgoing[id(node)]:
                if id(dependency) in removed:
                    continue
                removed.add(id(dependency))
                key = id(dependency.dependent)
                remaining[key] -= 1
                if remaining[key] == 0:
                    heapq.heappush(ready, position[key])
        if len(plan.order) == len(nodes):
            break

        cycle = _find_cycle(nodes, waiting, emitted, removed)
        breakable = [dependency for dependency in cycle if dependency.nullable]
        if not breakable:
            raise UnresolvableDependencyCycleError([dependency.dependent for dependency in cycle])
        chosen = min(breakable, key=lambda dependency: position[id(dependency.dependent)])
        removed.add(id(chosen))
        plan.deferred.append(chosen)
        key = id(chosen.dependent)
        remaining[key] -= 1
        if remaining[key] == 0:
            heapq.heappush(ready, position[key])
    return plan


def _find_cycle(
    nodes: Sequence[object],
    waiting: Dict[int, List[Dependency]],
    emitted: Set[int],
    removed: Set[int],
) -> List[Dependency]:
    """
    Follow unresolved dependencies from the first blocked node until one repeats.
    """
    start = next(node for node in nodes if id(node) not in emitted)
    path: List[Dependency] = []
    seen: Dict[int, int] = {id(start): 0}
    current = start
    while True:
        dependency = next(
            candidate
            for candidate in waiting[id(current)]
            if id(candidate) not in removed and id(candidate.prerequisite) not in emitted
        )
        path.append(dependency)
        current = dependency.prerequisite
        if id(current) in seen:
            return path[seen[id(current)] :]
        seen[id(current)] = len(path)
