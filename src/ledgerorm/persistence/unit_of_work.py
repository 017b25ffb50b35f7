"""
Unit of Work tracking entity state and writing it in dependency order.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Type

from ..adapters.base import DatabaseAdapter
from ..errors import (
    DuplicateIdentityError,
    EntityNotFoundError,
    EntityNotManagedError,
    TransactionStateError,
)
from ..hooks.dispatcher import (
    POST_FLUSH,
    POST_LOAD,
    POST_PERSIST,
    POST_REMOVE,
    POST_UPDATE,
    PRE_PERSIST,
    PRE_REMOVE,
    PRE_UPDATE,
)
from ..mapping.metadata import AssociationMapping, EntityMetadata, IdGeneration
from ..mapping.registry import MetadataRegistry
from ..utils import get_logger
from .cascade import CascadeResolver
from .changeset import ChangeSetComputer, Snapshot
from .identity_map import IdentityMap
from .ordering import Dependency, plan_deletes, plan_inserts
from .persister import EntityPersister
from .state import Delete, EntityState, FlushResult, Insert, ScheduledOperation, Update

if TYPE_CHECKING:
    from ..hooks import HookDispatcher


@dataclass
class _FlushPlan:
    inserts: List[Insert]
    insert_deferred: List[Dependency]
    updates: List[Update]
    links: List[Tuple[object, AssociationMapping, list, list]]
    deletes: List[Delete]
    delete_deferred: List[Dependency]

    def __bool__(self) -> bool:
        return bool(self.inserts or self.updates or self.links or self.deletes)


class UnitOfWork:
    """
    Tracks the entities persisted, loaded and removed within one savepoint scope.

    A unit opened while another was active keeps it as ``parent``: entities
    tracked by the parent chain are visible (lookups, ``contains``), but only
    the unit's own entities, plus parent-owned pending inserts they reference,
    are written by its :meth:`flush`. Removing a parent-owned entity schedules
    the delete here, so rolling this unit back restores the parent's view.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        registry: MetadataRegistry,
        *,
        unit_id: int,
        parent: Optional["UnitOfWork"] = None,
        hooks: Optional["HookDispatcher"] = None,
    ) -> None:
        if hooks is None:
            from ..hooks import hooks as default_hooks

            hooks = default_hooks
        self.adapter = adapter
        self.registry = registry
        self.id = unit_id
        self.parent = parent
        self.hooks = hooks
        self.identity_map = IdentityMap(registry)
        self.changes = ChangeSetComputer(registry)
        self.cascade = CascadeResolver(registry)
        self.persister = EntityPersister(adapter, registry)
        self.logger = get_logger("persistence.unit_of_work")
        self._states: Dict[int, Tuple[object, EntityState]] = {}
        self._insertions: Dict[int, object] = {}
        self._deletions: Dict[int, object] = {}
        self._generated: Dict[int, object] = {}
        # Parent-owned entities removed here: id -> (owner, entity, owner's snapshot).
        self._borrowed: Dict[int, Tuple["UnitOfWork", object, Optional[Snapshot]]] = {}
        self._released_from_owner: Dict[int, Tuple["UnitOfWork", object, Optional[Snapshot]]] = {}
        # Parent-owned pending inserts written by this unit: id -> (owner, entity, id generated here).
        self._inherited: Dict[int, Tuple["UnitOfWork", object, bool]] = {}
        self._savepoint_created = False

    def __repr__(self) -> str:
        return f"UnitOfWork(id={self.id}, entities={len(self._states)})"

    # ------------------------------------------------------------------ #
    # State queries
    # ------------------------------------------------------------------ #
    @property
    def savepoint_name(self) -> str:
        return f"uow_{self.id}"

    @property
    def has_savepoint(self) -> bool:
        return self._savepoint_created and self.savepoint_name in self.adapter.savepoints

    def _owner_of(self, entity: object) -> Optional["UnitOfWork"]:
        unit: Optional[UnitOfWork] = self
        while unit is not None:
            if id(entity) in unit._states:
                return unit
            unit = unit.parent
        return None

    def state_of(self, entity: object) -> EntityState:
        owner = self._owner_of(entity)
        if owner is not None:
            return owner._states[id(entity)][1]
        metadata = self.registry.metadata_of(entity)
        if metadata.get_identifier(entity) is None:
            return EntityState.NEW
        return EntityState.DETACHED

    def is_tracked(self, entity: object) -> bool:
        return self._owner_of(entity) is not None

    def contains(self, entity: object) -> bool:
        return self.state_of(entity) is EntityState.MANAGED

    def is_scheduled_for_insert(self, entity: object) -> bool:
        return id(entity) in self._insertions

    def is_scheduled_for_delete(self, entity: object) -> bool:
        return id(entity) in self._deletions

    def lookup(self, entity_type: Type, identifier: Any) -> object | None:
        unit: Optional[UnitOfWork] = self
        while unit is not None:
            found = unit.identity_map.lookup(entity_type, identifier)
            if found is not None:
                return found
            unit = unit.parent
        return None

    def managed_entities(self) -> List[object]:
        """
        Entities in MANAGED state visible from this unit, oldest unit first.
        """
        chain: List[UnitOfWork] = []
        unit: Optional[UnitOfWork] = self
        while unit is not None:
            chain.append(unit)
            unit = unit.parent
        seen = set()
        entities = []
        for unit in reversed(chain):
            for key, (entity, _state) in unit._states.items():
                if key in seen:
                    continue
                seen.add(key)
                if self.state_of(entity) is EntityState.MANAGED:
                    entities.append(entity)
        return entities

    def own_entities(self) -> List[object]:
        return [entity for entity, _state in self._states.values()]

    # ------------------------------------------------------------------ #
    # Caller operations
    # ------------------------------------------------------------------ #
    def persist(self, entity: object) -> None:
        owner = self._owner_of(entity)
        if owner is None:
            self.schedule_insert(entity)
        elif owner._states[id(entity)][1] is EntityState.REMOVED:
            self._restore_removed(entity, owner)
        self.cascade.expand(entity, self)

    def schedule_insert(self, entity: object) -> None:
        """
        Track ``entity`` as MANAGED and schedule its INSERT.
        """
        metadata = self.registry.metadata_of(entity)
        self.hooks.fire(PRE_PERSIST, entity, unit_of_work=self)
        self._check_identity(entity, metadata)
        if metadata.get_identifier(entity) is None and metadata.identifier.generation is IdGeneration.UUID:
            metadata.set_identifier(entity, metadata.identifier.type.to_python(uuid.uuid4()))
            self._generated[id(entity)] = entity
        self._states[id(entity)] = (entity, EntityState.MANAGED)
        self._insertions[id(entity)] = entity
        self.identity_map.register(entity)

    def _check_identity(self, entity: object, metadata: EntityMetadata) -> None:
        identifier = metadata.get_identifier(entity)
        if identifier is None:
            return
        existing = self.lookup(metadata.entity_type, identifier)
        if existing is not None and existing is not entity:
            raise DuplicateIdentityError(metadata.entity_type, identifier)

    def _restore_removed(self, entity: object, owner: "UnitOfWork") -> None:
        key = id(entity)
        if key in self._borrowed:
            # The owner never stopped tracking it as MANAGED.
            del self._borrowed[key]
            del self._states[key]
            self._deletions.pop(key, None)
            return
        owner._deletions.pop(key, None)
        owner._states[key] = (entity, EntityState.MANAGED)

    def remove(self, entity: object) -> None:
        owner = self._owner_of(entity)
        if owner is None:
            raise EntityNotManagedError(entity, operation="remove")
        if owner._states[id(entity)][1] is EntityState.REMOVED:
            return
        self.hooks.fire(PRE_REMOVE, entity, unit_of_work=self)
        key = id(entity)
        if key in owner._insertions:
            owner._cancel_insert(entity)
            return
        if owner is not self:
            self._borrowed[key] = (owner, entity, owner.changes.get_snapshot(entity))
        self._states[key] = (entity, EntityState.REMOVED)
        self._deletions[key] = entity

    def _cancel_insert(self, entity: object) -> None:
        key = id(entity)
        self.identity_map.forget(entity)
        self.changes.forget(entity)
        del self._insertions[key]
        del self._states[key]
        if self._generated.pop(key, None) is not None:
            self.registry.metadata_of(entity).set_identifier(entity, None)

    def detach(self, entity: object) -> None:
        owner = self._owner_of(entity)
        if owner is None:
            return
        owner._untrack(entity)
        owner._insertions.pop(id(entity), None)
        owner._deletions.pop(id(entity), None)
        owner._borrowed.pop(id(entity), None)

    def _untrack(self, entity: object) -> None:
        self.identity_map.forget(entity)
        self.changes.forget(entity)
        self._states.pop(id(entity), None)

    def clear(self) -> None:
        """
        Stop tracking everything; tracked entities become DETACHED.
        """
        self.identity_map.clear()
        self.changes.clear()
        self._states.clear()
        self._insertions.clear()
        self._deletions.clear()
        self._generated.clear()
        self._borrowed.clear()
        self._released_from_owner.clear()
        self._inherited.clear()

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    def find(self, entity_type: Type, identifier: Any) -> object | None:
        metadata = self.registry.metadata_for(entity_type)
        if identifier is None:
            return None
        identifier = metadata.identifier.type.to_python(identifier)
        existing = self.lookup(metadata.entity_type, identifier)
        if existing is not None:
            return None if self.state_of(existing) is EntityState.REMOVED else existing
        row = self.persister.load(metadata, identifier)
        if row is None:
            return None
        return self._hydrate(metadata, row)

    def _find_by_column(self, metadata: EntityMetadata, column: str, value: Any) -> object | None:
        if column == metadata.identifier.column:
            return self.find(metadata.entity_type, value)
        row = self.persister.load(metadata, value, column=column)
        if row is None:
            return None
        identifier = metadata.identifier.type.to_python(row[metadata.identifier.column])
        existing = self.lookup(metadata.entity_type, identifier)
        if existing is not None:
            return existing
        return self._hydrate(metadata, row)

    def _hydrate(self, metadata: EntityMetadata, row: Dict[str, Any]) -> object:
        entity = self.registry.new_instance(metadata.entity_type)
        self._apply_fields(entity, metadata, row)
        for association in metadata.associations.values():
            if association.to_many and association.get(entity) is None:
                association.set(entity, [])
            elif not association.to_many and not association.writes_foreign_key:
                if not hasattr(entity, association.field_name):
                    association.set(entity, None)
        # Registered before references resolve so reference cycles end at the identity map.
        self._states[id(entity)] = (entity, EntityState.MANAGED)
        self.identity_map.register(entity)
        self._apply_references(entity, metadata, row)
        self.changes.snapshot(entity)
        self.hooks.fire(POST_LOAD, entity, unit_of_work=self)
        return entity

    @staticmethod
    def _apply_fields(entity: object, metadata: EntityMetadata, row: Dict[str, Any]) -> None:
        for mapping in metadata.all_fields():
            if mapping.column in row:
                mapping.set(entity, mapping.type.to_python(row[mapping.column]))

    def _apply_references(self, entity: object, metadata: EntityMetadata, row: Dict[str, Any]) -> None:
        for association in metadata.owning_to_one():
            value = row.get(association.join_column)
            if value is None:
                association.set(entity, None)
                continue
            target = self.registry.metadata_for(association.target_type)
            association.set(entity, self._find_by_column(target, association.referenced_column, value))

    def refresh(self, entity: object) -> None:
        owner = self._owner_of(entity)
        if owner is None or self.state_of(entity) is not EntityState.MANAGED:
            raise EntityNotManagedError(entity, operation="refresh")
        if owner is not self:
            owner.refresh(entity)
            return
        metadata = self.registry.metadata_of(entity)
        identifier = metadata.get_identifier(entity)
        row = self.persister.load(metadata, identifier) if identifier is not None else None
        if row is None:
            raise EntityNotFoundError(metadata.entity_type, identifier)
        self._apply_fields(entity, metadata, row)
        self.identity_map.register(entity, replace=True)
        self._apply_references(entity, metadata, row)
        self.changes.snapshot(entity)
        self.hooks.fire(POST_LOAD, entity, unit_of_work=self)

    # ------------------------------------------------------------------ #
    # Flush
    # ------------------------------------------------------------------ #
    def flush(self) -> FlushResult:
        """
        Write pending inserts, updates, link rows and deletes inside this unit's savepoint.

        Entities that a parent unit persisted but has not inserted yet are
        inserted here first when this unit's rows reference them.
        """
        if not self.adapter.in_transaction:
            raise TransactionStateError(f"Cannot flush unit of work {self.id}: no active transaction.")

        # Objects attached after persist() are reached here.
        for entity in self.own_entities():
            if self._states[id(entity)][1] is EntityState.MANAGED:
                self.cascade.expand(entity, self)

        plan = self._plan()
        if not plan:
            return FlushResult()

        self._ensure_savepoint()

        deferred: Dict[int, List[AssociationMapping]] = defaultdict(list)
        for dependency in plan.insert_deferred:
            deferred[id(dependency.owner)].append(dependency.association)

        for operation in plan.inserts:
            self._execute_insert(operation, deferred.get(id(operation.entity), []))
        for dependency in plan.insert_deferred:
            self.persister.write_foreign_keys(dependency.owner, [dependency.association])

        updated = []
        for operation in plan.updates:
            if self._execute_update(operation):
                updated.append(operation.entity)

        for entity, association, added, removed in plan.links:
            for member in added:
                self.persister.link(entity, association, member)
            for member in removed:
                self.persister.unlink(entity, association, member)
            self.changes.snapshot(entity)

        for dependency in plan.delete_deferred:
            self.persister.clear_foreign_keys(dependency.owner, [dependency.association])
        for operation in plan.deletes:
            self._execute_delete(operation)

        self._insertions.clear()
        self._deletions.clear()
        result = FlushResult(
            tuple(operation.entity for operation in plan.inserts),
            tuple(updated),
            tuple(operation.entity for operation in plan.deletes),
        )
        self.logger.debug(
            "Flushed unit of work %s: %d inserts, %d updates, %d deletes",
            self.id,
            len(result.inserted),
            len(result.updated),
            len(result.deleted),
        )
        self.hooks.fire(POST_FLUSH, None, unit_of_work=self, result=result)
        return result

    def pending_operations(self) -> Tuple[ScheduledOperation, ...]:
        """
        Operations the next flush would run, in execution order.
        """
        plan = self._plan()
        return tuple(plan.inserts) + tuple(plan.updates) + tuple(plan.deletes)

    def _plan(self) -> "_FlushPlan":
        updates = self._compute_updates()
        links = self._compute_link_changes()
        inserts = list(self._insertions.values())
        seeds = inserts + [update.entity for update in updates] + [entity for entity, *_ in links]
        inherited = self._inherited_inserts(seeds)
        insert_plan = plan_inserts(inherited + inserts, self.registry)
        delete_plan = plan_deletes(list(self._deletions.values()), self.registry)
        return _FlushPlan(
            inserts=[Insert(entity) for entity in insert_plan.order],
            insert_deferred=list(insert_plan.deferred),
            updates=updates,
            links=links,
            deletes=[Delete(entity) for entity in delete_plan.order],
            delete_deferred=list(delete_plan.deferred),
        )

    def _inherited_inserts(self, seeds: List[object]) -> List[object]:
        """
        Pending inserts owned by a parent unit that ``seeds`` reference, directly or through each other.
        """
        found: Dict[int, object] = {}
        stack = list(seeds)
        while stack:
            entity = stack.pop()
            for related in self._referenced(entity):
                key = id(related)
                if key in found or key in self._states:
                    continue
                owner = self._owner_of(related)
                if owner is None or key not in owner._insertions:
                    continue
                found[key] = related
                stack.append(related)
        return list(found.values())

    def _referenced(self, entity: object) -> List[object]:
        metadata = self.registry.metadata_of(entity)
        related = [association.get(entity) for association in metadata.owning_to_one()]
        for association in metadata.owning_many_to_many():
            related.extend(association.get(entity) or ())
        return [value for value in related if value is not None]

    def _compute_updates(self) -> List[Update]:
        updates = []
        for key, (entity, state) in list(self._states.items()):
            if state is not EntityState.MANAGED or key in self._insertions:
                continue
            change_set = self.changes.compute_change_set(entity)
            if change_set:
                updates.append(Update(entity, change_set))
        return updates

    def _compute_link_changes(self) -> List[Tuple[object, AssociationMapping, list, list]]:
        links = []
        for entity, state in list(self._states.values()):
            if state is not EntityState.MANAGED:
                continue
            for association in self.registry.metadata_of(entity).owning_many_to_many():
                added, removed = self.changes.collection_diff(entity, association)
                if added or removed:
                    links.append((entity, association, added, removed))
        return links

    def _execute_insert(self, operation: Insert, deferred: List[AssociationMapping]) -> None:
        entity = operation.entity
        key = id(entity)
        owner = self._owner_of(entity) or self
        metadata = self.registry.metadata_of(entity)
        had_identifier = metadata.get_identifier(entity) is not None
        self.persister.insert(entity, deferred=deferred)
        if owner is self:
            if not had_identifier:
                self._generated[key] = entity
        else:
            del owner._insertions[key]
            self._inherited[key] = (owner, entity, not had_identifier)
        owner.identity_map.register(entity)
        owner.changes.snapshot(entity)
        self.hooks.fire(POST_PERSIST, entity, unit_of_work=self)

    def _execute_update(self, update: Update) -> bool:
        entity = update.entity
        self.hooks.fire(PRE_UPDATE, entity, unit_of_work=self, changes=update.change_set)
        # Handlers may touch more fields.
        change_set = self.changes.compute_change_set(entity)
        written = self.persister.update(entity, change_set.keys())
        self.changes.snapshot(entity)
        if written:
            self.hooks.fire(POST_UPDATE, entity, unit_of_work=self, changes=change_set)
        return written

    def _execute_delete(self, operation: Delete) -> None:
        entity = operation.entity
        key = id(entity)
        self.persister.delete(entity)
        borrowed = self._borrowed.pop(key, None)
        if borrowed is not None:
            owner = borrowed[0]
            owner._untrack(entity)
            self._released_from_owner[key] = borrowed
        self._untrack(entity)
        self.hooks.fire(POST_REMOVE, entity, unit_of_work=self)

    # ------------------------------------------------------------------ #
    # Savepoints
    # ------------------------------------------------------------------ #
    def _ensure_savepoint(self) -> None:
        if self.has_savepoint:
            return
        if not self.adapter.dialect.capabilities.supports_savepoints:
            self.logger.debug("Dialect %s has no savepoints; unit %s writes directly", self.adapter.dialect.name, self.id)
            return
        self.adapter.create_savepoint(self.savepoint_name)
        self._savepoint_created = True

    def release_savepoint(self) -> None:
        if self.has_savepoint:
            self.adapter.release_savepoint(self.savepoint_name)
        self._savepoint_created = False

    def rollback(self) -> None:
        """
        Undo this unit's writes and restore the entity states it changed.
        """
        if self.has_savepoint:
            self.adapter.rollback_to_savepoint(self.savepoint_name)
        self.discard()

    def discard(self) -> None:
        """
        Forget this unit's work without touching the connection.

        Identifiers generated here are reset so those objects are NEW again,
        and parent-owned entities deleted here go back to their owner.
        """
        self._return_inherited()
        for entity in self._generated.values():
            self.registry.metadata_of(entity).set_identifier(entity, None)
        for owner, entity, snapshot in self._released_from_owner.values():
            owner._adopt(entity, EntityState.MANAGED, snapshot)
        self.clear()
        self._savepoint_created = False

    def _return_inherited(self) -> None:
        """
        Hand parent-owned entities inserted here back to their owner as pending inserts.
        """
        for owner, entity, generated in self._inherited.values():
            key = id(entity)
            owner.changes.forget(entity)
            if key in owner._states and owner._states[key][1] is EntityState.MANAGED:
                if generated:
                    owner.identity_map.forget(entity)
                owner._insertions[key] = entity
            else:
                owner._deletions.pop(key, None)
                owner._untrack(entity)
            if generated:
                self.registry.metadata_of(entity).set_identifier(entity, None)

    def _adopt(self, entity: object, state: EntityState, snapshot: Optional[Snapshot]) -> None:
        self._states[id(entity)] = (entity, state)
        self.identity_map.register(entity, replace=True)
        if snapshot is not None:
            self.changes.restore(entity, snapshot)

    def absorb(self, child: "UnitOfWork") -> None:
        """
        Take over ``child``'s tracked entities and pending work after it commits.
        """
        for key, (entity, state) in child._states.items():
            self._states[key] = (entity, state)
            snapshot = child.changes.get_snapshot(entity)
            if snapshot is not None:
                self.changes.restore(entity, snapshot)
        for entity in child.identity_map.values():
            self.identity_map.register(entity, replace=True)
        self._insertions.update(child._insertions)
        self._deletions.update(child._deletions)
        self._generated.update(child._generated)
        for key, entry in child._borrowed.items():
            if entry[0] is not self:
                self._borrowed[key] = entry
        for key, entry in child._released_from_owner.items():
            if entry[0] is not self:
                self._released_from_owner[key] = entry
        for key, (owner, entity, generated) in child._inherited.items():
            if owner is not self:
                self._inherited[key] = (owner, entity, generated)
            elif generated:
                self._generated[key] = entity
        child.clear()
        child._savepoint_created = False
