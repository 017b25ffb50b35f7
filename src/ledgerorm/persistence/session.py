"""
Session coordinating the adapter, units of work and the outer transaction.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional, Tuple, Type, TypeVar

from ..adapters.base import ConnectionConfig, DatabaseAdapter
from ..mapping.registry import MetadataRegistry
from ..utils import get_logger
from .stack import UnitOfWorkStack
from .state import EntityState, FlushResult
from .transaction import TransactionManager
from .unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from ..hooks import HookDispatcher

T = TypeVar("T")


class Session:
    """
    Caller-facing entry point for persisting entities.

    Entity operations go to the active unit of work. ``flush()`` without an
    open transaction runs inside one that the session begins and commits.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        registry: MetadataRegistry,
        *,
        connection_config: Optional[ConnectionConfig] = None,
        hooks: Optional["HookDispatcher"] = None,
    ) -> None:
        if hooks is None:
            from ..hooks import hooks as default_hooks

            hooks = default_hooks
        self.adapter = adapter
        self.registry = registry
        self.hooks = hooks
        self.dialect = adapter.dialect
        self.connection_config = connection_config or ConnectionConfig(url="sqlite:///:memory:")
        self.transaction_manager = TransactionManager(adapter)
        self.stack = UnitOfWorkStack(adapter, registry, hooks=hooks)
        self.logger = get_logger("persistence.session")
        self.adapter.connect(self.connection_config)

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "Session":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type:
                self.rollback()
            else:
                self.commit()
        finally:
            self.close()

    def close(self) -> None:
        if self.transaction_manager.active:
            self.logger.warning("Closing session with an open transaction; rolling back.")
            self.rollback()
        self.stack.clear_all()
        self.adapter.close()

    # ------------------------------------------------------------------ #
    # Units of work
    # ------------------------------------------------------------------ #
    @property
    def unit_of_work(self) -> UnitOfWork:
        return self.stack.active

    def unit_of_works(self) -> Tuple[UnitOfWork, ...]:
        return self.stack.units()

    def create_unit_of_work(self, *, activate: bool = False) -> UnitOfWork:
        unit = self.stack.open()
        if activate:
            self.stack.set_active(unit)
        return unit

    def set_active_unit_of_work(self, unit: UnitOfWork) -> None:
        self.stack.set_active(unit)

    def commit_unit_of_work(self, unit: Optional[UnitOfWork] = None) -> None:
        self.stack.commit(unit)

    def rollback_unit_of_work(self, unit: Optional[UnitOfWork] = None) -> None:
        self.stack.rollback(unit)

    def get_managed_entities(self) -> List[object]:
        return self.unit_of_work.managed_entities()

    # ------------------------------------------------------------------ #
    # Entity operations
    # ------------------------------------------------------------------ #
    def persist(self, entity: object) -> None:
        self.unit_of_work.persist(entity)

    def remove(self, entity: object) -> None:
        self.unit_of_work.remove(entity)

    def detach(self, entity: object) -> None:
        self.unit_of_work.detach(entity)

    def contains(self, entity: object) -> bool:
        return self.unit_of_work.contains(entity)

    def state_of(self, entity: object) -> EntityState:
        return self.unit_of_work.state_of(entity)

    def find(self, entity_type: Type[T], identifier: Any) -> Optional[T]:
        return self.unit_of_work.find(entity_type, identifier)  # type: ignore[return-value]

    def refresh(self, entity: object) -> None:
        self.unit_of_work.refresh(entity)

    def merge(self, entity: T) -> T:
        """
        Return the managed instance for ``entity``, copying its state onto it.

        Entities without an identifier, or whose row does not exist, are persisted.
        """
        unit = self.unit_of_work
        state = unit.state_of(entity)
        if state is EntityState.MANAGED:
            return entity
        if state is EntityState.REMOVED:
            unit.persist(entity)
            return entity
        metadata = self.registry.metadata_of(entity)
        identifier = metadata.get_identifier(entity)
        managed = unit.find(metadata.entity_type, identifier) if identifier is not None else None
        if managed is None:
            unit.persist(entity)
            return entity
        for mapping in metadata.fields.values():
            mapping.set(managed, mapping.get(entity))
        for association in metadata.associations.values():
            value = association.get(entity)
            association.set(managed, list(value) if association.to_many and value is not None else value)
        return managed  # type: ignore[return-value]

    def clear(self) -> None:
        self.unit_of_work.clear()

    # ------------------------------------------------------------------ #
    # Flush and transactions
    # ------------------------------------------------------------------ #
    def flush(self) -> FlushResult:
        unit = self.unit_of_work
        if self.transaction_manager.active:
            return unit.flush()
        self.begin()
        try:
            result = unit.flush()
        except Exception:
            self.rollback()
            raise
        self._commit_transaction()
        return result

    def begin(self) -> None:
        self.transaction_manager.begin()

    def commit(self) -> None:
        """
        Flush every open unit, release their savepoints and commit.
        """
        if not self.transaction_manager.active:
            self.begin()
        try:
            for unit in self.stack.units():
                unit.flush()
        except Exception:
            self.rollback()
            raise
        self._commit_transaction()

    def _commit_transaction(self) -> None:
        self.stack.release_all()
        self.transaction_manager.commit()

    def rollback(self) -> None:
        if self.transaction_manager.active:
            self.transaction_manager.rollback()
        self.stack.clear_all()

    @contextmanager
    def transaction(self):
        """
        Run the block in a transaction, or in a new unit of work when one is already open.
        """
        if not self.transaction_manager.active:
            self.begin()
            try:
                yield self
            except Exception:
                self.rollback()
                raise
            else:
                self.commit()
            return

        previous = self.unit_of_work
        unit = self.create_unit_of_work(activate=True)
        try:
            yield self
            unit.flush()
        except Exception:
            self.stack.rollback(unit)
            self._reactivate(previous)
            raise
        self.stack.commit(unit)
        self._reactivate(previous)

    def _reactivate(self, unit: UnitOfWork) -> None:
        if any(candidate is unit for candidate in self.stack.units()):
            self.stack.set_active(unit)

    def transactional(self, func: Callable[["Session"], T]) -> T:
        with self.transaction():
            return func(self)

    def execute(self, sql: str, params: Iterable[Any] | None = None):
        return self.adapter.execute(sql, list(params or []))
