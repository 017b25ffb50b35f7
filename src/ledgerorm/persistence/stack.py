"""
Stack of units of work sharing one physical transaction through savepoints.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, List, Optional, Tuple

from ..adapters.base import DatabaseAdapter
from ..errors import SavepointError, TransactionStateError
from ..mapping.registry import MetadataRegistry
from ..utils import get_logger
from .unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from ..hooks import HookDispatcher


class UnitOfWorkStack:
    """
    Opens, activates, commits and rolls back units of work.

    The stack always holds a root unit. Units opened later keep the unit that
    was active at that moment as their parent. Committing a unit hands its
    entities to the nearest open parent; rolling it back returns to the
    savepoint it created on its first write.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        registry: MetadataRegistry,
        *,
        hooks: Optional["HookDispatcher"] = None,
    ) -> None:
        self.adapter = adapter
        self.registry = registry
        self.hooks = hooks
        self.logger = get_logger("persistence.stack")
        self._counter = itertools.count(1)
        self._units: List[UnitOfWork] = []
        self._active: Optional[UnitOfWork] = None
        self.root = self.open()
        self._active = self.root

    @property
    def active(self) -> UnitOfWork:
        return self._active or self.root

    def units(self) -> Tuple[UnitOfWork, ...]:
        return tuple(self._units)

    def open(self) -> UnitOfWork:
        """
        Create a unit layered on the active one. It is not activated.
        """
        unit = UnitOfWork(
            self.adapter,
            self.registry,
            unit_id=next(self._counter),
            parent=self._active,
            hooks=self.hooks,
        )
        self._units.append(unit)
        self.logger.debug("Opened unit of work %s (parent=%s)", unit.id, unit.parent.id if unit.parent else None)
        return unit

    def set_active(self, unit: UnitOfWork) -> None:
        self._require_open(unit)
        self._active = unit

    def commit(self, unit: Optional[UnitOfWork] = None) -> None:
        """
        Release ``unit``'s savepoint and fold its entities into its parent.

        The root unit is only released; it stays open.
        """
        unit = unit or self.active
        self._require_open(unit)
        self._require_topmost_savepoint(unit, "commit")
        unit.release_savepoint()
        if unit is self.root:
            self.logger.debug("Committed root unit of work %s", unit.id)
            return
        parent = self._open_parent(unit)
        parent.absorb(unit)
        self._close(unit, parent)
        self.logger.debug("Committed unit of work %s into %s", unit.id, parent.id)

    def rollback(self, unit: Optional[UnitOfWork] = None) -> None:
        """
        Roll ``unit`` back to its savepoint and discard its tracking.

        Raises :class:`SavepointError` without touching the connection when
        another open unit created its savepoint after ``unit`` did, since
        rolling back would undo that unit's writes as well.
        """
        unit = unit or self.active
        self._require_open(unit)
        self._require_topmost_savepoint(unit, "roll back")
        unit.rollback()
        if unit is self.root:
            self.logger.debug("Rolled back root unit of work %s", unit.id)
            return
        self._close(unit, self._open_parent(unit))
        self.logger.debug("Rolled back unit of work %s", unit.id)

    def release_all(self) -> None:
        for unit in reversed(self._units):
            unit.release_savepoint()

    def clear_all(self) -> None:
        """
        Discard every unit's tracking; used after the physical transaction rolls back.
        """
        for unit in reversed(self._units):
            unit.discard()

    def _open_parent(self, unit: UnitOfWork) -> UnitOfWork:
        parent = unit.parent
        while parent is not None and parent not in self._units:
            parent = parent.parent
        return parent or self.root

    def _close(self, unit: UnitOfWork, parent: UnitOfWork) -> None:
        self._units.remove(unit)
        for other in self._units:
            if other.parent is unit:
                other.parent = parent
        if self._active is unit:
            self._active = self._units[-1]

    def _require_topmost_savepoint(self, unit: UnitOfWork, action: str) -> None:
        if not unit.has_savepoint:
            return
        savepoints = self.adapter.savepoints
        later = savepoints[savepoints.index(unit.savepoint_name) + 1 :]
        blocking = [other for other in self._units if other is not unit and other.savepoint_name in later]
        if blocking:
            names = ", ".join(other.savepoint_name for other in blocking)
            raise SavepointError(
                f"Cannot {action} unit of work {unit.id}: savepoint '{unit.savepoint_name}' "
                f"lies beneath open savepoint(s) {names}.",
                name=unit.savepoint_name,
            )

    def _require_open(self, unit: UnitOfWork) -> None:
        if not any(candidate is unit for candidate in self._units):
            raise TransactionStateError(f"Unit of work {unit.id} is not open on this session.")
