"""
Entity lifecycle states and scheduled write operations.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .changeset import ChangeSet


class EntityState(enum.Enum):
    """
    State of an entity relative to a unit of work.

    NEW entities are unknown to every unit; MANAGED ones are tracked and will be
    written on flush; REMOVED ones are scheduled for deletion; DETACHED ones
    carry an identifier but are no longer tracked.
    """

    NEW = "new"
    MANAGED = "managed"
    REMOVED = "removed"
    DETACHED = "detached"


@dataclass(frozen=True, eq=False)
class Insert:
    entity: object


@dataclass(frozen=True, eq=False)
class Update:
    entity: object
    change_set: "ChangeSet"


@dataclass(frozen=True, eq=False)
class Delete:
    entity: object


ScheduledOperation = Insert | Update | Delete


@dataclass(frozen=True)
class FlushResult:
    """
    Entities written by one flush, in execution order.
    """

    inserted: tuple = ()
    updated: tuple = ()
    deleted: tuple = ()

    def __bool__(self) -> bool:
        return bool(self.inserted or self.updated or self.deleted)
