"""
Persistence layer: identity map, change tracking, units of work and sessions.
"""

from .cascade import CascadeResolver
from .changeset import ChangeSet, ChangeSetComputer, FieldChange
from .identity_map import IdentityMap
from .ordering import Dependency, WritePlan, plan_deletes, plan_inserts
from .persister import EntityPersister
from .session import Session
from .stack import UnitOfWorkStack
from .state import Delete, EntityState, FlushResult, Insert, ScheduledOperation, Update
from .transaction import TransactionManager
from .unit_of_work import UnitOfWork

__all__ = [
    "CascadeResolver",
    "ChangeSet",
    "ChangeSetComputer",
    "Delete",
    "Dependency",
    "EntityPersister",
    "EntityState",
    "FieldChange",
    "FlushResult",
    "IdentityMap",
    "Insert",
    "ScheduledOperation",
    "Session",
    "TransactionManager",
    "UnitOfWork",
    "UnitOfWorkStack",
    "Update",
    "WritePlan",
    "plan_deletes",
    "plan_inserts",
]
