"""
Lifecycle hooks registry for LedgerORM entities.
"""

from .dispatcher import EVENTS, HookDispatcher, HookEvent, hooks

__all__ = ["EVENTS", "HookDispatcher", "HookEvent", "hooks"]
