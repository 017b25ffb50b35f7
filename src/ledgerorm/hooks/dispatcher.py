"""
Hook dispatcher coordinating entity lifecycle events.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

HookHandler = Callable[..., None]


@dataclass(frozen=True)
class HookEvent:
    name: str


PRE_PERSIST = HookEvent("pre_persist")
POST_PERSIST = HookEvent("post_persist")
PRE_UPDATE = HookEvent("pre_update")
POST_UPDATE = HookEvent("post_update")
PRE_REMOVE = HookEvent("pre_remove")
POST_REMOVE = HookEvent("post_remove")
POST_LOAD = HookEvent("post_load")
POST_FLUSH = HookEvent("post_flush")

EVENTS = frozenset(
    event.name
    for event in (
        PRE_PERSIST,
        POST_PERSIST,
        PRE_UPDATE,
        POST_UPDATE,
        PRE_REMOVE,
        POST_REMOVE,
        POST_LOAD,
        POST_FLUSH,
    )
)


def _event_name(event: str | HookEvent) -> str:
    name = event.name if isinstance(event, HookEvent) else event
    if name not in EVENTS:
        raise ValueError(f"Unknown lifecycle event '{name}'")
    return name


class HookDispatcher:
    """
    Maintains global and per-entity-type hook handlers.

    Handlers are called as ``handler(entity, **context)``. Entity-type
    handlers also fire for subclasses of the registered type.
    """

    def __init__(self) -> None:
        self._global_handlers: Dict[str, List[HookHandler]] = defaultdict(list)
        self._type_handlers: Dict[Type, Dict[str, List[HookHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def register(
        self,
        event: str | HookEvent,
        handler: HookHandler,
        *,
        entity_type: Optional[Type] = None,
    ) -> None:
        name = _event_name(event)
        if entity_type:
            self._type_handlers[entity_type][name].append(handler)
        else:
            self._global_handlers[name].append(handler)

    def on(self, event: str | HookEvent, *, entity_type: Optional[Type] = None):
        """
        Decorator form of :meth:`register`.
        """

        def decorator(handler: HookHandler) -> HookHandler:
            self.register(event, handler, entity_type=entity_type)
            return handler

        return decorator

    def fire(self, event: str | HookEvent, entity: Optional[object], **context: Any) -> None:
        name = _event_name(event)
        handlers = list(self._global_handlers.get(name, []))
        if entity is not None:
            for klass in type(entity).__mro__:
                handlers.extend(self._type_handlers.get(klass, {}).get(name, []))
        for handler in handlers:
            handler(entity, **context)

    def clear(self) -> None:
        self._global_handlers.clear()
        self._type_handlers.clear()


hooks = HookDispatcher()
