"""
Hook dispatcher coordinating entity lifecycle events.

An event reaches, in order: the method of the same name defined on the
entity class (if any), then handlers registered globally, then handlers
registered for the entity's type. Missing hooks are skipped silently.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Type

if TYPE_CHECKING:
    from ..core.entity import Entity

HookHandler = Callable[..., Any]

HOOK_EVENTS = (
    "before_attribute_set",
    "after_attribute_set",
    "before_save",
    "after_save",
    "before_update",
    "after_update",
    "before_delete",
    "after_delete",
    "before_load",
    "after_load",
    "after_find",
)


@dataclass
class LoadContext:
    """
    Arguments of a load or find call. ``before_load`` handlers may mutate it
    to change what gets loaded.
    """

    mode: Any
    conditions: Any = None
    order: Any = None
    limit: Optional[int] = None
    offset: Optional[int] = None


class HookDispatcher:
    """
    Maintains global and per-entity hook handlers.
    """

    def __init__(self) -> None:
        self._global_handlers: Dict[str, List[HookHandler]] = defaultdict(list)
        self._entity_handlers: Dict[type, Dict[str, List[HookHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def register(
        self, event: str, handler: HookHandler, *, entity: Optional[Type["Entity"]] = None
    ) -> None:
        if event not in HOOK_EVENTS:
            raise ValueError(f"Unknown hook event '{event}'")
        if entity is not None:
            self._entity_handlers[entity][event].append(handler)
        else:
            self._global_handlers[event].append(handler)

    def handlers_for(self, event: str, instance: "Entity") -> List[HookHandler]:
        handlers: List[HookHandler] = []
        method = getattr(instance, event, None)
        if callable(method):
            handlers.append(method)
        shared = list(self._global_handlers.get(event, []))
        shared.extend(self._entity_handlers.get(type(instance), {}).get(event, []))
        handlers.extend(lambda *args, _h=handler: _h(instance, *args) for handler in shared)
        return handlers

    def fire(self, event: str, instance: "Entity", *args: Any) -> List[Any]:
        """Call every handler for ``event`` and return their results in order."""
        return [handler(*args) for handler in self.handlers_for(event, instance)]

    def veto(self, event: str, instance: "Entity", *args: Any) -> bool:
        """
        Fire ``event``; True when any handler returned ``False``. Handlers after
        the vetoing one are not called.
        """
        for handler in self.handlers_for(event, instance):
            if handler(*args) is False:
                return True
        return False

    def clear(self) -> None:
        self._global_handlers.clear()
        self._entity_handlers.clear()


hooks = HookDispatcher()
