"""
Lifecycle hooks registry for rowgraph entities.
"""

from .dispatcher import HOOK_EVENTS, HookDispatcher, LoadContext, hooks

__all__ = ["HOOK_EVENTS", "HookDispatcher", "LoadContext", "hooks"]
