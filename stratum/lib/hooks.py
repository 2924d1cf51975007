"""Action hooks fired around content, version and release writes.

Handlers run after the core has decided an operation is allowed, so they see
the same state the database does. They cannot veto a write; raising from a
``before_*`` handler aborts the operation before it commits.

Usage:
    from stratum.lib.hooks import action, AFTER_RELEASE_CREATE

    @action(AFTER_RELEASE_CREATE, priority=5)
    async def announce_release(collection, release):
        print(f"{collection.slug} is now on {release}")

    # Direct registration
    hooks.add_action(AFTER_VERSION_CREATE, index_version)
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable

from stratum.lib.observability import span

BEFORE_CONTENT_SAVE = "before_content_save"
AFTER_CONTENT_SAVE = "after_content_save"
BEFORE_CONTENT_DELETE = "before_content_delete"
AFTER_CONTENT_DELETE = "after_content_delete"
AFTER_VERSION_CREATE = "after_version_create"
AFTER_VERSION_RESTORE = "after_version_restore"
AFTER_RELEASE_FINALIZE = "after_release_finalize"
AFTER_RELEASE_CREATE = "after_release_create"
AFTER_VERSIONS_PURGE = "after_versions_purge"
AFTER_LOCK_CHANGE = "after_lock_change"


@dataclass(order=True)
class HookHandler:
    """A registered hook handler with priority."""

    priority: int
    callback: Callable = field(compare=False)

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        """Call the handler, handling both sync and async callbacks."""
        result = self.callback(*args, **kwargs)
        if asyncio.iscoroutine(result):
            return await result
        return result


class HookRegistry:
    """Registry of action callbacks keyed by hook name."""

    def __init__(self) -> None:
        self._actions: dict[str, list[HookHandler]] = defaultdict(list)

    def add_action(
        self,
        hook_name: str,
        callback: Callable[..., Any],
        priority: int = 10,
    ) -> None:
        """Register an action callback.

        Args:
            hook_name: Name of the action hook
            callback: Function to call when action is triggered
            priority: Lower numbers execute first (default: 10)
        """
        handler = HookHandler(priority=priority, callback=callback)
        self._actions[hook_name].append(handler)
        self._actions[hook_name].sort()

    def remove_action(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        handlers = self._actions.get(hook_name, [])
        for i, handler in enumerate(handlers):
            if handler.callback is callback:
                handlers.pop(i)
                return True
        return False

    def has_action(self, hook_name: str) -> bool:
        return bool(self._actions.get(hook_name))

    async def do_action(self, hook_name: str, *args: Any, **kwargs: Any) -> None:
        """Execute all registered callbacks for ``hook_name`` in priority order."""
        with span(f"hook.action:{hook_name}", hook_name=hook_name):
            for handler in list(self._actions.get(hook_name, [])):
                await handler.call(*args, **kwargs)

    def clear(self) -> None:
        """Clear all registered hooks. Useful for testing."""
        self._actions.clear()


hooks = HookRegistry()


def action(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator registering a function as an action handler on the global registry."""

    def decorator(func: Callable) -> Callable:
        hooks.add_action(hook_name, func, priority)
        return func

    return decorator
