"""Plugin adapter: one invocation contract for two plugin generations.

Version: 0.2.0

Two plugin shapes are supported:

- **Legacy** plugins are a mapping (or a module / namespace object) of
  action name to function. ``fn(args)`` returns a value or an awaitable.
  There is no progress support; using this shape logs a deprecation warning
  once per plugin module.
- **Modern** plugins are a single callable ``plugin(action, args, callback)``
  that drives the callback context itself and settles with ``True`` (action
  handled) or ``False`` (unknown action).

The shape is inspected once, by :func:`load_plugin`; per-call dispatch is a
plain method call on the selected variant.

Usage:
    plugin = load_plugin(import_entrypoint("myapp.plugins.device"), "myapp.plugins.device")
    await plugin.invoke("getInfo", [], callback)
"""

from __future__ import annotations

import importlib
import inspect
import logging
import types
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, List, Optional

from shellbridge.core.bridge.callback import CallbackContext
from shellbridge.core.bridge.exceptions import (
    ActionNotFoundError,
    InvocationError,
    PluginRejection,
    UnexpectedResultError,
)

logger = logging.getLogger(__name__)

# Attribute names reserved for lifecycle hooks, never dispatched as actions
LIFECYCLE_HOOKS = frozenset({"configure", "initialize", "init"})


async def _settle(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it."""
    if inspect.isawaitable(value):
        return await value
    return value


def import_entrypoint(module_id: str) -> Any:
    """Import ``"pkg.module"`` or ``"pkg.module:attribute"``.

    Raises:
        ImportError: Module cannot be imported.
        AttributeError: Attribute missing from the module.
    """
    module_name, _, attribute = module_id.partition(":")
    module = importlib.import_module(module_name)
    if not attribute:
        return module
    target: Any = module
    for part in attribute.split("."):
        target = getattr(target, part)
    return target


class Plugin(ABC):
    """Normalized plugin as seen by the service registry."""

    generation: str = ""

    def __init__(self, module_id: str, target: Any) -> None:
        self._module_id = module_id
        self._target = target

    @property
    def module_id(self) -> str:
        return self._module_id

    @property
    def target(self) -> Any:
        """The underlying plugin object, as handed to other plugins."""
        return self._target

    def get_hook(self, name: str) -> Optional[Callable[..., Any]]:
        """Return a lifecycle hook (configure/initialize/init) if defined."""
        if isinstance(self._target, Mapping):
            hook = self._target.get(name)
        else:
            hook = getattr(self._target, name, None)
        return hook if callable(hook) else None

    @abstractmethod
    async def invoke(self, action: str, args: List[Any], callback: CallbackContext) -> bool:
        """Dispatch ``action``; results go through ``callback``.

        Returns:
            True when the generation's dispatch mechanics succeeded. Never
            raises: every failure ends as an error envelope.
        """


class LegacyMapPlugin(Plugin):
    """Map-of-functions plugin (deprecated shape)."""

    generation = "legacy"

    def __init__(self, module_id: str, target: Any) -> None:
        super().__init__(module_id, target)
        self._warned = False

    def _warn_deprecated(self) -> None:
        if self._warned:
            return
        self._warned = True
        logger.warning(
            "Plugin %s is using a deprecated API lacking support for progress callbacks. "
            "Migrate to the single entry point plugin API. "
            "Support for this API may be removed in future versions.",
            self._module_id,
        )

    def _lookup(self, action: str) -> Optional[Callable[..., Any]]:
        if action in LIFECYCLE_HOOKS or action.startswith("_"):
            return None
        if isinstance(self._target, Mapping):
            fn = self._target.get(action)
        else:
            fn = getattr(self._target, action, None)
        return fn if callable(fn) else None

    async def invoke(self, action: str, args: List[Any], callback: CallbackContext) -> bool:
        self._warn_deprecated()

        fn = self._lookup(action)
        if fn is None:
            callback.error(ActionNotFoundError(self._module_id, action).to_dict())
            return False

        try:
            result = await _settle(fn(args))
        except PluginRejection as rejection:
            callback.error(rejection.reason)
            return True
        except Exception as e:
            error = InvocationError(self._module_id, action, e)
            logger.error("%s: %s", error.message, e, exc_info=True)
            callback.error(error.to_dict())
            return False

        callback.success(result)
        return True


class ActionRouterPlugin(Plugin):
    """Single entry point plugin: ``plugin(action, args, callback) -> bool``."""

    generation = "modern"

    async def invoke(self, action: str, args: List[Any], callback: CallbackContext) -> bool:
        try:
            result = await _settle(self._target(action, args, callback))
        except Exception as e:
            error = InvocationError(self._module_id, action, e)
            logger.error("%s: %s", error.message, e, exc_info=True)
            callback.error(error.to_dict())
            return False

        if result is True:
            return True
        if result is False:
            callback.error(ActionNotFoundError(self._module_id, action).to_dict())
            return True

        callback.error(UnexpectedResultError(self._module_id, action, result).to_dict())
        return False


def is_router_plugin(target: Any) -> bool:
    """A modern plugin is a plain callable that is neither a class nor a module."""
    if isinstance(target, (types.ModuleType, type, Mapping)):
        return False
    return callable(target)


def load_plugin(target: Any, module_id: str) -> Plugin:
    """Wrap ``target`` in the variant matching its shape."""
    if is_router_plugin(target):
        logger.debug("Plugin %s uses the single entry point API", module_id)
        return ActionRouterPlugin(module_id, target)
    logger.debug("Plugin %s uses the legacy map API", module_id)
    return LegacyMapPlugin(module_id, target)
