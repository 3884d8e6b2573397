"""Service registry: lazy, memoized, two-phase plugin lifecycle.

Version: 0.5.0

Every declared service name maps to a :class:`ServiceDescriptor`. On first
reference the registry builds a :class:`ServiceRecord` whose state moves
monotonically through::

    UNRESOLVED -> INITIALIZING -> READY
                              \\-> FAILED

Names that are not declared get a record that is FAILED from the start
(ServiceUnavailableError), decided once when the record is created.

Lifecycle phases, both optional for a plugin:

- ``configure(ctx)``: synchronous, run by :meth:`ServiceRegistry.configure_all`
  before the host is ready. Any failure is fatal to startup.
- ``initialize(ctx)``: sync or async, run once per record after the host is
  ready. The first caller installs a single future; concurrent callers await
  the same one. A failure is sticky: the record turns FAILED and every later
  call gets the same InitializationError without re-running the hook.

Services sharing an implementation module share one record, so a module is
configured and initialized once whatever the number of names pointing at it.

Initializers may load other services through their context. The registry
keeps a wait-for graph of those requests and refuses one that would close a
cycle (CircularDependencyError) instead of letting both initializers hang.

Changelog:
    0.5.0: Callers awaiting initialization no longer cancel it
    0.4.0: Circular dependency detection for initializer service loads
    0.3.0: Records shared by services pointing at the same module
    0.2.0: Legacy init(variables, loader) hook support
    0.1.0: Initial release
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from shellbridge.core.bridge.adapter import Plugin, import_entrypoint, load_plugin
from shellbridge.core.bridge.callback import CallbackContext
from shellbridge.core.bridge.context import (
    ConfigureAccumulator,
    PluginConfigContext,
    PluginInitContext,
)
from shellbridge.core.bridge.exceptions import (
    BridgeError,
    CircularDependencyError,
    ConfigurationError,
    InitializationError,
    InvocationError,
    ServiceUnavailableError,
)

if TYPE_CHECKING:
    from shellbridge.config import BridgeConfig
    from shellbridge.core.bridge.host import HostShell

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    """Lifecycle states of a service record."""

    UNRESOLVED = "unresolved"     # Declared, never initialized
    INITIALIZING = "initializing" # Initialization future in flight
    READY = "ready"               # Initialized, calls reach the plugin
    FAILED = "failed"             # Unavailable or initialization failed


@dataclass(frozen=True)
class ServiceDescriptor:
    """Static mapping from a service name to its implementation."""

    name: str
    module_id: str
    plugin_id: str = ""


@dataclass
class ServiceRecord:
    """Runtime state of one service implementation."""

    name: str
    descriptor: Optional[ServiceDescriptor] = None
    state: ServiceState = ServiceState.UNRESOLVED
    plugin: Optional[Plugin] = None
    failure: Optional[BridgeError] = None
    init_future: Optional["asyncio.Future[None]"] = None
    configured: bool = False
    aliases: List[str] = field(default_factory=list)

    def mark_failed(self, error: BridgeError) -> None:
        self.state = ServiceState.FAILED
        self.failure = error

    def require_failure(self) -> BridgeError:
        if self.failure is None:
            return InitializationError(f"Service '{self.name}' failed without a recorded error", self.name)
        return self.failure

    def require_plugin(self) -> Plugin:
        if self.plugin is None:
            raise InitializationError(f"Service '{self.name}' has no loaded plugin", self.name)
        return self.plugin

    def to_dict(self) -> Dict[str, Any]:
        """Serialize record for status output."""
        return {
            "name": self.name,
            "aliases": list(self.aliases),
            "module": self.descriptor.module_id if self.descriptor else None,
            "plugin_id": self.descriptor.plugin_id if self.descriptor else None,
            "state": self.state.value,
            "generation": self.plugin.generation if self.plugin else None,
            "error": self.failure.message if self.failure else None,
        }


async def _settle(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ServiceRegistry:
    """Owns the service records of one bridge instance."""

    def __init__(
        self,
        descriptors: Mapping[str, ServiceDescriptor],
        variables: Optional[Mapping[str, Mapping[str, str]]] = None,
        scheme: str = "app",
        hostname: str = "localhost",
        ready: Optional[Callable[[], Awaitable[Any]]] = None,
        host: Optional["HostShell"] = None,
        importer: Callable[[str], Any] = import_entrypoint,
    ) -> None:
        """Initialize the registry.

        Args:
            descriptors: Declared services by name.
            variables: Plugin variables by plugin id.
            scheme: Application scheme exposed to plugin contexts.
            hostname: Application hostname exposed to plugin contexts.
            ready: Awaitable factory resolving once the host is ready;
                initializers wait on it. None means "already ready".
            host: Host shell handed to initializers.
            importer: Resolves a module id to the plugin object.
        """
        self._descriptors: Dict[str, ServiceDescriptor] = dict(descriptors)
        self._variables: Dict[str, Dict[str, str]] = {
            k: dict(v or {}) for k, v in (variables or {}).items()
        }
        self._scheme = scheme
        self._hostname = hostname
        self._ready = ready
        self._host = host
        self._importer = importer

        self._records: Dict[str, ServiceRecord] = {}
        self._by_module: Dict[str, ServiceRecord] = {}
        self._waits_on: Dict[str, Set[str]] = {}

    @classmethod
    def from_config(
        cls,
        config: "BridgeConfig",
        ready: Optional[Callable[[], Awaitable[Any]]] = None,
        host: Optional["HostShell"] = None,
        importer: Callable[[str], Any] = import_entrypoint,
    ) -> "ServiceRegistry":
        descriptors = {
            name: ServiceDescriptor(name=name, module_id=svc.module, plugin_id=svc.plugin_id)
            for name, svc in config.services.items()
        }
        return cls(
            descriptors,
            variables=config.plugins,
            scheme=config.scheme,
            hostname=config.hostname,
            ready=ready,
            host=host,
            importer=importer,
        )

    # =========================================================================
    # RECORDS
    # =========================================================================

    @property
    def service_names(self) -> List[str]:
        return list(self._descriptors)

    def is_declared(self, name: str) -> bool:
        return name in self._descriptors

    def get_or_create(self, name: str) -> ServiceRecord:
        """Return the record for ``name``, creating it on first reference."""
        record = self._records.get(name)
        if record is not None:
            return record

        descriptor = self._descriptors.get(name)
        if descriptor is None:
            record = ServiceRecord(name=name)
            record.mark_failed(ServiceUnavailableError(name))
            logger.error("Invalid service '%s': no host implementation declared", name)
        elif descriptor.module_id in self._by_module:
            record = self._by_module[descriptor.module_id]
            record.aliases.append(name)
        else:
            record = ServiceRecord(name=name, descriptor=descriptor)
            self._by_module[descriptor.module_id] = record

        self._records[name] = record
        return record

    def get_variables(self, record: ServiceRecord) -> Dict[str, str]:
        if record.descriptor is None:
            return {}
        return dict(self._variables.get(record.descriptor.plugin_id, {}))

    def _load_plugin(self, record: ServiceRecord) -> Plugin:
        if record.descriptor is None:
            raise ServiceUnavailableError(record.name)
        if record.plugin is None:
            module_id = record.descriptor.module_id
            target = self._importer(module_id)
            record.plugin = load_plugin(target, module_id)
            logger.debug("Loaded %s plugin %s", record.plugin.generation, module_id)
        return record.plugin

    # =========================================================================
    # CONFIGURE PHASE
    # =========================================================================

    def configure_all(self, accumulator: Optional[ConfigureAccumulator] = None) -> ConfigureAccumulator:
        """Load every declared service and run its configure hook.

        Raises:
            ConfigurationError: A module cannot be loaded or a configure hook
                failed. Startup must abort.
        """
        accumulator = accumulator if accumulator is not None else ConfigureAccumulator()

        for name in self._descriptors:
            record = self.get_or_create(name)
            if record.configured:
                continue
            try:
                plugin = self._load_plugin(record)
                hook = plugin.get_hook("configure")
                if hook is not None:
                    ctx = PluginConfigContext(
                        record.descriptor.plugin_id or name,
                        self.get_variables(record),
                        self._scheme,
                        self._hostname,
                        accumulator,
                    )
                    result = hook(ctx)
                    if inspect.isawaitable(result):
                        if inspect.iscoroutine(result):
                            result.close()
                        raise ConfigurationError(
                            f"configure() of service '{name}' must be synchronous",
                            {"service": name},
                        )
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error("Failed to configure service '%s': %s", name, e)
                raise ConfigurationError(
                    f"Failed to configure service '{name}': {e}",
                    {"service": name, "module": record.descriptor.module_id},
                ) from e
            record.configured = True

        logger.info("Configured %d services", len(self._descriptors))
        return accumulator

    # =========================================================================
    # INITIALIZE PHASE
    # =========================================================================

    async def ensure_initialized(self, record: ServiceRecord) -> ServiceRecord:
        """Run the record's initialization once; later callers share it."""
        if record.init_future is None:
            if record.state is ServiceState.FAILED:
                return record
            record.state = ServiceState.INITIALIZING
            record.init_future = asyncio.ensure_future(self._initialize(record))

        # Shielded: a cancelled caller leaves the shared initialization running
        future = record.init_future
        if not future.done():
            try:
                await asyncio.shield(future)
            except asyncio.CancelledError:
                if not future.cancelled():
                    raise
        if future.cancelled() and record.state is ServiceState.INITIALIZING:
            record.mark_failed(self._cancelled(record))
        return record

    @staticmethod
    def _cancelled(record: ServiceRecord) -> InitializationError:
        return InitializationError(f"Initialization of service '{record.name}' was cancelled", record.name)

    async def _initialize(self, record: ServiceRecord) -> None:
        try:
            if self._ready is not None:
                await self._ready()

            plugin = self._load_plugin(record)
            variables = self.get_variables(record)
            loader = partial(self.load, requester=record.name)

            hook = plugin.get_hook("initialize")
            if hook is not None:
                ctx = PluginInitContext(
                    record.descriptor.plugin_id or record.name,
                    variables,
                    self._scheme,
                    self._hostname,
                    loader,
                    self._host,
                )
                await _settle(hook(ctx))
            else:
                legacy_init = plugin.get_hook("init")
                if legacy_init is not None:
                    await _settle(legacy_init(variables, loader))

            record.state = ServiceState.READY
            logger.info("Service '%s' initialized (%s)", record.name, record.descriptor.module_id)

        except asyncio.CancelledError:
            record.mark_failed(self._cancelled(record))
            logger.warning("Initialization of service '%s' was cancelled", record.name)
            raise
        except Exception as e:
            if isinstance(e, InitializationError) and e.service_name == record.name:
                error = e
            else:
                error = InitializationError(
                    f"Failed to initialize service '{record.name}'",
                    record.name,
                    cause=e,
                )
            record.mark_failed(error)
            logger.error("%s: %s", error.message, e, exc_info=True)

    async def load(self, name: str, requester: Optional[str] = None) -> Any:
        """Return the plugin object behind ``name`` once it is initialized.

        Used as the service loader of initialize contexts.

        Raises:
            CircularDependencyError: ``requester`` would wait on itself.
            BridgeError: The service is unavailable or failed to initialize.
        """
        record = self.get_or_create(name)

        if requester is not None and record.state is not ServiceState.READY:
            cycle = self._find_cycle(requester, record.name)
            if cycle:
                raise CircularDependencyError(requester, cycle)
            self._waits_on.setdefault(requester, set()).add(record.name)

        try:
            await self.ensure_initialized(record)
        finally:
            if requester is not None:
                self._waits_on.get(requester, set()).discard(record.name)

        if record.state is ServiceState.FAILED:
            raise record.require_failure()
        return record.require_plugin().target

    def _find_cycle(self, requester: str, target: str) -> Optional[List[str]]:
        """Return the cycle closed by ``requester -> target``, if any."""
        requester_key = self.get_or_create(requester).name
        stack: List[List[str]] = [[target]]
        seen: Set[str] = set()
        while stack:
            path = stack.pop()
            current = path[-1]
            if current == requester_key:
                return [requester_key, *path]
            if current in seen:
                continue
            seen.add(current)
            for nxt in self._waits_on.get(current, ()):
                stack.append([*path, nxt])
        return None

    # =========================================================================
    # INVOCATION
    # =========================================================================

    async def exec(
        self,
        name: str,
        action: str,
        args: List[Any],
        callback: CallbackContext,
    ) -> None:
        """Invoke ``name.action(args)``; results go through ``callback``.

        Never raises: every failure becomes a terminal error envelope.
        """
        try:
            record = self.get_or_create(name)
            await self.ensure_initialized(record)

            if record.state is ServiceState.FAILED:
                callback.error(record.require_failure().to_dict())
                return

            await record.require_plugin().invoke(action, list(args or []), callback)

        except Exception as e:
            error = InvocationError(name, action, e)
            logger.error("%s: %s", error.message, e, exc_info=True)
            callback.error(error.to_dict())

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> List[Dict[str, Any]]:
        """Status of every declared service, without creating records."""
        status: List[Dict[str, Any]] = []
        for name, descriptor in self._descriptors.items():
            record = self._records.get(name)
            if record is None:
                status.append({
                    "name": name,
                    "aliases": [],
                    "module": descriptor.module_id,
                    "plugin_id": descriptor.plugin_id,
                    "state": ServiceState.UNRESOLVED.value,
                    "generation": None,
                    "error": None,
                })
            else:
                entry = record.to_dict()
                entry["name"] = name
                status.append(entry)
        return status
