"""Capability-scoped contexts handed to plugins during their lifecycle.

Version: 0.3.0

Two phases, two contexts:

- ``configure(ctx: PluginConfigContext)`` runs synchronously before the host
  signals readiness. The context can declare privileged URL schemes, default
  protocol client registrations and session partitions that must expose the
  application scheme. Declarations land in a shared
  :class:`ConfigureAccumulator`.
- ``initialize(ctx: PluginInitContext)`` runs after readiness, before the
  first call. The context can load other services and reach the host.

Changelog:
    0.3.0: Added expose_to_partition and register_default_protocol
    0.2.0: PluginLogger moved here from the service registry
    0.1.0: Initial release
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from shellbridge.core.logging_utils import plugin_logger_name

if TYPE_CHECKING:
    from shellbridge.core.bridge.host import HostShell

logger = logging.getLogger(__name__)

PACKAGE_NAME_VARIABLE = "PACKAGE_NAME"


# =============================================================================
# CONFIGURE PHASE DATA
# =============================================================================

@dataclass(frozen=True)
class SchemePrivileges:
    """Privileges granted to a custom URL scheme."""

    standard: bool = False
    secure: bool = False
    bypass_csp: bool = False
    allow_service_workers: bool = False
    support_fetch_api: bool = False
    cors_enabled: bool = False
    stream: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "standard": self.standard,
            "secure": self.secure,
            "bypassCSP": self.bypass_csp,
            "allowServiceWorkers": self.allow_service_workers,
            "supportFetchAPI": self.support_fetch_api,
            "corsEnabled": self.cors_enabled,
            "stream": self.stream,
        }


@dataclass(frozen=True)
class CustomScheme:
    """A scheme to register as privileged with the host."""

    scheme: str
    privileges: SchemePrivileges = field(default_factory=SchemePrivileges)

    def to_dict(self) -> Dict[str, Any]:
        return {"scheme": self.scheme, "privileges": self.privileges.to_dict()}


@dataclass
class ConfigureAccumulator:
    """Mutable record built while plugins run their configure hook."""

    schemes: Dict[str, CustomScheme] = field(default_factory=dict)
    default_protocols: List[str] = field(default_factory=list)
    partitions: Set[str] = field(default_factory=set)

    def add_scheme(self, custom_scheme: CustomScheme) -> None:
        if custom_scheme.scheme in self.schemes:
            logger.warning("Overriding custom scheme '%s'", custom_scheme.scheme)
        self.schemes[custom_scheme.scheme] = custom_scheme

    def add_default_protocol(self, protocol: str) -> None:
        if protocol not in self.default_protocols:
            self.default_protocols.append(protocol)

    def add_partition(self, partition: str) -> None:
        self.partitions.add(partition)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemes": [s.to_dict() for s in self.schemes.values()],
            "default_protocols": list(self.default_protocols),
            "partitions": sorted(self.partitions),
        }


# =============================================================================
# PLUGIN LOGGER
# =============================================================================

class PluginLogger:
    """Logger wrapper that prefixes all messages with the plugin ID.

    All messages are prefixed with ``[plugin:<plugin_id>]`` so logs can be
    filtered per plugin.
    """

    def __init__(self, plugin_id: str, base_logger: Optional[logging.Logger] = None):
        self._plugin_id = plugin_id
        self._logger = base_logger or logging.getLogger(plugin_logger_name(plugin_id))

    @property
    def plugin_id(self) -> str:
        return self._plugin_id

    def _format_msg(self, msg: str) -> str:
        return f"[plugin:{self._plugin_id}] {msg}"

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(self._format_msg(msg), *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.info(self._format_msg(msg), *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(self._format_msg(msg), *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.error(self._format_msg(msg), *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.exception(self._format_msg(msg), *args, **kwargs)

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)


# =============================================================================
# CONTEXTS
# =============================================================================

class PluginContext:
    """Metadata shared by both lifecycle contexts."""

    def __init__(
        self,
        plugin_id: str,
        variables: Optional[Mapping[str, str]],
        scheme: str,
        hostname: str,
    ) -> None:
        self._plugin_id = plugin_id
        self._variables: Dict[str, str] = dict(variables or {})
        self._scheme = scheme
        self._hostname = hostname
        self._logger = PluginLogger(plugin_id)

    @property
    def plugin_id(self) -> str:
        return self._plugin_id

    def get_package_name(self) -> Optional[str]:
        """Package id of the application (e.g. ``org.example.app``)."""
        return self._variables.get(PACKAGE_NAME_VARIABLE)

    def get_scheme(self) -> str:
        """Scheme used to serve the application's web assets."""
        return self._scheme

    def get_hostname(self) -> str:
        """Hostname used to build URLs with the application scheme."""
        return self._hostname

    def get_variable(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Variable defined for this plugin at deployment time."""
        return self._variables.get(key, default)

    def get_logger(self) -> PluginLogger:
        return self._logger


class PluginConfigContext(PluginContext):
    """Context for the synchronous, pre-readiness configure phase."""

    def __init__(
        self,
        plugin_id: str,
        variables: Optional[Mapping[str, str]],
        scheme: str,
        hostname: str,
        accumulator: ConfigureAccumulator,
    ) -> None:
        super().__init__(plugin_id, variables, scheme, hostname)
        self._accumulator = accumulator

    def register_scheme_as_privileged(self, custom_scheme: CustomScheme) -> None:
        """Declare a privileged scheme. A later declaration of the same name wins."""
        self._accumulator.add_scheme(custom_scheme)

    def register_default_protocol(self, protocol: str) -> None:
        """Ask the host to become the OS default handler for ``protocol``."""
        self._accumulator.add_default_protocol(protocol)

    def expose_to_partition(self, partition: str) -> None:
        """Make the application scheme available in a session partition."""
        self._accumulator.add_partition(partition)


class PluginInitContext(PluginContext):
    """Context for the asynchronous, post-readiness initialize phase."""

    def __init__(
        self,
        plugin_id: str,
        variables: Optional[Mapping[str, str]],
        scheme: str,
        hostname: str,
        service_loader: Callable[[str], Awaitable[Any]],
        host: Optional["HostShell"] = None,
    ) -> None:
        super().__init__(plugin_id, variables, scheme, hostname)
        self._service_loader = service_loader
        self._host = host

    async def get_service(self, service_name: str) -> Any:
        """Look up another plugin by service name, initializing it if needed."""
        return await self._service_loader(service_name)

    def get_main_window(self) -> Any:
        return self._host.main_window if self._host is not None else None

    def get_app(self) -> Any:
        return self._host.app if self._host is not None else None
