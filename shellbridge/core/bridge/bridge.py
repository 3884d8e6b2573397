"""shellbridge Bridge - process-level orchestrator.

Version: 0.3.0

The Bridge wires configuration, the host shell, the service registry and
the protocol guard together. It is constructed once at process start and
passed to whoever needs it (server, CLI, tests); there is no global
instance.

Startup sequence:

1. :meth:`Bridge.configure` (synchronous, before the host is ready):
   validates the application scheme, runs every plugin's configure hook and
   hands the collected schemes / default protocols to the host. Errors here
   are :class:`ConfigurationError` and must abort the process.
2. :meth:`Bridge.mark_ready` (once the host is ready): installs the protocol
   guard on the default session and every requested partition, then
   releases pending service initializations.
3. :meth:`Bridge.exec` serves calls for the lifetime of the process.

Usage:
    bridge = Bridge(load_config(Path.cwd()))
    bridge.configure()
    await bridge.mark_ready()
    await bridge.exec("Device", "getInfo", [], "cb-1", channel)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from shellbridge.config import BridgeConfig
from shellbridge.core.bridge.adapter import import_entrypoint
from shellbridge.core.bridge.callback import CallbackContext, PushChannel
from shellbridge.core.bridge.context import ConfigureAccumulator, CustomScheme, SchemePrivileges
from shellbridge.core.bridge.exceptions import ReservedSchemeError, SandboxViolationError
from shellbridge.core.bridge.host import HostShell, LocalHost
from shellbridge.core.bridge.protocol import ProtocolGuard, ResourceResolver, build_base_url
from shellbridge.core.bridge.services import ServiceRegistry

logger = logging.getLogger(__name__)


class Bridge:
    """Entry point for calls coming from the front-end."""

    def __init__(
        self,
        config: BridgeConfig,
        host: Optional[HostShell] = None,
        importer: Callable[[str], Any] = import_entrypoint,
    ) -> None:
        self._config = config
        self._host: HostShell = host if host is not None else LocalHost()
        self._host_ready = asyncio.Event()
        self._accumulator: Optional[ConfigureAccumulator] = None

        self._base_url = build_base_url(
            config.scheme, config.hostname, config.app_root, config.base_path
        )
        self._guard = ProtocolGuard(config.scheme, ResourceResolver(self._base_url, config.app_root))

        self._registry = ServiceRegistry.from_config(
            config, ready=self.wait_ready, host=self._host, importer=importer
        )

        logger.debug("Bridge created (base url %s)", self._base_url)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def host(self) -> HostShell:
        return self._host

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def guard(self) -> ProtocolGuard:
        return self._guard

    @property
    def is_configured(self) -> bool:
        return self._accumulator is not None

    @property
    def is_ready(self) -> bool:
        return self._host_ready.is_set()

    @property
    def accumulator(self) -> Optional[ConfigureAccumulator]:
        return self._accumulator

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def validate_scheme(self) -> None:
        """Refuse reserved application schemes.

        Raises:
            ReservedSchemeError: The configured scheme is reserved.
        """
        if self._config.scheme in self._config.reserved_schemes:
            raise ReservedSchemeError(self._config.scheme)

    def configure(self) -> ConfigureAccumulator:
        """Run the configure phase. Idempotent.

        Raises:
            ConfigurationError: Fatal misconfiguration.
        """
        if self._accumulator is not None:
            return self._accumulator

        self.validate_scheme()

        accumulator = ConfigureAccumulator()
        if not self._config.is_file_scheme:
            accumulator.add_scheme(CustomScheme(
                self._config.scheme,
                SchemePrivileges(standard=True, secure=True),
            ))

        self._registry.configure_all(accumulator)

        self._host.register_schemes_as_privileged(list(accumulator.schemes.values()))
        for protocol in accumulator.default_protocols:
            if not self._host.set_as_default_protocol_client(protocol):
                logger.warning("Could not register as default protocol client for '%s'", protocol)

        self._accumulator = accumulator
        logger.info(
            "Bridge configured: %d services, %d schemes, %d partitions",
            len(self._registry.service_names),
            len(accumulator.schemes),
            len(accumulator.partitions),
        )
        return accumulator

    async def mark_ready(self) -> None:
        """Signal host readiness: install protocol guards, release initializers."""
        if self._host_ready.is_set():
            return
        accumulator = self.configure()

        partitions = [self._host.session(p) for p in sorted(accumulator.partitions)]
        guarded = self._guard.install_all(self._host.session(), partitions)
        logger.info("Protocol guard installed on %d sessions", guarded)

        self._host_ready.set()

    async def wait_ready(self) -> None:
        await self._host_ready.wait()

    # =========================================================================
    # CALLS & RESOURCES
    # =========================================================================

    async def exec(
        self,
        service: str,
        action: str,
        args: Optional[List[Any]],
        callback_id: str,
        channel: PushChannel,
    ) -> CallbackContext:
        """Serve one inbound call. Never raises."""
        callback = CallbackContext(callback_id, channel)
        logger.debug("exec %s.%s (callback %s)", service, action, callback_id)
        await self._registry.exec(service, action, list(args or []), callback)
        return callback

    def resolve(self, url: str, partition: Optional[str] = None) -> Path:
        """Resolve a resource URL through the session protocol handlers.

        Raises:
            SandboxViolationError: Refused, or the partition does not expose
                the application scheme.
        """
        if partition is not None:
            if self._accumulator is None or partition not in self._accumulator.partitions:
                raise SandboxViolationError(url, f"partition '{partition}' does not expose the application scheme")
        return self._host.session(partition).handle(url)

    def get_status(self) -> Dict[str, Any]:
        return {
            "scheme": self._config.scheme,
            "hostname": self._config.hostname,
            "base_url": self._base_url,
            "ready": self.is_ready,
            "configuration": self._accumulator.to_dict() if self._accumulator else None,
            "services": self._registry.get_status(),
        }
