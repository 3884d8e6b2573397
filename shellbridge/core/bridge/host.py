"""Seam between the bridge and the host shell.

Version: 0.1.0

The host shell (windows, sessions, OS integration) is an external
collaborator. The bridge only needs:

- a place to register privileged schemes and default protocol clients;
- protocol sessions (the default one plus named partitions) on which
  URL handlers can be installed;
- opaque handles to the main window and the application.

:class:`LocalHost` is the in-process implementation used by the HTTP server
and the tests.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from shellbridge.core.bridge.context import CustomScheme
from shellbridge.core.bridge.exceptions import SandboxViolationError

logger = logging.getLogger(__name__)

# A protocol handler maps a URL to a file path or raises SandboxViolationError
ProtocolHandler = Callable[[str], Path]


class ProtocolSession:
    """URL handlers installed for one session (default or partition)."""

    def __init__(self, partition: Optional[str] = None) -> None:
        self.partition = partition
        self._handlers: Dict[str, ProtocolHandler] = {}
        self._intercepted: Dict[str, ProtocolHandler] = {}

    def register_file_protocol(self, scheme: str, handler: ProtocolHandler) -> None:
        if scheme in self._handlers:
            logger.debug("Replacing %s handler on session %s", scheme, self.partition or "default")
        self._handlers[scheme] = handler

    def intercept_file_protocol(self, scheme: str, handler: ProtocolHandler) -> None:
        self._intercepted[scheme] = handler

    def is_handled(self, scheme: str) -> bool:
        return scheme in self._handlers or scheme in self._intercepted

    @property
    def schemes(self) -> List[str]:
        return sorted(set(self._handlers) | set(self._intercepted))

    def handle(self, url: str) -> Path:
        """Resolve ``url`` through the handler installed for its scheme.

        Raises:
            SandboxViolationError: No handler for the scheme, or refused.
        """
        scheme, sep, _ = url.partition("://")
        if not sep:
            raise SandboxViolationError(url, "not an absolute URL")
        handler = self._intercepted.get(scheme) or self._handlers.get(scheme)
        if handler is None:
            raise SandboxViolationError(url, f"no handler for scheme '{scheme}'")
        return handler(url)


@runtime_checkable
class HostShell(Protocol):
    """What the bridge requires from the host shell."""

    main_window: Any
    app: Any

    def register_schemes_as_privileged(self, schemes: List[CustomScheme]) -> None:
        ...

    def set_as_default_protocol_client(self, protocol: str) -> bool:
        ...

    def session(self, partition: Optional[str] = None) -> ProtocolSession:
        ...


class LocalHost:
    """In-process host shell keeping sessions and registrations in memory."""

    def __init__(self, main_window: Any = None, app: Any = None) -> None:
        self.main_window = main_window
        self.app = app
        self.privileged_schemes: List[CustomScheme] = []
        self.default_protocols: List[str] = []
        self._default_session = ProtocolSession()
        self._partitions: Dict[str, ProtocolSession] = {}

    def register_schemes_as_privileged(self, schemes: List[CustomScheme]) -> None:
        self.privileged_schemes.extend(schemes)
        logger.info(
            "Registered privileged schemes: %s",
            ", ".join(s.scheme for s in schemes) or "(none)",
        )

    def set_as_default_protocol_client(self, protocol: str) -> bool:
        if protocol not in self.default_protocols:
            self.default_protocols.append(protocol)
        logger.info("Registered as default protocol client for '%s'", protocol)
        return True

    def session(self, partition: Optional[str] = None) -> ProtocolSession:
        if partition is None:
            return self._default_session
        if partition not in self._partitions:
            self._partitions[partition] = ProtocolSession(partition)
        return self._partitions[partition]

    def has_partition(self, partition: str) -> bool:
        return partition in self._partitions
