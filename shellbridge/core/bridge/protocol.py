"""Resource resolution under a sandbox root.

Version: 0.2.1

Maps scheme URLs served to the front-end onto files below the application
root, and refuses everything else:

1. the URL must carry the configured base URL as a strict prefix;
2. the remainder (query and fragment stripped, percent-decoded) is joined
   with the application root and normalized;
3. the normalized path must still live below the application root.

``..`` traversal, absolute-path injection and sibling directories sharing
the root's name prefix (``/app2`` for ``/app``) are all refused.

Changelog:
    0.2.1: Filesystem root accepted as application root
    0.2.0: Guard installed per session partition
    0.1.0: Initial release
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union
from urllib.parse import unquote

from shellbridge.core.bridge.exceptions import SandboxViolationError
from shellbridge.core.bridge.host import ProtocolSession

logger = logging.getLogger(__name__)

FILE_SCHEME = "file"


def build_base_url(
    scheme: str,
    hostname: str,
    app_root: Union[str, Path],
    base_path: str = "",
) -> str:
    """Base URL under which application resources are addressed.

    ``file://<app_root>`` for the local-file scheme, otherwise
    ``<scheme>://<hostname>[/<base_path>]``.
    """
    if scheme == FILE_SCHEME:
        return f"{FILE_SCHEME}://{Path(app_root).resolve().as_posix()}"
    base = f"{scheme}://{hostname}"
    base_path = base_path.strip("/")
    if base_path:
        base = f"{base}/{base_path}"
    return base


class ResourceResolver:
    """Translate a URL below ``base_url`` into a path below ``app_root``."""

    def __init__(self, base_url: str, app_root: Union[str, Path]) -> None:
        self._base_url = base_url.rstrip("/")
        self._root = os.path.normpath(os.path.abspath(os.fspath(app_root)))

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def app_root(self) -> Path:
        return Path(self._root)

    def resolve(self, url: str) -> Path:
        """Return the file path for ``url``.

        Raises:
            SandboxViolationError: The URL is outside the base URL or the
                resolved path escapes the application root.
        """
        prefix = self._base_url + "/"
        if not url.startswith(prefix) or len(url) == len(prefix):
            raise SandboxViolationError(url, "outside of the application base URL")

        remainder = url[len(prefix):]
        for separator in ("?", "#"):
            remainder = remainder.split(separator, 1)[0]
        remainder = unquote(remainder)
        if "\x00" in remainder:
            raise SandboxViolationError(url, "invalid character in path")

        candidate = os.path.normpath(os.path.join(self._root, remainder))
        if candidate == self._root or not candidate.startswith(os.path.join(self._root, "")):
            logger.warning("Sandbox violation: %s resolved to %s", url, candidate)
            raise SandboxViolationError(url, "resolves outside of the application root")

        return Path(candidate)


class ProtocolGuard:
    """Installs resolver-backed handlers on protocol sessions."""

    def __init__(self, scheme: str, resolver: ResourceResolver) -> None:
        self._scheme = scheme
        self._resolver = resolver

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def resolver(self) -> ResourceResolver:
        return self._resolver

    def _refuse_local_files(self, url: str) -> Path:
        raise SandboxViolationError(url, "local file access is disabled for this application")

    def install(self, session: ProtocolSession) -> None:
        """Install the guard on one session."""
        if self._scheme == FILE_SCHEME:
            session.intercept_file_protocol(FILE_SCHEME, self._resolver.resolve)
        else:
            session.register_file_protocol(self._scheme, self._resolver.resolve)
            session.intercept_file_protocol(FILE_SCHEME, self._refuse_local_files)
        logger.debug(
            "Protocol guard for '%s' installed on session %s",
            self._scheme,
            session.partition or "default",
        )

    def install_all(
        self,
        default_session: ProtocolSession,
        partition_sessions: Optional[Iterable[ProtocolSession]] = None,
    ) -> int:
        """Install on the default session and every partition session.

        Returns:
            Number of sessions guarded.
        """
        count = 0
        for session in [default_session, *(partition_sessions or [])]:
            self.install(session)
            count += 1
        return count
