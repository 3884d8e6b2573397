"""Callback context handed to plugins for each invocation.

Version: 0.2.0

The callback context is the only route by which results reach the caller.
It wraps results in :class:`PluginResult` envelopes, passes them through
the cycle-safe :func:`censor` transform and pushes them onto the caller's
channel, keyed by the call's callback id.

Changelog:
    0.2.0: Payload serialization moved into send_plugin_result
    0.1.0: Initial release
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol, runtime_checkable

from shellbridge.core.bridge.results import PluginResult, PluginStatus
from shellbridge.core.bridge.serialization import censor

logger = logging.getLogger(__name__)


@runtime_checkable
class PushChannel(Protocol):
    """Outbound channel towards the front-end.

    ``send`` must not block and must deliver messages for one channel name
    in the order they were sent.
    """

    def send(self, channel: str, message: Dict[str, Any]) -> None:
        ...


class CallbackContext:
    """Per-invocation handle exposing progress / success / error."""

    # Plugins reach the envelope type through the context
    PluginResult = PluginResult

    def __init__(self, callback_id: str, channel: PushChannel) -> None:
        self._callback_id = callback_id
        self._channel = channel
        self._finished = False
        self._sent = 0

    @property
    def callback_id(self) -> str:
        return self._callback_id

    @property
    def finished(self) -> bool:
        """True once a terminal envelope has been sent."""
        return self._finished

    @property
    def sent_count(self) -> int:
        return self._sent

    def send_plugin_result(self, result: PluginResult) -> None:
        """Serialize and push a result envelope."""
        if self._finished:
            logger.warning(
                "Callback %s received a result after its terminal result (status=%s)",
                self._callback_id,
                PluginStatus(result.status).name,
            )
        message = censor(result.to_dict())
        self._sent += 1
        if result.is_terminal:
            self._finished = True
        self._channel.send(self._callback_id, message)

    def progress(self, data: Any) -> None:
        """Send a non-terminal OK result; more results will follow."""
        self.send_plugin_result(PluginResult(PluginStatus.OK, data, True))

    def success(self, data: Any = None) -> None:
        """Finish the call with an OK result."""
        self.send_plugin_result(PluginResult(PluginStatus.OK, data, False))

    def error(self, data: Any) -> None:
        """Finish the call with an ERROR result."""
        self.send_plugin_result(PluginResult(PluginStatus.ERROR, data, False))


class RecordingChannel:
    """PushChannel keeping every message in memory.

    Used by the CLI ``call`` command and by tests.
    """

    def __init__(self) -> None:
        self.messages: list[tuple[str, Dict[str, Any]]] = []

    def send(self, channel: str, message: Dict[str, Any]) -> None:
        self.messages.append((channel, message))

    def results_for(self, channel: str) -> list[Dict[str, Any]]:
        return [message for name, message in self.messages if name == channel]
