"""Result envelope exchanged between the bridge and the front-end.

Version: 0.1.0

A logical call produces any number of progress envelopes
(``keep_callback=True``) followed by exactly one terminal envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import Any, Dict


class PluginStatus(IntEnum):
    """Envelope status."""

    OK = 1
    ERROR = 2


class ErrorCode(IntFlag):
    """Reserved error-subcategory bits."""

    NONE = 0
    UNKNOWN_SERVICE = 4
    UNKNOWN_ACTION = 8
    UNEXPECTED_RESULT = 16
    INVOCATION_EXCEPTION = 32
    INVOCATION_EXCEPTION_FRONTEND = 64


@dataclass
class PluginResult:
    """One envelope: status, payload and continuation flag."""

    status: PluginStatus
    data: Any = None
    keep_callback: bool = False

    # Plugins reach the status vocabulary through the callback context
    STATUS_OK = PluginStatus.OK
    STATUS_ERROR = PluginStatus.ERROR

    @property
    def is_terminal(self) -> bool:
        return not self.keep_callback

    def set_keep_callback(self, value: bool) -> None:
        self.keep_callback = bool(value)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (front-end field names)."""
        return {
            "status": int(self.status),
            "data": self.data,
            "keepCallback": self.keep_callback,
        }

    @classmethod
    def ok(cls, data: Any = None, keep_callback: bool = False) -> "PluginResult":
        return cls(PluginStatus.OK, data, keep_callback)

    @classmethod
    def error(cls, data: Any = None) -> "PluginResult":
        return cls(PluginStatus.ERROR, data, False)
