"""Exception classes for the shellbridge plugin bridge.

Version: 0.2.0

Every failure that can happen while serving a call has a dedicated type.
Per-call failures are never raised across the transport: the bridge turns
them into terminal error envelopes whose payload is ``exc.to_dict()``.
Configuration failures are the exception to that rule; they abort startup.
"""

from __future__ import annotations

from typing import Any, Optional

from shellbridge.core.bridge.results import ErrorCode


class BridgeError(Exception):
    """Base exception for all bridge errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (service, action, ...)
        code: Reserved status bit describing the error category
    """

    code: ErrorCode = ErrorCode.NONE

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dict."""
        return {
            "error": self.__class__.__name__,
            "code": int(self.code),
            "message": self.message,
            "details": self.details,
        }


class ServiceUnavailableError(BridgeError):
    """The requested service name is not declared in the configuration."""

    code = ErrorCode.UNKNOWN_SERVICE

    def __init__(
        self,
        service_name: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        message = f"Invalid service. Service '{service_name}' does not have a host implementation."
        super().__init__(message, details)
        self.service_name = service_name
        self.details["service"] = service_name


class ActionNotFoundError(BridgeError):
    """The plugin does not implement the requested action."""

    code = ErrorCode.UNKNOWN_ACTION

    def __init__(
        self,
        module_id: str,
        action: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        message = f"Invalid action. Service '{module_id}' does not have a host implementation for action '{action}'."
        super().__init__(message, details)
        self.module_id = module_id
        self.action = action
        self.details["module"] = module_id
        self.details["action"] = action


class InitializationError(BridgeError):
    """A plugin failed to load or its configure/initialize hook failed.

    Sticky: once a record holds this error every later call reproduces it.
    """

    def __init__(
        self,
        message: str,
        service_name: str,
        cause: Optional[BaseException] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.service_name = service_name
        self.cause = cause
        self.details["service"] = service_name
        if cause is not None:
            self.details["cause"] = f"{type(cause).__name__}: {cause}"


class CircularDependencyError(InitializationError):
    """An initializer requested a service that is (transitively) waiting on it.

    Includes the cycle path for debugging.
    """

    def __init__(
        self,
        service_name: str,
        cycle: list[str],
        details: Optional[dict[str, Any]] = None
    ) -> None:
        cycle_str = " -> ".join(cycle)
        message = f"Circular service dependency detected: {cycle_str}"
        super().__init__(message, service_name, details=details)
        self.cycle = cycle
        self.details["cycle"] = cycle


class InvocationError(BridgeError):
    """The plugin's action handler raised."""

    code = ErrorCode.INVOCATION_EXCEPTION

    def __init__(
        self,
        module_id: str,
        action: str,
        cause: BaseException,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        message = f"Exception while invoking service action '{module_id}.{action}'"
        super().__init__(message, details)
        self.module_id = module_id
        self.action = action
        self.cause = cause
        self.details["module"] = module_id
        self.details["action"] = action

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["exception"] = f"{type(self.cause).__name__}: {self.cause}"
        return data


class UnexpectedResultError(BridgeError):
    """A modern plugin settled with something other than True/False."""

    code = ErrorCode.UNEXPECTED_RESULT

    def __init__(
        self,
        module_id: str,
        action: str,
        result: Any,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        message = f"Unexpected plugin exec result: {result!r}"
        super().__init__(message, details)
        self.result = result
        self.details["module"] = module_id
        self.details["action"] = action


class SandboxViolationError(BridgeError):
    """A resource URL resolved outside the application root, or was refused."""

    def __init__(
        self,
        url: str,
        reason: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(f"Refused resource '{url}': {reason}", details)
        self.url = url
        self.reason = reason
        self.details["url"] = url


class ConfigurationError(BridgeError):
    """Unrecoverable misconfiguration detected at startup."""


class ReservedSchemeError(ConfigurationError):
    """The configured application scheme is on the reserved list."""

    def __init__(self, scheme: str) -> None:
        super().__init__(
            f'The scheme "{scheme}" can not be registered. Please use a non-reserved scheme.',
            {"scheme": scheme},
        )
        self.scheme = scheme


class PluginRejection(Exception):
    """Raised by a legacy action to reject with an arbitrary payload.

    The bridge sends ``reason`` untouched (after serialization) as the
    error envelope's data.
    """

    def __init__(self, reason: Any) -> None:
        super().__init__(reason)
        self.reason = reason
