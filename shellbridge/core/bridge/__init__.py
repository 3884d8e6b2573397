"""shellbridge Plugin Bridge - Core Infrastructure.

Version: 0.4.0

The Bridge lets a sandboxed front-end invoke native-capability services
(plugins) running in the host process. It provides:
- Result envelopes and callback contexts with cycle-safe serialization
- A plugin adapter for legacy (map of functions) and modern (single entry
  point) plugins
- A service registry with lazy, memoized, two-phase initialization
- A protocol guard mapping scheme URLs to files below the application root

This package contains:
- results.py: PluginResult envelope and status vocabulary
- serialization.py: cycle/depth safe payload transform
- callback.py: CallbackContext and the PushChannel protocol
- context.py: plugin lifecycle contexts and the configure accumulator
- adapter.py: plugin shape detection and uniform invocation
- services.py: ServiceRegistry and service records
- protocol.py: ResourceResolver and ProtocolGuard
- host.py: host shell seam and in-process LocalHost
- bridge.py: Bridge orchestrator
- exceptions.py: error taxonomy
"""

__version__ = "0.4.0"

from shellbridge.core.bridge.exceptions import (
    BridgeError,
    ServiceUnavailableError,
    ActionNotFoundError,
    InitializationError,
    CircularDependencyError,
    InvocationError,
    UnexpectedResultError,
    SandboxViolationError,
    ConfigurationError,
    ReservedSchemeError,
    PluginRejection,
)

from shellbridge.core.bridge.results import (
    ErrorCode,
    PluginResult,
    PluginStatus,
)

from shellbridge.core.bridge.serialization import (
    MAX_DEPTH,
    censor,
)

from shellbridge.core.bridge.callback import (
    CallbackContext,
    PushChannel,
    RecordingChannel,
)

from shellbridge.core.bridge.context import (
    ConfigureAccumulator,
    CustomScheme,
    SchemePrivileges,
    PluginContext,
    PluginConfigContext,
    PluginInitContext,
    PluginLogger,
)

from shellbridge.core.bridge.adapter import (
    Plugin,
    LegacyMapPlugin,
    ActionRouterPlugin,
    import_entrypoint,
    load_plugin,
)

from shellbridge.core.bridge.services import (
    ServiceDescriptor,
    ServiceRecord,
    ServiceRegistry,
    ServiceState,
)

from shellbridge.core.bridge.host import (
    HostShell,
    LocalHost,
    ProtocolSession,
)

from shellbridge.core.bridge.protocol import (
    ProtocolGuard,
    ResourceResolver,
    build_base_url,
)

from shellbridge.core.bridge.bridge import Bridge

__all__ = [
    # Exceptions
    "BridgeError",
    "ServiceUnavailableError",
    "ActionNotFoundError",
    "InitializationError",
    "CircularDependencyError",
    "InvocationError",
    "UnexpectedResultError",
    "SandboxViolationError",
    "ConfigurationError",
    "ReservedSchemeError",
    "PluginRejection",
    # Results
    "ErrorCode",
    "PluginResult",
    "PluginStatus",
    "MAX_DEPTH",
    "censor",
    # Callback
    "CallbackContext",
    "PushChannel",
    "RecordingChannel",
    # Contexts
    "ConfigureAccumulator",
    "CustomScheme",
    "SchemePrivileges",
    "PluginContext",
    "PluginConfigContext",
    "PluginInitContext",
    "PluginLogger",
    # Adapter
    "Plugin",
    "LegacyMapPlugin",
    "ActionRouterPlugin",
    "import_entrypoint",
    "load_plugin",
    # Services
    "ServiceDescriptor",
    "ServiceRecord",
    "ServiceRegistry",
    "ServiceState",
    # Host & protocol
    "HostShell",
    "LocalHost",
    "ProtocolSession",
    "ProtocolGuard",
    "ResourceResolver",
    "build_base_url",
    # Bridge
    "Bridge",
]
