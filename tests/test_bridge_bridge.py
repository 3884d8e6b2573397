"""Tests for the Bridge orchestrator.

Version: 0.3.0

Changelog:
    0.3.0: Bridge is no longer a singleton, tests build their own instance
    0.2.0: Added partition tests
    0.1.0: Initial tests
"""

import asyncio
import logging

import pytest

from shellbridge.config import BridgeConfig, ServiceConfig
from shellbridge.core.bridge import (
    Bridge,
    ConfigurationError,
    RecordingChannel,
    ReservedSchemeError,
    SandboxViolationError,
)

pytestmark = pytest.mark.anyio


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def bridge(sample_config, host):
    return Bridge(sample_config, host=host)


# ============================================================================
# Configure phase
# ============================================================================

class TestConfigure:
    """Scheme validation and configure phase."""

    @pytest.mark.parametrize("scheme", ["http", "https", "ws", "wss", "data", "javascript"])
    def test_reserved_scheme_is_fatal(self, app_root, scheme):
        bridge = Bridge(BridgeConfig(scheme=scheme, app_root=app_root))
        with pytest.raises(ReservedSchemeError) as exc_info:
            bridge.configure()

        assert isinstance(exc_info.value, ConfigurationError)
        assert scheme in exc_info.value.message

    def test_custom_reserved_list(self, app_root):
        config = BridgeConfig(scheme="internal", app_root=app_root, reserved_schemes=["internal"])
        with pytest.raises(ReservedSchemeError):
            Bridge(config).configure()

    def test_application_scheme_registered(self, bridge, host):
        accumulator = bridge.configure()

        app_scheme = accumulator.schemes["app"]
        assert app_scheme.privileges.standard
        assert app_scheme.privileges.secure
        assert [s.scheme for s in host.privileged_schemes] == ["app", "media"]

    def test_plugin_declarations_reach_host(self, bridge, host):
        accumulator = bridge.configure()

        assert accumulator.schemes["media"].privileges.stream
        assert accumulator.partitions == {"persist:embedded"}
        assert host.default_protocols == ["shellbridge-test"]

    def test_configure_is_idempotent(self, bridge, host):
        first = bridge.configure()
        second = bridge.configure()

        assert first is second
        assert bridge.is_configured
        assert len(host.privileged_schemes) == 2

    def test_file_scheme_registers_no_custom_scheme(self, app_root, host):
        bridge = Bridge(BridgeConfig(scheme="file", app_root=app_root), host=host)
        accumulator = bridge.configure()

        assert accumulator.schemes == {}
        assert bridge.base_url.startswith("file://")

    def test_broken_plugin_aborts_configure(self, app_root):
        config = BridgeConfig(
            app_root=app_root,
            services={"Broken": ServiceConfig(module="shellbridge_missing_plugin")},
        )
        with pytest.raises(ConfigurationError):
            Bridge(config).configure()

    def test_base_url_with_base_path(self, app_root):
        bridge = Bridge(BridgeConfig(app_root=app_root, base_path="application"))
        assert bridge.base_url == "app://localhost/application"


# ============================================================================
# Readiness
# ============================================================================

class TestReadiness:
    """mark_ready installs guards and releases initializers."""

    async def test_mark_ready_installs_guards(self, bridge, host):
        await bridge.mark_ready()

        assert bridge.is_ready
        assert host.session().is_handled("app")
        assert host.session().is_handled("file")
        assert host.session("persist:embedded").is_handled("app")

    async def test_mark_ready_configures_first(self, bridge):
        await bridge.mark_ready()
        assert bridge.is_configured

    async def test_calls_wait_for_readiness(self, bridge):
        channel = RecordingChannel()
        task = asyncio.ensure_future(bridge.exec("Echo", "echo", ["hi"], "cb", channel))
        for _ in range(5):
            await asyncio.sleep(0)

        assert channel.messages == []
        assert not task.done()

        await bridge.mark_ready()
        await task
        assert channel.results_for("cb") == [{"status": 1, "data": "hi", "keepCallback": False}]


# ============================================================================
# Calls
# ============================================================================

class TestExec:
    """End to end calls through the sample plugins."""

    async def test_modern_plugin_progress(self, bridge):
        await bridge.mark_ready()
        channel = RecordingChannel()

        callback = await bridge.exec("Echo", "count", [3], "cb", channel)

        assert callback.finished
        assert [r["data"] for r in channel.results_for("cb")] == [1, 2, 3]
        assert [r["keepCallback"] for r in channel.results_for("cb")] == [True, True, False]

    async def test_legacy_plugin(self, bridge):
        await bridge.mark_ready()
        channel = RecordingChannel()

        await bridge.exec("Device", "getInfo", ["a"], "cb", channel)

        assert channel.results_for("cb")[0]["data"] == {"platform": "test", "args": ["a"]}

    async def test_legacy_rejection(self, bridge):
        await bridge.mark_ready()
        channel = RecordingChannel()

        await bridge.exec("Device", "reject", [1], "cb", channel)

        assert channel.results_for("cb") == [
            {"status": 2, "data": {"code": "E_REJECTED", "args": [1]}, "keepCallback": False},
        ]

    async def test_unknown_service(self, bridge):
        await bridge.mark_ready()
        channel = RecordingChannel()

        await bridge.exec("Nope", "x", [], "cb", channel)
        assert channel.results_for("cb")[0]["data"]["code"] == 4

    async def test_plugin_exception(self, bridge, caplog):
        await bridge.mark_ready()
        channel = RecordingChannel()

        with caplog.at_level(logging.ERROR):
            await bridge.exec("Echo", "crash", [], "cb", channel)

        assert channel.results_for("cb")[0]["data"]["error"] == "InvocationError"
        assert "boom" in caplog.text

    async def test_none_args(self, bridge):
        await bridge.mark_ready()
        channel = RecordingChannel()

        await bridge.exec("Echo", "echo", None, "cb", channel)
        assert channel.results_for("cb")[0]["data"] is None


# ============================================================================
# Resources & status
# ============================================================================

class TestResolve:
    """Resource resolution through sessions."""

    async def test_default_session(self, bridge, app_root):
        await bridge.mark_ready()
        assert bridge.resolve("app://localhost/index.html") == app_root / "index.html"

    async def test_refused_before_ready(self, bridge):
        with pytest.raises(SandboxViolationError):
            bridge.resolve("app://localhost/index.html")

    async def test_declared_partition(self, bridge, app_root):
        await bridge.mark_ready()
        assert bridge.resolve("app://localhost/index.html", "persist:embedded") == app_root / "index.html"

    async def test_undeclared_partition(self, bridge):
        await bridge.mark_ready()
        with pytest.raises(SandboxViolationError, match="does not expose"):
            bridge.resolve("app://localhost/index.html", "persist:other")

    async def test_traversal_refused(self, bridge):
        await bridge.mark_ready()
        with pytest.raises(SandboxViolationError):
            bridge.resolve("app://localhost/../outside.txt")


class TestStatus:
    """Status snapshot."""

    async def test_status(self, bridge):
        await bridge.mark_ready()
        await bridge.exec("Echo", "echo", [1], "cb", RecordingChannel())

        status = bridge.get_status()
        assert status["ready"] is True
        assert status["base_url"] == "app://localhost"
        states = {s["name"]: s["state"] for s in status["services"]}
        assert states["Echo"] == "ready"
        assert states["Device"] == "unresolved"
