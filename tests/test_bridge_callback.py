"""Tests for shellbridge.core.bridge.results and callback modules.

Version: 0.2.0

Changelog:
    0.2.0: Payloads go through the censor transform
    0.1.0: Initial tests
"""

import logging

import pytest

from shellbridge.core.bridge.callback import CallbackContext, PushChannel, RecordingChannel
from shellbridge.core.bridge.results import ErrorCode, PluginResult, PluginStatus


# =============================================================================
# PluginResult Tests
# =============================================================================

class TestPluginResult:
    """Tests for the result envelope."""

    def test_status_values(self):
        assert int(PluginStatus.OK) == 1
        assert int(PluginStatus.ERROR) == 2

    def test_error_codes_are_reserved_bits(self):
        assert int(ErrorCode.UNKNOWN_SERVICE) == 4
        assert int(ErrorCode.UNKNOWN_ACTION) == 8
        assert int(ErrorCode.UNEXPECTED_RESULT) == 16
        assert int(ErrorCode.INVOCATION_EXCEPTION) == 32
        assert int(ErrorCode.INVOCATION_EXCEPTION_FRONTEND) == 64

    def test_default_is_terminal(self):
        result = PluginResult(PluginStatus.OK, "data")
        assert result.keep_callback is False
        assert result.is_terminal

    def test_set_keep_callback(self):
        result = PluginResult.ok("partial")
        result.set_keep_callback(True)
        assert result.keep_callback is True
        assert not result.is_terminal

    def test_to_dict_uses_wire_names(self):
        result = PluginResult(PluginStatus.ERROR, {"reason": "x"}, False)
        assert result.to_dict() == {
            "status": 2,
            "data": {"reason": "x"},
            "keepCallback": False,
        }

    def test_error_is_never_kept(self):
        assert PluginResult.error("x").keep_callback is False

    def test_status_reachable_from_envelope_type(self):
        assert PluginResult.STATUS_OK is PluginStatus.OK
        assert PluginResult.STATUS_ERROR is PluginStatus.ERROR


# =============================================================================
# CallbackContext Tests
# =============================================================================

@pytest.fixture
def channel():
    return RecordingChannel()


class TestCallbackContext:
    """Tests for CallbackContext."""

    def test_recording_channel_is_push_channel(self, channel):
        assert isinstance(channel, PushChannel)

    def test_success_sends_terminal_ok(self, channel):
        ctx = CallbackContext("cb-1", channel)
        ctx.success({"value": 42})

        assert channel.messages == [
            ("cb-1", {"status": 1, "data": {"value": 42}, "keepCallback": False}),
        ]
        assert ctx.finished

    def test_success_without_data(self, channel):
        ctx = CallbackContext("cb-1", channel)
        ctx.success()
        assert channel.results_for("cb-1")[0]["data"] is None

    def test_error_sends_terminal_error(self, channel):
        ctx = CallbackContext("cb-2", channel)
        ctx.error("nope")

        assert channel.results_for("cb-2") == [
            {"status": 2, "data": "nope", "keepCallback": False},
        ]
        assert ctx.finished

    def test_progress_then_success_preserves_order(self, channel):
        ctx = CallbackContext("cb-3", channel)
        ctx.progress(1)
        ctx.progress(2)
        assert not ctx.finished
        ctx.success(3)

        results = channel.results_for("cb-3")
        assert [r["data"] for r in results] == [1, 2, 3]
        assert [r["keepCallback"] for r in results] == [True, True, False]
        assert ctx.sent_count == 3

    def test_send_plugin_result_directly(self, channel):
        ctx = CallbackContext("cb-4", channel)
        ctx.send_plugin_result(ctx.PluginResult(ctx.PluginResult.STATUS_OK, "raw", True))
        assert channel.results_for("cb-4") == [{"status": 1, "data": "raw", "keepCallback": True}]
        assert not ctx.finished

    def test_payload_is_censored(self, channel):
        payload = {"name": "loop"}
        payload["self"] = payload
        ctx = CallbackContext("cb-5", channel)
        ctx.success(payload)

        data = channel.results_for("cb-5")[0]["data"]
        assert data == {"name": "loop", "self": "[Circular self: dict]"}

    def test_result_after_terminal_is_logged(self, channel, caplog):
        ctx = CallbackContext("cb-6", channel)
        ctx.success(1)
        with caplog.at_level(logging.WARNING):
            ctx.progress(2)

        assert "after its terminal result" in caplog.text
        assert len(channel.results_for("cb-6")) == 2

    def test_channels_are_separate(self, channel):
        CallbackContext("a", channel).success("A")
        CallbackContext("b", channel).error("B")
        assert channel.results_for("a")[0]["data"] == "A"
        assert channel.results_for("b")[0]["status"] == 2
