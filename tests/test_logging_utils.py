"""Tests for shellbridge.core.logging_utils.

Version: 0.1.0
"""

import logging

import pytest

from shellbridge.core.logging_utils import (
    apply_plugin_levels,
    configure_logging,
    normalize_log_level,
    plugin_logger_name,
    prepare_log_file,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestNormalizeLogLevel:

    @pytest.mark.parametrize("raw,expected", [
        (None, "INFO"),
        ("", "INFO"),
        ("debug", "DEBUG"),
        (" warn ", "WARNING"),
        ("critic", "CRITICAL"),
        ("nonsense", "INFO"),
    ])
    def test_aliases(self, raw, expected):
        assert normalize_log_level(raw) == expected


class TestPrepareLogFile:

    def test_reset_deletes_file(self, tmp_path):
        log_file = tmp_path / "bridge.log"
        log_file.write_text("old", encoding="utf-8")
        prepare_log_file(log_file, reset_on_start=True)
        assert not log_file.exists()

    def test_keep_appends_separator(self, tmp_path):
        log_file = tmp_path / "bridge.log"
        log_file.write_text("old\n", encoding="utf-8")
        prepare_log_file(log_file, reset_on_start=False)

        content = log_file.read_text(encoding="utf-8")
        assert content.startswith("old\n")
        assert "SHELLBRIDGE RESTART" in content

    def test_creates_parent_directory(self, tmp_path):
        log_file = tmp_path / "logs" / "bridge.log"
        prepare_log_file(log_file)
        assert log_file.parent.is_dir()


class TestConfigureLogging:

    def test_returns_normalized_level(self, restore_root_logger):
        assert configure_logging("warn") == "WARNING"
        assert restore_root_logger.level == logging.WARNING
        assert logging.getLogger("uvicorn").level == logging.WARNING

    def test_attaches_file_handler_once(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "bridge.log"
        configure_logging("INFO", log_file=log_file)
        configure_logging("INFO", log_file=log_file)

        file_handlers = [
            h for h in restore_root_logger.handlers
            if isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file.resolve())
        ]
        assert len(file_handlers) == 1

        logging.getLogger("shellbridge.test").info("written to file")
        file_handlers[0].flush()
        assert "written to file" in log_file.read_text(encoding="utf-8")


class TestPluginLevels:

    @pytest.fixture(autouse=True)
    def reset_plugin_loggers(self):
        yield
        for plugin_id in ("quiet", "loud"):
            logging.getLogger(plugin_logger_name(plugin_id)).setLevel(logging.NOTSET)

    def test_logger_name(self):
        assert plugin_logger_name("plugin-camera") == "shellbridge.plugins.plugin-camera"

    def test_apply_levels(self):
        applied = apply_plugin_levels({"quiet": "error", "loud": "debug"})

        assert applied == {"quiet": "ERROR", "loud": "DEBUG"}
        assert logging.getLogger("shellbridge.plugins.quiet").level == logging.ERROR
        assert logging.getLogger("shellbridge.plugins.loud").level == logging.DEBUG

    def test_quieted_plugin_is_filtered(self, caplog, restore_root_logger):
        configure_logging("INFO", plugin_levels={"quiet": "ERROR"})

        with caplog.at_level(logging.INFO):
            logging.getLogger(plugin_logger_name("quiet")).info("hidden")
            logging.getLogger(plugin_logger_name("quiet")).error("shown")

        assert "hidden" not in caplog.text
        assert "shown" in caplog.text
