"""Shared fixtures for the shellbridge test suite."""

from pathlib import Path
from typing import Any, Dict

import pytest

from shellbridge.config import BridgeConfig, ServiceConfig
from shellbridge.core.bridge import LocalHost


@pytest.fixture
def anyio_backend():
    return "asyncio"


class PluginTable:
    """Importer resolving module ids from an in-memory table."""

    def __init__(self, plugins: Dict[str, Any] | None = None) -> None:
        self.plugins: Dict[str, Any] = dict(plugins or {})
        self.imports: list[str] = []

    def __call__(self, module_id: str) -> Any:
        self.imports.append(module_id)
        try:
            return self.plugins[module_id]
        except KeyError:
            raise ImportError(f"No module named '{module_id}'") from None


@pytest.fixture
def plugin_table():
    return PluginTable()


@pytest.fixture
def app_root(tmp_path: Path) -> Path:
    """Application root with a couple of resources."""
    root = tmp_path / "app"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_text("<h1>hello</h1>", encoding="utf-8")
    (root / "css" / "site.css").write_text("body {}", encoding="utf-8")
    # Sibling directory sharing the root's name prefix
    sibling = tmp_path / "app2"
    sibling.mkdir()
    (sibling / "secret.txt").write_text("secret", encoding="utf-8")
    (tmp_path / "outside.txt").write_text("outside", encoding="utf-8")
    return root


@pytest.fixture
def sample_config(app_root: Path) -> BridgeConfig:
    """Config pointing at the plugins of tests/sample_plugins.py."""
    return BridgeConfig(
        app_root=app_root,
        services={
            "Device": ServiceConfig(module="sample_plugins:device", plugin_id="plugin-device"),
            "Echo": ServiceConfig(module="sample_plugins:echo", plugin_id="plugin-echo"),
            "Configured": ServiceConfig(module="sample_plugins:configured"),
        },
        plugins={"plugin-device": {"PACKAGE_NAME": "org.example.test"}},
    )


@pytest.fixture
def host() -> LocalHost:
    return LocalHost(main_window="main-window", app="app")
