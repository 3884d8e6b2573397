"""
Configuration loading and models for shellbridge.

Version: 0.3.0

The configuration is a single YAML document, by default ``shellbridge.yaml``
next to the application::

    scheme: app
    hostname: localhost
    app_root: www
    services:
      Device:
        module: myapp.plugins.device
        plugin_id: plugin-device
    plugins:
      plugin-device:
        PACKAGE_NAME: org.example.app
    server:
      port: 8765
    logging:
      level: INFO
      plugins:
        plugin-device: WARNING
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "shellbridge.yaml"

# Schemes the application may never claim for itself
DEFAULT_RESERVED_SCHEMES: tuple[str, ...] = (
    "about",
    "blob",
    "chrome",
    "chrome-extension",
    "data",
    "devtools",
    "filesystem",
    "ftp",
    "http",
    "https",
    "javascript",
    "mailto",
    "view-source",
    "ws",
    "wss",
)


@dataclass
class ServerConfig:
    """Configuration for the bridge server."""

    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log verbosity level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        path: Log file destination path, None for console only.
        reset_on_start: If True, delete log file on startup. If False, add separator.
        plugins: Log level overrides by plugin id.
    """

    level: str = "INFO"
    path: Optional[str] = None
    reset_on_start: bool = True
    plugins: dict[str, str] = field(default_factory=dict)


@dataclass
class ServiceConfig:
    """Implementation of one declared service.

    ``module`` is ``"pkg.module"`` for legacy plugins or
    ``"pkg.module:attribute"`` to point at a single entry point plugin.
    """

    module: str
    plugin_id: str = ""


@dataclass
class BridgeConfig:
    """Root configuration object."""

    scheme: str = "app"
    hostname: str = "localhost"
    base_path: str = ""
    app_root: Path = field(default_factory=lambda: Path("www"))
    services: dict[str, ServiceConfig] = field(default_factory=dict)
    plugins: dict[str, dict[str, str]] = field(default_factory=dict)
    reserved_schemes: list[str] = field(default_factory=lambda: list(DEFAULT_RESERVED_SCHEMES))
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    config_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Optional[Path] = None) -> BridgeConfig:
        """Create a config object from a dictionary.

        Relative ``app_root`` values are resolved against ``base_dir``.
        """
        services: dict[str, ServiceConfig] = {}
        for name, svc in (data.get("services") or {}).items():
            if isinstance(svc, str):
                services[name] = ServiceConfig(module=svc)
            else:
                # Manifest-style key names are accepted too
                module = svc.get("module") or svc.get("module_id") or svc.get("electronModule")
                plugin_id = svc.get("plugin_id") or svc.get("pluginId") or ""
                if not module:
                    raise ValueError(f"Service '{name}' has no module")
                services[name] = ServiceConfig(module=module, plugin_id=plugin_id)

        plugins = {
            plugin_id: {str(k): str(v) for k, v in (variables or {}).items()}
            for plugin_id, variables in (data.get("plugins") or {}).items()
        }

        app_root = Path(data.get("app_root", "www"))
        if base_dir is not None and not app_root.is_absolute():
            app_root = base_dir / app_root

        reserved = data.get("reserved_schemes")

        return cls(
            scheme=str(data.get("scheme", "app")),
            hostname=str(data.get("hostname", "localhost")),
            base_path=str(data.get("base_path", "") or ""),
            app_root=app_root,
            services=services,
            plugins=plugins,
            reserved_schemes=list(reserved) if reserved is not None else list(DEFAULT_RESERVED_SCHEMES),
            server=ServerConfig(**(data.get("server") or {})),
            logging=LoggingConfig(**(data.get("logging") or {})),
        )

    @property
    def is_file_scheme(self) -> bool:
        return self.scheme == "file"


def get_config_path(root_path: Path, config_file: str | None = None) -> Path:
    """Locate the configuration file for ``root_path``."""
    if config_file:
        candidate = Path(config_file)
        return candidate if candidate.is_absolute() else root_path / candidate
    return root_path / CONFIG_FILE_NAME


def load_config(root_path: Path, config_file: str | None = None) -> BridgeConfig:
    """Load configuration from a YAML file.

    A missing file yields the defaults. A malformed file raises, since the
    bridge cannot run on a guessed service map.

    Raises:
        yaml.YAMLError: The file is not valid YAML.
        ValueError: The document has an invalid structure.
    """
    config_path = get_config_path(root_path, config_file=config_file)

    if not config_path.is_file():
        logger.debug("No config file found at %s, using defaults.", config_path)
        return BridgeConfig(app_root=root_path / "www")

    logger.info("Loading config from %s", config_path)
    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Invalid configuration in {config_path}: expected a mapping")

    try:
        config = BridgeConfig.from_dict(data, base_dir=config_path.parent)
    except TypeError as e:
        raise ValueError(f"Invalid configuration in {config_path}: {e}") from e
    config.config_path = config_path
    return config


def save_config(config: BridgeConfig, path: Path) -> None:
    """Write ``config`` as YAML."""
    data: dict[str, Any] = {
        "scheme": config.scheme,
        "hostname": config.hostname,
        "base_path": config.base_path,
        "app_root": str(config.app_root),
        "services": {
            name: {"module": svc.module, "plugin_id": svc.plugin_id}
            for name, svc in config.services.items()
        },
        "plugins": config.plugins,
        "reserved_schemes": config.reserved_schemes,
        "server": {"host": config.server.host, "port": config.server.port},
        "logging": {
            "level": config.logging.level,
            "path": config.logging.path,
            "reset_on_start": config.logging.reset_on_start,
            "plugins": config.logging.plugins,
        },
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)
    logger.info("Saved config to %s", path)
