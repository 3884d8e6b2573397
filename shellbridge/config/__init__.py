"""Configuration system for shellbridge."""

from .config import (
    CONFIG_FILE_NAME,
    DEFAULT_RESERVED_SCHEMES,
    BridgeConfig,
    LoggingConfig,
    ServerConfig,
    ServiceConfig,
    get_config_path,
    load_config,
    save_config,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_RESERVED_SCHEMES",
    "BridgeConfig",
    "LoggingConfig",
    "ServerConfig",
    "ServiceConfig",
    "get_config_path",
    "load_config",
    "save_config",
]
