"""
Configuration management for Margay Core.

Handles loading and validation of configuration files.
"""

from margay.config.settings import (
    LoggingConfig,
    MargayConfig,
    SigningConfig,
    StorageConfig,
    TreeConfig,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "LoggingConfig",
    "MargayConfig",
    "SigningConfig",
    "StorageConfig",
    "TreeConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
