"""
Configuration management for Margay Core.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from margay.exceptions import ConfigurationLoadError, InvalidConfigurationError
from margay.logging_config import get_logger
from margay.merkle.hashing import available_hash_functions
from margay.merkle.zeros import MAX_DEPTH

logger = get_logger(__name__)


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Args:
        value: Configuration value (string, dict, list, or other)

    Returns:
        Value with environment variables expanded

    Examples:
        "${MARGAY_STATE_FILE}" -> value of MARGAY_STATE_FILE env var
        "${MARGAY_DEPTH:20}" -> value of MARGAY_DEPTH or "20" if not set
    """
    if isinstance(value, str):
        # Pattern matches ${VAR} or ${VAR:default}
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


@dataclass
class TreeConfig:
    """Incremental Merkle tree parameters."""

    depth: int = 20
    history_size: int = 30
    hash_function: str = "sha256"


@dataclass
class StorageConfig:
    """Storage configuration for file paths."""

    state_file: str = ""
    backup_count: int = 3


@dataclass
class SigningConfig:
    """Root checkpoint signing configuration."""

    enabled: bool = False
    private_key_path: str = ""
    signing_backend: str = "software"  # only "software" ships with Margay Core


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"
    file: str = ""
    format: str = "console"  # "console" or "json"


@dataclass
class MargayConfig:
    """Main Margay Core configuration."""

    storage: StorageConfig
    tree: TreeConfig = field(default_factory=TreeConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.margay/config.yaml")


def get_default_config() -> MargayConfig:
    """
    Get default configuration with sensible defaults.

    Returns:
        MargayConfig: Default configuration object
    """
    home_dir = os.path.expanduser("~/.margay")

    storage = StorageConfig(
        state_file=os.path.join(home_dir, "tree_state.json"),
        backup_count=3,
    )

    signing = SigningConfig(
        enabled=False,
        private_key_path=os.path.join(home_dir, "keys", "checkpoint-signing-key.pem"),
        signing_backend="software",
    )

    return MargayConfig(
        storage=storage,
        tree=TreeConfig(),
        signing=signing,
        logging=LoggingConfig(),
    )


def load_config(config_path: Optional[str] = None) -> MargayConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises ConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        MargayConfig: Loaded and validated configuration

    Raises:
        ConfigurationLoadError: If the file exists but cannot be read
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(str(config_path))

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        )
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}", exc_info=True)
        raise ConfigurationLoadError(
            f"Failed to read configuration file '{config_path}': {e}"
        )

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': top level must be a mapping"
        )

    config_data = _expand_env_vars(config_data)
    logger.debug("Expanded environment variables in configuration")

    try:
        config = _build_config_from_dict(config_data)
        _validate_config(config)
    except (InvalidConfigurationError, TypeError, ValueError, AttributeError) as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        )

    logger.info(f"Successfully loaded and validated configuration from {config_path}")
    return config


def _parse_bool(value: Any) -> bool:
    # Env var expansion turns booleans into strings
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _build_config_from_dict(config_data: Dict[str, Any]) -> MargayConfig:
    """
    Build MargayConfig from dictionary loaded from YAML.

    Merges user configuration with defaults. Every section is optional.

    Args:
        config_data: Dictionary loaded from YAML file

    Returns:
        MargayConfig: Configuration object
    """
    default_config = get_default_config()

    tree_data = config_data.get('tree') or {}
    tree = TreeConfig(
        depth=int(tree_data.get('depth', default_config.tree.depth)),
        history_size=int(tree_data.get('history_size', default_config.tree.history_size)),
        hash_function=str(tree_data.get('hash_function', default_config.tree.hash_function)),
    )

    storage_data = config_data.get('storage') or {}
    storage = StorageConfig(
        state_file=os.path.expanduser(
            storage_data.get('state_file', default_config.storage.state_file)
        ),
        backup_count=int(storage_data.get('backup_count', default_config.storage.backup_count)),
    )

    signing_data = config_data.get('signing') or {}
    signing = SigningConfig(
        enabled=_parse_bool(signing_data.get('enabled', default_config.signing.enabled)),
        private_key_path=os.path.expanduser(
            signing_data.get('private_key_path', default_config.signing.private_key_path)
        ),
        signing_backend=signing_data.get(
            'signing_backend', default_config.signing.signing_backend
        ),
    )

    logging_data = config_data.get('logging') or {}
    logging = LoggingConfig(
        level=logging_data.get('level', default_config.logging.level),
        file=logging_data.get('file', default_config.logging.file),
        format=logging_data.get('format', default_config.logging.format),
    )

    return MargayConfig(
        storage=storage,
        tree=tree,
        signing=signing,
        logging=logging,
    )


def _validate_config(config: MargayConfig) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration to validate

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    if not 1 <= config.tree.depth < MAX_DEPTH:
        logger.error(f"Configuration validation failed: tree depth {config.tree.depth} out of range")
        raise InvalidConfigurationError(
            f"tree depth must satisfy 1 <= depth < {MAX_DEPTH}, got {config.tree.depth}"
        )
    if config.tree.history_size < 1:
        raise InvalidConfigurationError(
            f"tree history_size must be at least 1, got {config.tree.history_size}"
        )
    valid_hash_functions = available_hash_functions()
    if config.tree.hash_function not in valid_hash_functions:
        raise InvalidConfigurationError(
            f"tree hash_function must be one of {valid_hash_functions}, "
            f"got '{config.tree.hash_function}'"
        )

    if not config.storage.state_file:
        logger.error("Configuration validation failed: state_file path cannot be empty")
        raise InvalidConfigurationError("state_file path cannot be empty")
    if config.storage.backup_count < 0:
        raise InvalidConfigurationError(
            f"backup_count cannot be negative, got {config.storage.backup_count}"
        )

    valid_signing_backends = ["software"]
    if config.signing.signing_backend not in valid_signing_backends:
        raise InvalidConfigurationError(
            f"signing_backend must be one of {valid_signing_backends}, "
            f"got '{config.signing.signing_backend}'"
        )
    if config.signing.enabled and not config.signing.private_key_path:
        raise InvalidConfigurationError(
            "private_key_path is required when signing is enabled"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.logging.level.upper() not in valid_log_levels:
        raise InvalidConfigurationError(
            f"logging level must be one of {valid_log_levels}, "
            f"got '{config.logging.level}'"
        )
    valid_log_formats = ["console", "json"]
    if config.logging.format not in valid_log_formats:
        raise InvalidConfigurationError(
            f"logging format must be one of {valid_log_formats}, "
            f"got '{config.logging.format}'"
        )
