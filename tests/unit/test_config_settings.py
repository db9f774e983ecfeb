"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Unit tests for configuration management.

Tests configuration loading, environment variable expansion and validation.
"""

import os
from pathlib import Path

import pytest

from margay.config.settings import (
    LoggingConfig,
    MargayConfig,
    SigningConfig,
    StorageConfig,
    TreeConfig,
    _expand_env_vars,
    _validate_config,
    get_default_config,
    get_default_config_path,
    load_config,
)
from margay.exceptions import ConfigurationError, InvalidConfigurationError


class TestConfigurationDataclasses:
    """Test configuration dataclass structures."""

    def test_tree_config_defaults(self):
        config = TreeConfig()
        assert config.depth == 20
        assert config.history_size == 30
        assert config.hash_function == "sha256"

    def test_signing_config_defaults(self):
        config = SigningConfig()
        assert config.enabled is False
        assert config.signing_backend == "software"

    def test_logging_config_defaults(self):
        config = LoggingConfig()
        assert config.level == "WARNING"
        assert config.format == "console"

    def test_default_config(self):
        config = get_default_config()
        assert isinstance(config, MargayConfig)
        assert config.storage.state_file.endswith(os.path.join(".margay", "tree_state.json"))
        assert config.storage.backup_count == 3
        assert config.tree == TreeConfig()

    def test_default_config_path(self):
        assert get_default_config_path() == os.path.expanduser("~/.margay/config.yaml")


class TestConfigurationLoading:
    """Test configuration loading from YAML files."""

    def test_missing_file_returns_defaults(self, temp_dir: Path):
        config = load_config(str(temp_dir / "missing.yaml"))
        assert config == get_default_config()

    def test_empty_file_returns_defaults(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == get_default_config()

    def test_load_sample_config(self, sample_config_path: Path, temp_dir: Path):
        config = load_config(str(sample_config_path))

        assert config.tree.depth == 4
        assert config.tree.history_size == 3
        assert config.storage.state_file == f"{temp_dir}/tree_state.json"
        assert config.storage.backup_count == 2
        assert config.logging.format == "json"
        assert config.signing.enabled is False

    def test_partial_sections_merge_with_defaults(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text("tree:\n  depth: 12\n")

        config = load_config(str(path))
        assert config.tree.depth == 12
        assert config.tree.history_size == 30
        assert config.storage.backup_count == 3

    def test_environment_variables_expanded(self, temp_dir: Path, monkeypatch):
        monkeypatch.setenv("MARGAY_TEST_DEPTH", "9")
        monkeypatch.setenv("MARGAY_TEST_SIGNING", "true")
        path = temp_dir / "config.yaml"
        path.write_text(
            "tree:\n"
            "  depth: ${MARGAY_TEST_DEPTH}\n"
            "  history_size: ${MARGAY_TEST_UNSET_HISTORY:7}\n"
            "signing:\n"
            "  enabled: ${MARGAY_TEST_SIGNING}\n"
            f"  private_key_path: {temp_dir}/key.pem\n"
        )

        config = load_config(str(path))
        assert config.tree.depth == 9
        assert config.tree.history_size == 7
        assert config.signing.enabled is True

    def test_invalid_yaml_raises(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text("tree: [unclosed")
        with pytest.raises(InvalidConfigurationError, match="parse YAML"):
            load_config(str(path))

    def test_non_mapping_raises(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(InvalidConfigurationError):
            load_config(str(path))

    def test_non_numeric_depth_raises(self, temp_dir: Path):
        path = temp_dir / "config.yaml"
        path.write_text("tree:\n  depth: deep\n")
        with pytest.raises(InvalidConfigurationError):
            load_config(str(path))

    @pytest.mark.parametrize("content", [
        "tree:\n  depth: 0\n",
        "tree:\n  depth: 32\n",
        "tree:\n  history_size: 0\n",
        "tree:\n  hash_function: md5\n",
        "storage:\n  state_file: ''\n",
        "storage:\n  backup_count: -1\n",
        "signing:\n  signing_backend: hsm\n",
        "signing:\n  enabled: true\n  private_key_path: ''\n",
        "logging:\n  level: LOUD\n",
        "logging:\n  format: xml\n",
    ])
    def test_invalid_values_raise(self, temp_dir: Path, content):
        path = temp_dir / "config.yaml"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            load_config(str(path))


class TestExpandEnvVars:
    """Test ${VAR} and ${VAR:default} expansion."""

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("MARGAY_TEST_HOME", "/srv/margay")
        data = {"a": ["${MARGAY_TEST_HOME}/x", 3], "b": {"c": "${MARGAY_TEST_MISSING:fallback}"}}

        assert _expand_env_vars(data) == {"a": ["/srv/margay/x", 3], "b": {"c": "fallback"}}

    def test_unset_without_default_is_empty(self, monkeypatch):
        monkeypatch.delenv("MARGAY_TEST_MISSING", raising=False)
        assert _expand_env_vars("x${MARGAY_TEST_MISSING}y") == "xy"


class TestValidateConfig:
    """Test direct validation of configuration objects."""

    def test_default_config_is_valid(self):
        _validate_config(get_default_config())

    def test_empty_state_file_rejected(self):
        config = get_default_config()
        config.storage = StorageConfig(state_file="")
        with pytest.raises(InvalidConfigurationError, match="state_file"):
            _validate_config(config)
