"""
Unit tests for structured logging configuration.
"""

import json
import logging
from pathlib import Path

import pytest

from margay.exceptions import TreeFullError
from margay.logging_config import (
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    log_capacity_exhausted,
    log_checkpoint_signature,
    log_leaf_insertion,
    log_state_persisted,
    set_correlation_id,
    setup_logging,
)
from margay.merkle.tree import IncrementalMerkleTree


def read_entries(log_file: Path):
    return [json.loads(line) for line in log_file.read_text().splitlines() if line]


class TestLoggingConfiguration:
    """Test structured logging configuration functionality."""

    def test_setup_logging_with_level(self):
        setup_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_json_format(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        get_logger("test").info("test_message", key="value")

        entry = read_entries(log_file)[0]
        assert entry["event"] == "test_message"
        assert entry["key"] == "value"
        assert entry["logger"] == "margay.test"
        assert "timestamp" in entry
        assert entry["level"] == "info"

    def test_setup_logging_human_format(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=False)

        get_logger("test").info("test_message", key="value")

        content = log_file.read_text()
        assert "test_message" in content
        assert "key" in content

    def test_level_filters_messages(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="WARNING", log_file=log_file, json_format=True)

        logger = get_logger("test")
        logger.info("hidden")
        logger.warning("shown")

        assert [entry["event"] for entry in read_entries(log_file)] == ["shown"]

    def test_logger_name_prefix_not_duplicated(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        get_logger("margay.merkle.tree").info("named")
        assert read_entries(log_file)[0]["logger"] == "margay.merkle.tree"


class TestCorrelationId:
    """Test correlation ID context management."""

    def test_set_and_clear(self):
        clear_correlation_id()
        assert get_correlation_id() is None

        assert set_correlation_id("batch-1") == "batch-1"
        assert get_correlation_id() == "batch-1"

        clear_correlation_id()
        assert get_correlation_id() is None

    def test_auto_generation(self):
        correlation_id = set_correlation_id()
        assert correlation_id
        assert get_correlation_id() == correlation_id
        clear_correlation_id()

    def test_correlation_id_in_logs(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        set_correlation_id("batch-123")
        get_logger("test").info("test_message")
        clear_correlation_id()

        assert read_entries(log_file)[0]["correlation_id"] == "batch-123"


class TestLogHelpers:
    """Test the event-specific logging helpers."""

    def test_log_leaf_insertion(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="DEBUG", log_file=log_file, json_format=True)

        log_leaf_insertion(get_logger("test"), leaf_index=4, merkle_root="ab" * 32, root_index=2)

        entry = read_entries(log_file)[0]
        assert entry["event_type"] == "leaf_insertion"
        assert entry["leaf_index"] == 4
        assert entry["root_index"] == 2
        assert entry["level"] == "debug"

    def test_log_capacity_exhausted(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        log_capacity_exhausted(get_logger("test"), depth=3, next_index=8, requested=2)

        entry = read_entries(log_file)[0]
        assert entry["event_type"] == "capacity_exhausted"
        assert entry["capacity"] == 8
        assert entry["requested"] == 2
        assert entry["level"] == "warning"

    def test_log_state_persisted(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        log_state_persisted(
            get_logger("test"), path="/tmp/state.json", leaf_count=3,
            merkle_root="cd" * 32, duration_ms=1.5,
        )

        entry = read_entries(log_file)[0]
        assert entry["event_type"] == "state_persisted"
        assert entry["leaf_count"] == 3
        assert entry["duration_ms"] == 1.5

    def test_log_checkpoint_signature(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="INFO", log_file=log_file, json_format=True)

        log_checkpoint_signature(
            get_logger("test"), merkle_root="ef" * 32, leaf_count=9,
            signing_backend="software", duration_ms=0.8, key_id="k1",
        )

        entry = read_entries(log_file)[0]
        assert entry["event_type"] == "checkpoint_signature"
        assert entry["signing_backend"] == "software"
        assert entry["key_id"] == "k1"

    def test_full_tree_logs_capacity_warning(self, temp_dir: Path):
        log_file = temp_dir / "test.log"
        setup_logging(level="WARNING", log_file=log_file, json_format=True)

        tree = IncrementalMerkleTree(depth=1)
        tree.insert_many([1, 2])
        with pytest.raises(TreeFullError):
            tree.insert(3)

        entries = read_entries(log_file)
        assert entries[-1]["event_type"] == "capacity_exhausted"
        assert entries[-1]["depth"] == 1
        assert entries[-1]["next_index"] == 2
