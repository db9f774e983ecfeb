"""
Unit tests for exception hierarchy.
"""

import pytest

from margay.exceptions import (
    ConfigurationError,
    ConfigurationLoadError,
    HashFunctionError,
    InvalidConfigurationError,
    InvalidDepthError,
    InvalidHistorySizeError,
    InvalidLeafError,
    InvalidTreeConfigurationError,
    InvalidTreeStateError,
    MargayError,
    SigningError,
    SigningKeyError,
    StateReadError,
    StateWriteError,
    StorageError,
    TreeError,
    TreeFullError,
    UnknownHashFunctionError,
    ZeroLevelOutOfRangeError,
)


class TestExceptionHierarchy:
    """Test that exception hierarchy is correctly defined."""

    def test_base_exception(self):
        error = MargayError("test error")
        assert isinstance(error, Exception)
        assert str(error) == "test error"

    @pytest.mark.parametrize("exc_class, parent", [
        (ConfigurationError, MargayError),
        (InvalidConfigurationError, ConfigurationError),
        (ConfigurationLoadError, ConfigurationError),
        (TreeError, MargayError),
        (InvalidTreeConfigurationError, TreeError),
        (InvalidTreeConfigurationError, ConfigurationError),
        (InvalidDepthError, InvalidTreeConfigurationError),
        (InvalidHistorySizeError, InvalidTreeConfigurationError),
        (TreeFullError, TreeError),
        (ZeroLevelOutOfRangeError, TreeError),
        (ZeroLevelOutOfRangeError, IndexError),
        (InvalidLeafError, TreeError),
        (InvalidLeafError, ValueError),
        (InvalidTreeStateError, TreeError),
        (HashFunctionError, MargayError),
        (UnknownHashFunctionError, HashFunctionError),
        (StorageError, MargayError),
        (StateWriteError, StorageError),
        (StateReadError, StorageError),
        (SigningError, MargayError),
        (SigningKeyError, SigningError),
    ])
    def test_inheritance(self, exc_class, parent):
        assert issubclass(exc_class, parent)


class TestExceptionAttributes:
    """Test structured attributes carried by tree errors."""

    def test_tree_full_error(self):
        error = TreeFullError(depth=3, next_index=8)
        assert error.depth == 3
        assert error.next_index == 8
        assert str(error) == "Merkle tree is full: depth=3, next_index=8, capacity=8"

    def test_invalid_depth_error(self):
        error = InvalidDepthError(32)
        assert error.depth == 32
        assert "1 <= depth < 32" in str(error)

    def test_invalid_history_size_error(self):
        error = InvalidHistorySizeError(0)
        assert error.history_size == 0
        assert "at least 1" in str(error)

    def test_zero_level_out_of_range_error(self):
        error = ZeroLevelOutOfRangeError(-1, 32)
        assert error.level == -1
        assert error.max_depth == 32
        assert "[0, 32)" in str(error)
