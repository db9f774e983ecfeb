"""
Exception hierarchy for Margay Core.

All custom exceptions inherit from MargayError base class.
"""


class MargayError(Exception):
    """Base exception for all Margay Core errors."""
    pass


# Configuration Errors
class ConfigurationError(MargayError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass


class ConfigurationLoadError(ConfigurationError):
    """Raised when loading configuration fails."""
    pass


# Tree Errors
class TreeError(MargayError):
    """Base exception for incremental Merkle tree errors."""
    pass


class InvalidTreeConfigurationError(TreeError, ConfigurationError):
    """Raised when a tree is constructed with invalid parameters."""
    pass


class InvalidDepthError(InvalidTreeConfigurationError):
    """Raised when the tree depth is outside [1, 32)."""

    def __init__(self, depth):
        self.depth = depth
        super().__init__(f"Invalid depth {depth!r}: depth must satisfy 1 <= depth < 32")


class InvalidHistorySizeError(InvalidTreeConfigurationError):
    """Raised when the root history size is smaller than 1."""

    def __init__(self, history_size):
        self.history_size = history_size
        super().__init__(
            f"Invalid history size {history_size!r}: history size must be at least 1"
        )


class TreeFullError(TreeError):
    """
    Raised when inserting into a tree whose capacity is exhausted.

    Attributes:
        depth: Depth of the full tree
        next_index: Index the rejected leaf would have occupied
    """

    def __init__(self, depth: int, next_index: int):
        self.depth = depth
        self.next_index = next_index
        super().__init__(
            f"Merkle tree is full: depth={depth}, next_index={next_index}, "
            f"capacity={2 ** depth}"
        )


class ZeroLevelOutOfRangeError(TreeError, IndexError):
    """Raised when a zero value is requested for a level outside the table."""

    def __init__(self, level, max_depth: int):
        self.level = level
        self.max_depth = max_depth
        super().__init__(f"Zero level {level!r} out of range [0, {max_depth})")


class InvalidLeafError(TreeError, ValueError):
    """Raised when a leaf cannot be converted to a 32-byte digest."""
    pass


class InvalidTreeStateError(TreeError):
    """Raised when persisted tree state is inconsistent or malformed."""
    pass


# Hash Function Errors
class HashFunctionError(MargayError):
    """Base exception for compression function errors."""
    pass


class UnknownHashFunctionError(HashFunctionError):
    """Raised when a hash function name is not registered."""
    pass


# Storage and Persistence Errors
class StorageError(MargayError):
    """Base exception for storage-related errors."""
    pass


class StateWriteError(StorageError):
    """Raised when writing tree state to disk fails."""
    pass


class StateReadError(StorageError):
    """Raised when reading tree state from disk fails."""
    pass


# Signing Errors
class SigningError(MargayError):
    """Base exception for root checkpoint signing errors."""
    pass


class SigningKeyError(SigningError):
    """Raised when a signing key cannot be loaded or is of the wrong type."""
    pass
