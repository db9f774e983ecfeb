"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Two-input compression functions for the incremental Merkle tree.

The tree treats the compression function as an opaque collaborator: it only
calls ``hash_pair(left, right)`` once per level and expects a 32-byte digest
back. Implementations are registered by name so that configuration files and
persisted state can refer to them.
"""

import hashlib
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Union

from margay.exceptions import InvalidLeafError, UnknownHashFunctionError
from margay.logging_config import get_logger

logger = get_logger(__name__)


DIGEST_SIZE = 32

# All-zero digest; the base input of the zero table and the value of
# history slots that have never been written.
EMPTY_DIGEST = bytes(DIGEST_SIZE)

DEFAULT_HASH_FUNCTION = "sha256"


class CompressionFunction(ABC):
    """
    Deterministic, pure function H(left, right) -> digest.

    Subclasses set ``name`` and implement ``hash_pair``. Both inputs and the
    output are 32-byte digests.
    """

    name: str = ""

    @abstractmethod
    def hash_pair(self, left: bytes, right: bytes) -> bytes:
        """
        Compress two child digests into their parent digest.

        Args:
            left: Left child digest
            right: Right child digest

        Returns:
            Parent digest (32 bytes)
        """
        pass

    def __call__(self, left: bytes, right: bytes) -> bytes:
        return self.hash_pair(left, right)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class Sha256Compression(CompressionFunction):
    """SHA-256 over the concatenation ``left || right``."""

    name = "sha256"

    def hash_pair(self, left: bytes, right: bytes) -> bytes:
        return hashlib.sha256(left + right).digest()


class Sha3Compression(CompressionFunction):
    """SHA3-256 over the concatenation ``left || right``."""

    name = "sha3_256"

    def hash_pair(self, left: bytes, right: bytes) -> bytes:
        return hashlib.sha3_256(left + right).digest()


class Blake2sCompression(CompressionFunction):
    """BLAKE2s (32-byte output) over the concatenation ``left || right``."""

    name = "blake2s"

    def hash_pair(self, left: bytes, right: bytes) -> bytes:
        return hashlib.blake2s(left + right).digest()


class CallableCompression(CompressionFunction):
    """
    Adapter for a plain ``func(left, right) -> bytes`` supplied by the caller.

    The name is what persisted state records, so it must identify the
    function uniquely. Lambdas get the anonymous name ``<lambda>``; pass an
    explicit ``name`` for any hasher whose state will be restored.

    Example:
        >>> hasher = CallableCompression(lambda l, r: my_hash(l + r), name="mine")
    """

    def __init__(self, func: Callable[[bytes, bytes], bytes], name: Optional[str] = None):
        self._func = func
        self.name = name or getattr(func, "__name__", "custom")

    def hash_pair(self, left: bytes, right: bytes) -> bytes:
        return self._func(left, right)

    @property
    def is_anonymous(self) -> bool:
        """True if the name was derived from a lambda or other unnamed callable."""
        return self.name.startswith("<")


_REGISTRY: Dict[str, CompressionFunction] = {}


def register_hash_function(hasher: CompressionFunction) -> None:
    """
    Register a compression function under its ``name``.

    Args:
        hasher: Compression function instance

    Raises:
        ValueError: If the hasher has no name
    """
    if not hasher.name:
        raise ValueError("Compression function must have a non-empty name")
    _REGISTRY[hasher.name] = hasher
    logger.debug(f"Registered compression function '{hasher.name}'")


def get_hash_function(name: str) -> CompressionFunction:
    """
    Look up a registered compression function by name.

    Raises:
        UnknownHashFunctionError: If no function is registered under ``name``
    """
    try:
        return _REGISTRY[name]
    except KeyError:
        raise UnknownHashFunctionError(
            f"Unknown hash function '{name}', expected one of {available_hash_functions()}"
        )


def available_hash_functions() -> List[str]:
    """Names of all registered compression functions, sorted."""
    return sorted(_REGISTRY)


def resolve_hash_function(
    hasher: Union[None, str, CompressionFunction, Callable[[bytes, bytes], bytes]],
) -> CompressionFunction:
    """
    Normalize the ``hasher`` argument accepted by tree constructors.

    ``None`` selects the default (SHA-256), a string is looked up in the
    registry, a CompressionFunction is returned as-is and any other callable
    is wrapped in a CallableCompression.
    """
    if hasher is None:
        return get_hash_function(DEFAULT_HASH_FUNCTION)
    if isinstance(hasher, CompressionFunction):
        return hasher
    if isinstance(hasher, str):
        return get_hash_function(hasher)
    if callable(hasher):
        return CallableCompression(hasher)
    raise UnknownHashFunctionError(f"Unsupported hash function handle: {hasher!r}")


def to_digest(value: Union[bytes, bytearray, int, str]) -> bytes:
    """
    Convert a leaf value to a 32-byte digest.

    Accepts a 32-byte ``bytes``/``bytearray``, a non-negative integer below
    2**256 (encoded big-endian) or a hex string of exactly 64 hex digits with
    an optional ``0x`` prefix.

    Raises:
        InvalidLeafError: If the value cannot be converted
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != DIGEST_SIZE:
            raise InvalidLeafError(
                f"Digest must be {DIGEST_SIZE} bytes, got {len(value)} bytes"
            )
        return bytes(value)

    # bool is an int subclass but never a meaningful leaf
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0 or value >= 2 ** (8 * DIGEST_SIZE):
            raise InvalidLeafError(f"Integer leaf {value} out of range [0, 2**256)")
        return value.to_bytes(DIGEST_SIZE, byteorder="big")

    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        if len(text) != DIGEST_SIZE * 2:
            raise InvalidLeafError(
                f"Hex digest must have {DIGEST_SIZE * 2} hex digits, got {len(text)}"
            )
        try:
            return bytes.fromhex(text)
        except ValueError:
            raise InvalidLeafError(f"Invalid hex digest: {value!r}")

    raise InvalidLeafError(f"Unsupported leaf type: {type(value).__name__}")


def digest_hex(digest: bytes) -> str:
    """Render a digest as ``0x``-prefixed lowercase hex."""
    return "0x" + digest.hex()


def shadows_registered_name(hasher: CompressionFunction) -> bool:
    """
    True if ``hasher`` uses a registered name but is a different kind of function.

    A fresh instance of a registered class (e.g. another ``Sha256Compression``)
    does not shadow; a ``CallableCompression`` named ``"sha256"`` does.
    """
    registered = _REGISTRY.get(hasher.name)
    return registered is not None and type(registered) is not type(hasher)


for _hasher in (Sha256Compression(), Sha3Compression(), Blake2sCompression()):
    _REGISTRY[_hasher.name] = _hasher
