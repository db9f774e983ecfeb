"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Incremental Merkle tree with root history.

This module implements an append-only, fixed-depth binary Merkle tree that
keeps O(depth) state. It supports:
- Leaf insertion in O(depth) using the filled-subtree cache
- Zero-table padding of branches that have no leaves yet
- A circular buffer of the last ``history_size`` roots
- Known-root lookups against that history window
- All-or-nothing bulk insertion
- State export and restore for persistence
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Union

from margay.exceptions import (
    HashFunctionError,
    InvalidDepthError,
    InvalidHistorySizeError,
    InvalidLeafError,
    InvalidTreeStateError,
    TreeFullError,
)
from margay.logging_config import get_logger, log_capacity_exhausted, log_leaf_insertion
from margay.merkle.events import LeafEventDispatcher, LeafInserted, LeafObserver
from margay.merkle.hashing import (
    DIGEST_SIZE,
    EMPTY_DIGEST,
    CallableCompression,
    CompressionFunction,
    resolve_hash_function,
    shadows_registered_name,
    to_digest,
)
from margay.merkle.zeros import MAX_DEPTH, zero_table_for

logger = get_logger(__name__)


LeafInput = Union[bytes, bytearray, int, str]
HasherInput = Union[None, str, CompressionFunction, Callable[[bytes, bytes], bytes]]


def validate_depth(depth: Any) -> int:
    """
    Check that depth satisfies 1 <= depth < MAX_DEPTH.

    Raises:
        InvalidDepthError: If depth is not an int in range
    """
    if isinstance(depth, bool) or not isinstance(depth, int) or not 1 <= depth < MAX_DEPTH:
        raise InvalidDepthError(depth)
    return depth


def validate_history_size(history_size: Any) -> int:
    """
    Check that the root history holds at least one root.

    Raises:
        InvalidHistorySizeError: If history_size is not an int >= 1
    """
    if isinstance(history_size, bool) or not isinstance(history_size, int) or history_size < 1:
        raise InvalidHistorySizeError(history_size)
    return history_size


@dataclass
class TreeState:
    """
    All mutable state of an incremental Merkle tree.

    Attributes:
        depth: Number of levels below the root
        history_size: Capacity of the root history buffer
        hash_function: Name of the compression function
        filled_subtrees: Cached left digest per level (``depth`` entries)
        next_index: Index the next inserted leaf will occupy
        current_root_index: History slot holding the latest root
        roots: Root history buffer (``history_size`` entries)
    """
    depth: int
    history_size: int
    hash_function: str
    filled_subtrees: List[bytes] = field(default_factory=list)
    next_index: int = 0
    current_root_index: int = 0
    roots: List[bytes] = field(default_factory=list)

    def copy(self) -> "TreeState":
        return TreeState(
            depth=self.depth,
            history_size=self.history_size,
            hash_function=self.hash_function,
            filled_subtrees=list(self.filled_subtrees),
            next_index=self.next_index,
            current_root_index=self.current_root_index,
            roots=list(self.roots),
        )

    def validate(self) -> None:
        """
        Check the structural invariants of the state.

        Raises:
            InvalidTreeStateError: If any invariant is violated
        """
        try:
            validate_depth(self.depth)
            validate_history_size(self.history_size)
        except (InvalidDepthError, InvalidHistorySizeError) as e:
            raise InvalidTreeStateError(str(e))

        if len(self.filled_subtrees) != self.depth:
            raise InvalidTreeStateError(
                f"filled_subtrees has {len(self.filled_subtrees)} entries, expected {self.depth}"
            )
        if len(self.roots) != self.history_size:
            raise InvalidTreeStateError(
                f"roots has {len(self.roots)} entries, expected {self.history_size}"
            )
        for name in ("next_index", "current_root_index"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidTreeStateError(f"{name} must be an integer, got {value!r}")
        if not 0 <= self.next_index <= 2 ** self.depth:
            raise InvalidTreeStateError(
                f"next_index {self.next_index} out of range [0, {2 ** self.depth}]"
            )
        if not 0 <= self.current_root_index < self.history_size:
            raise InvalidTreeStateError(
                f"current_root_index {self.current_root_index} out of range "
                f"[0, {self.history_size})"
            )
        for digest in list(self.filled_subtrees) + list(self.roots):
            if not isinstance(digest, bytes) or len(digest) != DIGEST_SIZE:
                raise InvalidTreeStateError(f"State contains a malformed digest: {digest!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dictionary (digests as hex)."""
        return {
            "depth": self.depth,
            "history_size": self.history_size,
            "hash_function": self.hash_function,
            "filled_subtrees": [d.hex() for d in self.filled_subtrees],
            "next_index": self.next_index,
            "current_root_index": self.current_root_index,
            "roots": [d.hex() for d in self.roots],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TreeState":
        """
        Deserialize from the dictionary produced by ``to_dict``.

        Raises:
            InvalidTreeStateError: If fields are missing or malformed
        """
        try:
            state = cls(
                depth=data["depth"],
                history_size=data["history_size"],
                hash_function=data["hash_function"],
                filled_subtrees=[bytes.fromhex(d) for d in data["filled_subtrees"]],
                next_index=data["next_index"],
                current_root_index=data["current_root_index"],
                roots=[bytes.fromhex(d) for d in data["roots"]],
            )
        except KeyError as e:
            raise InvalidTreeStateError(f"Tree state is missing field {e}")
        except (TypeError, ValueError) as e:
            raise InvalidTreeStateError(f"Tree state contains malformed values: {e}")

        state.validate()
        return state


class InsertionResult(NamedTuple):
    """Index assigned to an inserted leaf and the root after the insertion."""
    index: int
    root: bytes


class IncrementalMerkleTree:
    """
    Fixed-depth, append-only Merkle tree keeping only O(depth) state.

    At every level at most one node is waiting for its right sibling. The
    tree caches that node's digest in ``filled_subtrees``; a new leaf only
    needs, per level, either the cached left sibling (odd index) or the zero
    value for that level (even index).

    All state access is serialized by one re-entrant lock, so insertions
    never interleave and readers never observe a half-applied insertion.

    Example:
        >>> tree = IncrementalMerkleTree(depth=20, history_size=30)
        >>> index, root = tree.insert(12)
        >>> tree.latest_root() == root
        True
        >>> tree.is_known_root(root)
        True
    """

    DEFAULT_HISTORY_SIZE = 30

    def __init__(
        self,
        depth: int,
        history_size: int = DEFAULT_HISTORY_SIZE,
        hasher: HasherInput = None,
    ):
        """
        Create an empty tree.

        Args:
            depth: Number of levels, 1 <= depth < 32
            history_size: Number of roots retained, >= 1
            hasher: Compression function, registry name, or callable (default: sha256)

        Raises:
            InvalidDepthError: If depth is out of range
            InvalidHistorySizeError: If history_size < 1
            UnknownHashFunctionError: If hasher names an unregistered function
        """
        validate_depth(depth)
        validate_history_size(history_size)

        self._hasher = resolve_hash_function(hasher)
        self._zeros = zero_table_for(self._hasher)
        self._lock = threading.RLock()
        self._events = LeafEventDispatcher()

        roots = [EMPTY_DIGEST] * history_size
        roots[0] = self._zeros.zero(depth - 1)

        self._state = TreeState(
            depth=depth,
            history_size=history_size,
            hash_function=self._hasher.name,
            filled_subtrees=[self._zeros.zero(level) for level in range(depth)],
            next_index=0,
            current_root_index=0,
            roots=roots,
        )

        logger.debug(
            f"Initialized IncrementalMerkleTree with depth={depth}, "
            f"history_size={history_size}, hash_function={self._hasher.name}"
        )

    @classmethod
    def from_config(cls, tree_config) -> "IncrementalMerkleTree":
        """
        Build an empty tree from a TreeConfig section.

        Args:
            tree_config: Object with depth, history_size and hash_function
        """
        return cls(
            depth=tree_config.depth,
            history_size=tree_config.history_size,
            hasher=tree_config.hash_function,
        )

    @classmethod
    def from_state(cls, state: TreeState, hasher: HasherInput = None) -> "IncrementalMerkleTree":
        """
        Restore a tree from previously exported state.

        Args:
            state: State produced by ``export_state`` or loaded from storage
            hasher: Compression function; defaults to the one named in the state.
                State only records the hasher's name, so a caller-supplied
                hasher must carry a unique explicit name.

        Raises:
            InvalidTreeStateError: If the state is inconsistent, was produced
                with a different compression function, or the supplied hasher
                cannot be matched to the recorded name
        """
        state.validate()

        resolved = resolve_hash_function(hasher if hasher is not None else state.hash_function)
        if resolved.name != state.hash_function:
            raise InvalidTreeStateError(
                f"State was built with hash function '{state.hash_function}', "
                f"got '{resolved.name}'"
            )
        if isinstance(resolved, CallableCompression) and resolved.is_anonymous:
            raise InvalidTreeStateError(
                f"Cannot restore state with anonymous hash function '{resolved.name}'; "
                "give the hasher an explicit name"
            )
        if shadows_registered_name(resolved):
            raise InvalidTreeStateError(
                f"Hash function '{resolved.name}' is not the registered '{resolved.name}'"
            )

        tree = cls(state.depth, state.history_size, resolved)
        tree._state = state.copy()

        logger.info(
            f"Restored tree state: depth={state.depth}, next_index={state.next_index}, "
            f"current_root_index={state.current_root_index}"
        )
        return tree

    # Configuration

    @property
    def depth(self) -> int:
        return self._state.depth

    @property
    def history_size(self) -> int:
        return self._state.history_size

    @property
    def hasher(self) -> CompressionFunction:
        return self._hasher

    @property
    def hash_function(self) -> str:
        return self._hasher.name

    @property
    def capacity(self) -> int:
        """Maximum number of leaves, 2**depth."""
        return 2 ** self._state.depth

    # State queries

    @property
    def next_index(self) -> int:
        with self._lock:
            return self._state.next_index

    @property
    def leaf_count(self) -> int:
        return self.next_index

    @property
    def current_root_index(self) -> int:
        with self._lock:
            return self._state.current_root_index

    @property
    def is_full(self) -> bool:
        with self._lock:
            return self._state.next_index >= self.capacity

    @property
    def filled_subtrees(self) -> List[bytes]:
        """Copy of the filled-subtree cache, indexed by level."""
        with self._lock:
            return list(self._state.filled_subtrees)

    @property
    def roots(self) -> List[bytes]:
        """Copy of the root history buffer, indexed by slot."""
        with self._lock:
            return list(self._state.roots)

    def zeros(self, level: int) -> bytes:
        """
        Empty-subtree root of height ``level`` for this tree's hash function.

        Raises:
            ZeroLevelOutOfRangeError: If level is outside [0, 32)
        """
        return self._zeros.zero(level)

    def latest_root(self) -> bytes:
        """Most recently produced root (the empty-tree root before any insertion)."""
        with self._lock:
            return self._state.roots[self._state.current_root_index]

    def get_last_root(self) -> bytes:
        return self.latest_root()

    def is_known_root(self, root: LeafInput) -> bool:
        """
        Check whether ``root`` is one of the roots in the history window.

        The all-zero digest is never a known root, and values that cannot be
        parsed as a digest are simply unknown.
        """
        try:
            digest = to_digest(root)
        except InvalidLeafError:
            return False

        if digest == EMPTY_DIGEST:
            return False

        with self._lock:
            state = self._state
            slot = state.current_root_index
            for _ in range(state.history_size):
                if state.roots[slot] == digest:
                    return True
                slot = (slot - 1) % state.history_size
        return False

    def export_state(self) -> TreeState:
        """Snapshot-consistent copy of the tree state."""
        with self._lock:
            return self._state.copy()

    # Hashing

    def hash_left_right(self, left: LeafInput, right: LeafInput) -> bytes:
        """
        Apply the compression function to two digests.

        Raises:
            InvalidLeafError: If either input is not a digest
            HashFunctionError: If the compression function misbehaves
        """
        return self._hash(to_digest(left), to_digest(right))

    def _hash(self, left: bytes, right: bytes) -> bytes:
        result = self._hasher.hash_pair(left, right)
        if not isinstance(result, bytes) or len(result) != DIGEST_SIZE:
            raise HashFunctionError(
                f"Hash function '{self._hasher.name}' returned {result!r}, "
                f"expected {DIGEST_SIZE} bytes"
            )
        return result

    # Insertion

    def insert(self, leaf: LeafInput) -> InsertionResult:
        """
        Insert one leaf.

        Args:
            leaf: 32-byte digest, integer below 2**256, or 64-digit hex string

        Returns:
            InsertionResult(index, root)

        Raises:
            InvalidLeafError: If the leaf cannot be converted to a digest
            TreeFullError: If all 2**depth leaves are already used
        """
        return self.insert_many([leaf])[0]

    def insert_many(self, leaves: Iterable[LeafInput]) -> List[InsertionResult]:
        """
        Insert several leaves in order, all or nothing.

        Every leaf is converted and the remaining capacity is checked before
        any state changes. The level walks run against a private copy of the
        cache, which is committed only after every root has been computed.

        Returns:
            One InsertionResult per leaf, in input order

        Raises:
            InvalidLeafError: If any leaf cannot be converted
            TreeFullError: If the leaves do not all fit
        """
        digests = [to_digest(leaf) for leaf in leaves]
        if not digests:
            return []

        with self._lock:
            state = self._state

            if state.next_index + len(digests) > self.capacity:
                log_capacity_exhausted(
                    logger, state.depth, state.next_index, requested=len(digests)
                )
                # The first leaf that does not fit would occupy index 2**depth
                raise TreeFullError(state.depth, self.capacity)

            start_index = state.next_index
            cache = list(state.filled_subtrees)
            new_roots = [
                self._walk_levels(digest, start_index + offset, cache)
                for offset, digest in enumerate(digests)
            ]

            # Commit
            timestamp = datetime.now(timezone.utc)
            results = []
            events = []
            state.filled_subtrees = cache
            for offset, (digest, root) in enumerate(zip(digests, new_roots)):
                state.current_root_index = (state.current_root_index + 1) % state.history_size
                state.roots[state.current_root_index] = root
                state.next_index += 1

                results.append(InsertionResult(start_index + offset, root))
                events.append(LeafInserted(digest, start_index + offset, timestamp))
                log_leaf_insertion(
                    logger, start_index + offset, root.hex(), state.current_root_index
                )

        self._events.dispatch_all(events)
        return results

    def _walk_levels(self, leaf: bytes, index: int, cache: List[bytes]) -> bytes:
        """
        Compute the root after placing ``leaf`` at ``index``, updating ``cache``.

        At each level an even index opens a new pairing (the node becomes the
        cached left sibling, padded on the right with the zero value) and an
        odd index completes the pairing with the cached left sibling.
        """
        current_index = index
        current_hash = leaf

        for level in range(self._state.depth):
            if current_index % 2 == 0:
                left = current_hash
                right = self._zeros.zero(level)
                cache[level] = current_hash
            else:
                left = cache[level]
                right = current_hash

            current_hash = self._hash(left, right)
            current_index //= 2

        return current_hash

    # Observers

    def subscribe(self, observer: LeafObserver) -> None:
        """Register a callable receiving a LeafInserted for every inserted leaf."""
        self._events.subscribe(observer)

    def unsubscribe(self, observer: LeafObserver) -> None:
        self._events.unsubscribe(observer)

    def __len__(self) -> int:
        return self.next_index

    def __repr__(self) -> str:
        return (
            f"IncrementalMerkleTree(depth={self.depth}, history_size={self.history_size}, "
            f"hash_function={self.hash_function!r}, next_index={self.next_index})"
        )
