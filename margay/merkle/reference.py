"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Off-line reference construction of fixed-depth Merkle roots.

Builds every level of the tree from the full leaf list, padding each level's
missing right-hand nodes with the zero value of that level. The result must
match the incremental tree root for the same leaves, depth and compression
function; tests and the ``margay tree verify`` command use it to cross-check
the incremental engine against a full rebuild.
"""

from typing import Iterable, List

from margay.exceptions import TreeFullError
from margay.logging_config import get_logger
from margay.merkle.hashing import resolve_hash_function, to_digest
from margay.merkle.tree import HasherInput, LeafInput, validate_depth
from margay.merkle.zeros import zero_table_for

logger = get_logger(__name__)


class ReferenceTree:
    """
    Dense Merkle tree rebuilt from scratch for a list of leaves.

    The tree is stored as a list of levels, where ``levels[0]`` holds the
    leaves and ``levels[depth]`` holds the single root.

    Example:
        >>> ref = ReferenceTree(depth=3).build([12, 34, 123])
        >>> ref.get_root() == compute_reference_root([12, 34, 123], depth=3)
        True
    """

    def __init__(self, depth: int, hasher: HasherInput = None):
        validate_depth(depth)
        self.depth = depth
        self._hasher = resolve_hash_function(hasher)
        self._zeros = zero_table_for(self._hasher)
        self.leaves: List[bytes] = []
        self.levels: List[List[bytes]] = []

    def build(self, leaves: Iterable[LeafInput]) -> "ReferenceTree":
        """
        Build all levels for ``leaves``.

        Returns:
            Self for method chaining

        Raises:
            InvalidLeafError: If a leaf cannot be converted to a digest
            TreeFullError: If there are more than 2**depth leaves
        """
        self.leaves = [to_digest(leaf) for leaf in leaves]
        if len(self.leaves) > 2 ** self.depth:
            raise TreeFullError(self.depth, 2 ** self.depth)

        self.levels = [self.leaves]
        current_level = self.leaves

        for level in range(self.depth):
            next_level = []

            # Process pairs of nodes
            for i in range(0, len(current_level), 2):
                left = current_level[i]

                # Missing right sibling is an empty subtree of this height
                if i + 1 < len(current_level):
                    right = current_level[i + 1]
                else:
                    right = self._zeros.zero(level)

                next_level.append(self._hasher.hash_pair(left, right))

            self.levels.append(next_level)
            current_level = next_level

        logger.debug(f"Built reference tree of depth {self.depth} with {len(self.leaves)} leaves")
        return self

    def get_root(self) -> bytes:
        """
        Root of the built tree.

        With no leaves this is ``zero(depth - 1)``, the same empty-tree root
        the incremental tree reports before its first insertion.
        """
        if not self.leaves:
            return self._zeros.zero(self.depth - 1)
        return self.levels[-1][0]


def compute_reference_root(
    leaves: Iterable[LeafInput],
    depth: int,
    hasher: HasherInput = None,
) -> bytes:
    """
    Root of a depth-``depth`` tree holding ``leaves``, computed densely.

    Args:
        leaves: Leaves in insertion order
        depth: Tree depth
        hasher: Compression function (default: sha256)

    Returns:
        Root digest
    """
    return ReferenceTree(depth, hasher).build(leaves).get_root()
