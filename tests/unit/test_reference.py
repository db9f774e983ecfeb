"""
Unit tests for the dense reference construction.
"""

import hashlib

import pytest

from margay.exceptions import InvalidDepthError, InvalidLeafError, TreeFullError
from margay.merkle.reference import ReferenceTree, compute_reference_root
from margay.merkle.tree import IncrementalMerkleTree
from margay.merkle.zeros import zero


def h(left: bytes, right: bytes) -> bytes:
    return hashlib.sha256(left + right).digest()


def leaf(n: int) -> bytes:
    return n.to_bytes(32, "big")


class TestReferenceTree:
    """Test the level-by-level rebuild."""

    def test_empty_leaves_give_empty_tree_root(self):
        assert compute_reference_root([], depth=6) == zero(5)

    def test_three_leaves_depth_two(self):
        a, b, c = leaf(1), leaf(2), leaf(3)
        expected = h(h(a, b), h(c, zero(0)))
        assert compute_reference_root([a, b, c], depth=2) == expected

    def test_levels_are_stored(self):
        ref = ReferenceTree(depth=3).build([1, 2, 3])

        assert len(ref.levels) == 4
        assert len(ref.levels[0]) == 3
        assert len(ref.levels[1]) == 2
        assert len(ref.levels[2]) == 1
        assert ref.levels[3] == [ref.get_root()]

    def test_build_returns_self(self):
        ref = ReferenceTree(depth=2)
        assert ref.build([1]) is ref

    def test_full_tree(self):
        leaves = [leaf(i) for i in range(4)]
        expected = h(h(leaves[0], leaves[1]), h(leaves[2], leaves[3]))
        assert compute_reference_root(leaves, depth=2) == expected

    def test_too_many_leaves_raises(self):
        with pytest.raises(TreeFullError) as exc_info:
            compute_reference_root(range(5), depth=2)
        assert exc_info.value.depth == 2
        assert exc_info.value.next_index == 4

    def test_invalid_leaf_raises(self):
        with pytest.raises(InvalidLeafError):
            compute_reference_root([1, b"short"], depth=3)

    def test_invalid_depth_raises(self):
        with pytest.raises(InvalidDepthError):
            ReferenceTree(depth=32)

    @pytest.mark.parametrize("count", [1, 2, 3, 7, 8, 13, 16])
    def test_matches_incremental_tree(self, count):
        leaves = [hashlib.sha256(bytes([i])).digest() for i in range(count)]
        tree = IncrementalMerkleTree(depth=4)
        tree.insert_many(leaves)
        assert compute_reference_root(leaves, depth=4) == tree.latest_root()

    def test_custom_hash_function(self):
        leaves = [1, 2, 3]
        tree = IncrementalMerkleTree(depth=3, hasher="sha3_256")
        tree.insert_many(leaves)
        assert compute_reference_root(leaves, 3, "sha3_256") == tree.latest_root()
        assert compute_reference_root(leaves, 3) != tree.latest_root()
