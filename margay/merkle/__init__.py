"""
Incremental Merkle tree with root history.

This module provides the zero table, the incremental tree engine, leaf
insertion notifications, a dense reference construction for cross-checks,
and signing of root checkpoints.
"""

from margay.merkle.events import LeafEventDispatcher, LeafInserted
from margay.merkle.hashing import (
    DIGEST_SIZE,
    EMPTY_DIGEST,
    CompressionFunction,
    available_hash_functions,
    get_hash_function,
    register_hash_function,
    to_digest,
)
from margay.merkle.key_management import KeyManager, generate_signing_key
from margay.merkle.reference import ReferenceTree, compute_reference_root
from margay.merkle.signer import (
    CheckpointSigner,
    RootCheckpoint,
    SignedCheckpoint,
    SoftwareSigner,
    checkpoint_from_tree,
    create_checkpoint_signer,
    verify_checkpoint_signature,
)
from margay.merkle.tree import IncrementalMerkleTree, InsertionResult, TreeState
from margay.merkle.zeros import MAX_DEPTH, ZeroTable, zero, zero_table_for

__all__ = [
    "DIGEST_SIZE",
    "EMPTY_DIGEST",
    "MAX_DEPTH",
    "CheckpointSigner",
    "CompressionFunction",
    "IncrementalMerkleTree",
    "InsertionResult",
    "KeyManager",
    "LeafEventDispatcher",
    "LeafInserted",
    "ReferenceTree",
    "RootCheckpoint",
    "SignedCheckpoint",
    "SoftwareSigner",
    "TreeState",
    "ZeroTable",
    "available_hash_functions",
    "checkpoint_from_tree",
    "compute_reference_root",
    "create_checkpoint_signer",
    "generate_signing_key",
    "get_hash_function",
    "register_hash_function",
    "to_digest",
    "verify_checkpoint_signature",
    "zero",
    "zero_table_for",
]
