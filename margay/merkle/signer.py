"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Root checkpoint signing with pluggable backend support.

A checkpoint states which root the tree had after how many leaves, and in
which history slot the root was stored. Checkpoints are signed with ECDSA
P-256 over a canonical JSON encoding so that third parties holding only the
public key can check a published root.

The signing backend is configured via the signing.signing_backend setting;
only the "software" backend (local PEM key file) ships with Margay Core.
"""

import json
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from margay.exceptions import SigningError, SigningKeyError
from margay.logging_config import get_logger, log_checkpoint_signature
from margay.merkle.key_management import KeyManager

logger = get_logger(__name__)


KEY_PASSPHRASE_ENV_VAR = "MARGAY_KEY_PASSPHRASE"


@dataclass(frozen=True)
class RootCheckpoint:
    """
    Statement of the tree root at a given leaf count.

    Attributes:
        root: Merkle root digest
        leaf_count: Number of leaves covered by the root
        root_index: History slot holding the root
        depth: Tree depth
        hash_function: Name of the compression function
        created_at: UTC time the checkpoint was taken
    """
    root: bytes
    leaf_count: int
    root_index: int
    depth: int
    hash_function: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root.hex(),
            "leaf_count": self.leaf_count,
            "root_index": self.root_index,
            "depth": self.depth,
            "hash_function": self.hash_function,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RootCheckpoint":
        return cls(
            root=bytes.fromhex(data["root"]),
            leaf_count=data["leaf_count"],
            root_index=data["root_index"],
            depth=data["depth"],
            hash_function=data["hash_function"],
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def to_signing_bytes(self) -> bytes:
        """Canonical encoding that is signed: sorted keys, no whitespace."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class SignedCheckpoint:
    """A checkpoint together with its ECDSA signature."""
    checkpoint: RootCheckpoint
    signature: bytes
    signing_backend: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checkpoint": self.checkpoint.to_dict(),
            "signature": self.signature.hex(),
            "signing_backend": self.signing_backend,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignedCheckpoint":
        return cls(
            checkpoint=RootCheckpoint.from_dict(data["checkpoint"]),
            signature=bytes.fromhex(data["signature"]),
            signing_backend=data["signing_backend"],
        )


def checkpoint_from_tree(tree) -> RootCheckpoint:
    """
    Take a checkpoint of the tree's latest root.

    Args:
        tree: IncrementalMerkleTree instance

    Returns:
        RootCheckpoint built from one consistent state snapshot
    """
    state = tree.export_state()
    return RootCheckpoint(
        root=state.roots[state.current_root_index],
        leaf_count=state.next_index,
        root_index=state.current_root_index,
        depth=state.depth,
        hash_function=state.hash_function,
        created_at=datetime.now(timezone.utc),
    )


class CheckpointSigner(ABC):
    """
    Abstract base class for root checkpoint signing.

    Implementations:
    - SoftwareSigner: Default implementation using local key files
    """

    @abstractmethod
    def sign_checkpoint(self, checkpoint: RootCheckpoint) -> SignedCheckpoint:
        """
        Sign checkpoint.

        Raises:
            SigningError: If signing fails
        """
        pass

    @abstractmethod
    def verify_checkpoint(self, signed: SignedCheckpoint) -> bool:
        """
        Verify a signed checkpoint against this signer's public key.

        Returns:
            True if signature is valid, False otherwise
        """
        pass

    @abstractmethod
    def get_public_key_pem(self) -> bytes:
        pass


class SoftwareSigner(CheckpointSigner):
    """
    Software-based checkpoint signer using a PEM key file.

    The private key can be encrypted with a passphrase, passed explicitly or
    read from the MARGAY_KEY_PASSPHRASE environment variable.

    Example:
        >>> signer = SoftwareSigner("/path/to/key.pem")
        >>> signed = signer.sign_checkpoint(checkpoint_from_tree(tree))
        >>> signer.verify_checkpoint(signed)
        True
    """

    backend_name = "software"

    def __init__(self, private_key_path: str, passphrase: Optional[str] = None):
        """
        Initialize signer with private key.

        Args:
            private_key_path: Path to ECDSA P-256 private key in PEM format
            passphrase: Optional passphrase for an encrypted key

        Raises:
            SigningKeyError: If the key file is missing, unreadable or not P-256
        """
        self.private_key_path = private_key_path

        try:
            self._private_key = self._load_private_key(passphrase)
            self._public_key = self._private_key.public_key()
            logger.info(f"Loaded ECDSA P-256 private key from {private_key_path}")
        except SigningKeyError as e:
            logger.error(f"Failed to load private key from {private_key_path}: {e}")
            raise

    def _load_private_key(self, passphrase: Optional[str]) -> ec.EllipticCurvePrivateKey:
        if passphrase is None:
            passphrase = os.environ.get(KEY_PASSPHRASE_ENV_VAR)
        return KeyManager().load_private_key(self.private_key_path, passphrase)

    def sign_checkpoint(self, checkpoint: RootCheckpoint) -> SignedCheckpoint:
        if len(checkpoint.root) != 32:
            raise SigningError(f"Checkpoint root must be 32 bytes, got {len(checkpoint.root)} bytes")

        start_time = time.monotonic()
        signature = self._private_key.sign(
            checkpoint.to_signing_bytes(),
            ec.ECDSA(hashes.SHA256())
        )
        duration_ms = (time.monotonic() - start_time) * 1000

        log_checkpoint_signature(
            logger,
            merkle_root=checkpoint.root.hex(),
            leaf_count=checkpoint.leaf_count,
            signing_backend=self.backend_name,
            duration_ms=duration_ms,
        )

        return SignedCheckpoint(
            checkpoint=checkpoint,
            signature=signature,
            signing_backend=self.backend_name,
        )

    def verify_checkpoint(self, signed: SignedCheckpoint) -> bool:
        return verify_checkpoint_signature(signed, self._public_key)

    def get_public_key_pem(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        )


def verify_checkpoint_signature(signed: SignedCheckpoint, public_key) -> bool:
    """
    Verify a signed checkpoint with a public key.

    Args:
        signed: Signed checkpoint
        public_key: EllipticCurvePublicKey or PEM-encoded public key bytes

    Returns:
        True if signature is valid, False otherwise
    """
    if isinstance(public_key, (bytes, bytearray)):
        public_key = serialization.load_pem_public_key(bytes(public_key), backend=default_backend())

    if not signed.signature:
        logger.warning("Empty checkpoint signature")
        return False

    try:
        public_key.verify(
            signed.signature,
            signed.checkpoint.to_signing_bytes(),
            ec.ECDSA(hashes.SHA256())
        )
        logger.debug(f"Signature verified for root {signed.checkpoint.root.hex()[:16]}...")
        return True
    except InvalidSignature:
        logger.warning(f"Signature verification failed for root {signed.checkpoint.root.hex()[:16]}...")
        return False


def create_checkpoint_signer(config) -> CheckpointSigner:
    """
    Factory function to create the signer selected by configuration.

    Args:
        config: SigningConfig with signing_backend and private_key_path

    Raises:
        SigningError: If the backend is unknown or the key path is missing
    """
    signing_backend = getattr(config, 'signing_backend', 'software')

    if signing_backend == "software":
        private_key_path = getattr(config, 'private_key_path', None)
        if not private_key_path:
            raise SigningError("private_key_path is required for software signing backend")
        return SoftwareSigner(private_key_path)

    raise SigningError(f"Invalid signing_backend: {signing_backend}")
