"""
Key management for root checkpoint signing.

This module provides utilities for:
- Generating ECDSA P-256 key pairs
- Storing private keys encrypted with a passphrase
- Verifying that a key file can be used for signing
- Exporting the public key for checkpoint verifiers
"""

import os
from pathlib import Path
from typing import Optional

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from margay.exceptions import SigningKeyError
from margay.logging_config import get_logger

logger = get_logger(__name__)


class KeyManager:
    """
    Manages the ECDSA P-256 keys used to sign root checkpoints.

    Example:
        >>> key_manager = KeyManager()
        >>> key_manager.generate_key_pair(
        ...     "/path/to/private_key.pem",
        ...     "/path/to/public_key.pem",
        ...     passphrase="secure_passphrase"
        ... )
        >>> key_manager.verify_key("/path/to/private_key.pem", "secure_passphrase")
        True
    """

    def generate_key_pair(
        self,
        private_key_path: str,
        public_key_path: str,
        passphrase: Optional[str] = None,
    ) -> None:
        """
        Generate new ECDSA P-256 key pair.

        Args:
            private_key_path: Path to store private key
            public_key_path: Path to store public key
            passphrase: Optional passphrase to encrypt private key

        Raises:
            FileExistsError: If key files already exist
            OSError: If unable to write key files
        """
        private_path = Path(private_key_path).expanduser()
        public_path = Path(public_key_path).expanduser()

        if private_path.exists():
            raise FileExistsError(f"Private key already exists: {private_path}")
        if public_path.exists():
            raise FileExistsError(f"Public key already exists: {public_path}")

        private_path.parent.mkdir(parents=True, exist_ok=True)
        public_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Generating new ECDSA P-256 key pair")

        private_key = ec.generate_private_key(ec.SECP256R1(), default_backend())

        encryption_algorithm = (
            serialization.BestAvailableEncryption(passphrase.encode())
            if passphrase
            else serialization.NoEncryption()
        )

        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption_algorithm
        )

        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        )

        with open(private_path, 'wb') as f:
            f.write(private_pem)
        os.chmod(private_path, 0o600)

        with open(public_path, 'wb') as f:
            f.write(public_pem)
        os.chmod(public_path, 0o644)

        logger.info(
            f"Generated key pair: private={private_path}, public={public_path}, "
            f"encrypted={bool(passphrase)}"
        )

    def load_private_key(
        self,
        private_key_path: str,
        passphrase: Optional[str] = None,
    ) -> ec.EllipticCurvePrivateKey:
        """
        Load and type-check a P-256 private key.

        Raises:
            SigningKeyError: If the key is missing, unreadable or not P-256
        """
        key_path = Path(private_key_path).expanduser()

        if not key_path.exists():
            raise SigningKeyError(f"Private key not found: {key_path}")

        with open(key_path, 'rb') as f:
            key_data = f.read()

        passphrase_bytes = passphrase.encode() if passphrase else None

        try:
            private_key = serialization.load_pem_private_key(
                key_data,
                password=passphrase_bytes,
                backend=default_backend()
            )
        except (ValueError, TypeError) as e:
            raise SigningKeyError(f"Failed to load private key {key_path}: {e}")

        if not isinstance(private_key, ec.EllipticCurvePrivateKey):
            raise SigningKeyError(f"Key is not an ECDSA key: {type(private_key).__name__}")
        if not isinstance(private_key.curve, ec.SECP256R1):
            raise SigningKeyError(f"Key is not P-256 curve: {private_key.curve.name}")

        return private_key

    def verify_key(self, private_key_path: str, passphrase: Optional[str] = None) -> bool:
        """
        Verify that a private key is valid and can be loaded.

        Returns:
            True if key is valid, False otherwise
        """
        try:
            self.load_private_key(private_key_path, passphrase)
        except SigningKeyError as e:
            logger.error(f"Key verification failed: {e}")
            return False

        logger.info(f"Key verified successfully: {private_key_path}")
        return True

    def export_public_key(
        self,
        private_key_path: str,
        public_key_path: str,
        passphrase: Optional[str] = None,
    ) -> None:
        """
        Export public key from private key.

        Raises:
            SigningKeyError: If private key is missing or invalid
        """
        public_path = Path(public_key_path).expanduser()
        private_key = self.load_private_key(private_key_path, passphrase)

        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        )

        public_path.parent.mkdir(parents=True, exist_ok=True)
        with open(public_path, 'wb') as f:
            f.write(public_pem)
        os.chmod(public_path, 0o644)

        logger.info(f"Exported public key to {public_path}")


def generate_signing_key(
    private_key_path: str,
    public_key_path: str,
    passphrase: Optional[str] = None,
) -> None:
    """
    Convenience function to generate a checkpoint signing key pair.

    Example:
        >>> generate_signing_key(
        ...     "/etc/margay/keys/checkpoint-signing-key.pem",
        ...     "/etc/margay/keys/checkpoint-signing-key.pub",
        ...     passphrase="secure_passphrase",
        ... )
    """
    KeyManager().generate_key_pair(private_key_path, public_key_path, passphrase=passphrase)
