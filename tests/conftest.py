"""
Pytest configuration and shared fixtures for Margay Core tests.
"""

import tempfile
from pathlib import Path
from typing import Generator, Optional

import pytest


def _create_test_ecdsa_key(directory: Path) -> Path:
    """
    Create a test ECDSA private key for checkpoint signing.

    Args:
        directory: Directory to create the key in.

    Returns:
        Path to test private key file (PEM format).
    """
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.hazmat.backends import default_backend

    private_key = ec.generate_private_key(ec.SECP256R1(), default_backend())

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )

    key_path = directory / "test_signing_key.pem"
    key_path.write_bytes(private_pem)

    return key_path


def create_test_config_content(
    temp_dir: Path,
    signing_key_path: Optional[Path] = None,
    depth: int = 4,
    history_size: int = 3,
    hash_function: str = "sha256",
) -> str:
    """
    Generate test configuration YAML content.

    Args:
        temp_dir: Temporary directory for storage paths.
        signing_key_path: Optional checkpoint key. Signing is enabled when given.
        depth: Tree depth.
        history_size: Root history size.
        hash_function: Compression function name.

    Returns:
        YAML configuration content as string.
    """
    config = f"""
tree:
  depth: {depth}
  history_size: {history_size}
  hash_function: {hash_function}

storage:
  state_file: {temp_dir}/tree_state.json
  backup_count: 2

logging:
  level: WARNING
  file: {temp_dir}/margay.log
  format: json
"""
    if signing_key_path is not None:
        config += f"""
signing:
  enabled: true
  private_key_path: {signing_key_path}
  signing_backend: software
"""
    return config


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_signing_key(temp_dir: Path) -> Path:
    """
    Create a test ECDSA private key for checkpoint signing.

    Returns:
        Path to test private key file (PEM format).
    """
    return _create_test_ecdsa_key(temp_dir)


@pytest.fixture
def sample_config_path(temp_dir: Path) -> Path:
    """
    Create a sample configuration file with signing disabled.

    Returns:
        Path to sample config file.
    """
    config_path = temp_dir / "config.yaml"
    config_path.write_text(create_test_config_content(temp_dir=temp_dir))
    return config_path


@pytest.fixture
def signing_config_path(temp_dir: Path, test_signing_key: Path) -> Path:
    """
    Create a configuration file with checkpoint signing enabled.

    Returns:
        Path to config file.
    """
    config_path = temp_dir / "config.yaml"
    config_path.write_text(
        create_test_config_content(temp_dir=temp_dir, signing_key_path=test_signing_key)
    )
    return config_path
