"""
CLI commands for checkpoint signing keys.

Provides commands for:
- Generating signing keys
- Verifying that a signing key can be loaded
"""

import os
import sys
from pathlib import Path

import click

from margay.logging_config import get_logger
from margay.merkle.key_management import KeyManager, generate_signing_key
from margay.merkle.signer import KEY_PASSPHRASE_ENV_VAR

logger = get_logger(__name__)


@click.group()
def keys():
    """Manage root checkpoint signing keys."""
    pass


@keys.command("generate")
@click.option(
    "--private-key",
    "-k",
    required=True,
    help="Path to store private key (e.g., /etc/margay/keys/checkpoint-signing-key.pem)",
)
@click.option(
    "--public-key",
    "-p",
    required=True,
    help="Path to store public key (e.g., /etc/margay/keys/checkpoint-signing-key.pub)",
)
@click.option(
    "--passphrase",
    "-P",
    help=f"Passphrase to encrypt private key (optional, can also use {KEY_PASSPHRASE_ENV_VAR} env var)",
)
def generate(private_key, public_key, passphrase):
    """
    Generate new ECDSA P-256 key pair for checkpoint signing.

    Examples:

        # Generate key without passphrase
        margay keys generate -k ~/.margay/keys/private.pem -p ~/.margay/keys/public.pem

        # Generate key with passphrase
        margay keys generate -k ~/.margay/keys/private.pem -p ~/.margay/keys/public.pem -P "secure_passphrase"
    """
    if not passphrase:
        passphrase = os.environ.get(KEY_PASSPHRASE_ENV_VAR)

    private_key_path = Path(private_key).expanduser()
    public_key_path = Path(public_key).expanduser()

    if private_key_path.exists():
        click.echo(f"Error: Private key already exists: {private_key_path}", err=True)
        click.echo("Remove the existing key or use a different path.", err=True)
        sys.exit(1)

    if public_key_path.exists():
        click.echo(f"Error: Public key already exists: {public_key_path}", err=True)
        click.echo("Remove the existing key or use a different path.", err=True)
        sys.exit(1)

    click.echo("Generating ECDSA P-256 key pair...")
    click.echo(f"  Private key: {private_key_path}")
    click.echo(f"  Public key: {public_key_path}")

    if passphrase:
        click.echo("  Encryption: Enabled")
    else:
        click.echo("  Encryption: Disabled (WARNING: Private key will be stored unencrypted)")

    try:
        generate_signing_key(str(private_key_path), str(public_key_path), passphrase=passphrase)
    except OSError as e:
        click.echo(f"Error generating key pair: {e}", err=True)
        logger.error(f"Failed to generate key pair: {e}", exc_info=True)
        sys.exit(1)

    click.echo()
    click.echo("✓ Key pair generated successfully!")
    click.echo()
    click.echo("Update your Margay configuration to use this key:")
    click.echo()
    click.echo("  signing:")
    click.echo("    enabled: true")
    click.echo(f"    private_key_path: {private_key_path}")
    click.echo("    signing_backend: software")

    if passphrase:
        click.echo()
        click.echo(f"and set the {KEY_PASSPHRASE_ENV_VAR} environment variable.")


@keys.command("verify")
@click.option(
    "--private-key",
    "-k",
    required=True,
    help="Path to private key to verify",
)
@click.option(
    "--passphrase",
    "-P",
    help=f"Passphrase if key is encrypted (optional, can also use {KEY_PASSPHRASE_ENV_VAR} env var)",
)
def verify(private_key, passphrase):
    """
    Verify that a private key is valid and can be loaded.

    Examples:

        margay keys verify -k ~/.margay/keys/private.pem

        margay keys verify -k ~/.margay/keys/private.pem -P "secure_passphrase"
    """
    if not passphrase:
        passphrase = os.environ.get(KEY_PASSPHRASE_ENV_VAR)

    private_key_path = Path(private_key).expanduser()

    if not private_key_path.exists():
        click.echo(f"Error: Private key not found: {private_key_path}", err=True)
        sys.exit(1)

    click.echo(f"Verifying private key: {private_key_path}")

    if KeyManager().verify_key(str(private_key_path), passphrase=passphrase):
        click.echo("✓ Key is valid and can be loaded successfully")
        click.echo("  Algorithm: ECDSA P-256")
    else:
        click.echo("✗ Key verification failed", err=True)
        click.echo("  The key may be corrupted, encrypted with wrong passphrase, or not ECDSA P-256", err=True)
        sys.exit(1)
