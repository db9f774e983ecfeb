"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

CLI commands for incremental Merkle tree operations.

Provides commands for:
- Initializing a tree and its state file
- Inserting leaves
- Querying the latest root, the history window and the zero table
- Cross-checking the tree against a full rebuild
- Signing root checkpoints
"""

import json
import sys
from pathlib import Path
from typing import List, Union

import click
from rich.console import Console
from rich.table import Table

from margay.exceptions import MargayError
from margay.logging_config import get_logger, set_correlation_id
from margay.merkle.hashing import available_hash_functions, digest_hex, resolve_hash_function
from margay.merkle.reference import compute_reference_root
from margay.merkle.signer import checkpoint_from_tree, create_checkpoint_signer
from margay.merkle.tree import IncrementalMerkleTree
from margay.merkle.zeros import MAX_DEPTH, zero_table_for
from margay.storage.state_store import FileStateStore

logger = get_logger(__name__)


def load_tree(store: FileStateStore) -> IncrementalMerkleTree:
    """
    Restore the tree persisted in ``store``.

    Raises:
        click.ClickException: If no tree has been initialized yet
    """
    if not store.exists():
        raise click.ClickException(
            f"No tree state found at {store.path}. Run 'margay tree init' first."
        )
    return IncrementalMerkleTree.from_state(store.load())


def parse_leaf(value: str) -> Union[int, str]:
    """
    Interpret a leaf given on the command line.

    ``0x``-prefixed or 64-character values are hex digests; other all-digit
    values are decimal integers.
    """
    if value.lower().startswith("0x") or len(value) == 64:
        return value
    if value.isdigit():
        return int(value)
    return value


@click.group()
def tree():
    """Incremental Merkle tree operations."""
    pass


@tree.command("init")
@click.option(
    "--depth",
    "-d",
    type=int,
    default=None,
    help="Tree depth, 1 <= depth < 32 (default: from configuration)",
)
@click.option(
    "--history-size",
    "-s",
    type=int,
    default=None,
    help="Number of recent roots to remember (default: from configuration)",
)
@click.option(
    "--hash-function",
    "-H",
    type=click.Choice(available_hash_functions()),
    default=None,
    help="Compression function (default: from configuration)",
)
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite an existing tree state",
)
@click.pass_context
def init(ctx, depth, history_size, hash_function, force):
    """
    Create an empty tree and write its state file.

    Examples:

        margay tree init

        margay tree init --depth 16 --history-size 100 --hash-function sha3_256
    """
    try:
        config = ctx.obj.config
        store = ctx.obj.state_store

        with store.lock():
            if store.exists() and not force:
                click.echo(f"Error: Tree state already exists: {store.path}", err=True)
                click.echo("Use --force to overwrite it.", err=True)
                sys.exit(1)

            merkle_tree = IncrementalMerkleTree(
                depth=depth if depth is not None else config.tree.depth,
                history_size=history_size if history_size is not None else config.tree.history_size,
                hasher=hash_function or config.tree.hash_function,
            )
            store.save(merkle_tree.export_state())

        click.echo("✓ Tree initialized successfully!")
        click.echo(f"  State file: {store.path}")
        click.echo(f"  Depth: {merkle_tree.depth} (capacity {merkle_tree.capacity} leaves)")
        click.echo(f"  History size: {merkle_tree.history_size}")
        click.echo(f"  Hash function: {merkle_tree.hash_function}")
        click.echo(f"  Empty root: {digest_hex(merkle_tree.latest_root())}")

    except MargayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@tree.command("insert")
@click.argument("leaves", nargs=-1, required=True)
@click.pass_context
def insert(ctx, leaves):
    """
    Insert one or more leaves.

    LEAVES are 64-digit hex digests (optionally 0x-prefixed) or decimal
    integers. The batch is all or nothing: if any leaf is invalid or the tree
    cannot hold them all, nothing is inserted.

    Examples:

        margay tree insert 12 34 123

        margay tree insert 0x2a00000000000000000000000000000000000000000000000000000000000000
    """
    set_correlation_id()
    try:
        store = ctx.obj.state_store
        with store.lock():
            merkle_tree = load_tree(store)
            results = merkle_tree.insert_many([parse_leaf(leaf) for leaf in leaves])
            store.save(merkle_tree.export_state())

        for result in results:
            click.echo(f"{result.index} {digest_hex(result.root)}")

    except MargayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@tree.command("root")
@click.pass_context
def root(ctx):
    """Print the latest root."""
    try:
        merkle_tree = load_tree(ctx.obj.state_store)
        click.echo(digest_hex(merkle_tree.latest_root()))
    except MargayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@tree.command("status")
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format (default: table)",
)
@click.pass_context
def status(ctx, format: str):
    """
    Show tree parameters, fill level and the latest root.

    Examples:

        margay tree status

        margay tree status --format json
    """
    try:
        store = ctx.obj.state_store
        merkle_tree = load_tree(store)
        state = merkle_tree.export_state()

        info = {
            "state_file": str(store.path),
            "depth": state.depth,
            "history_size": state.history_size,
            "hash_function": state.hash_function,
            "leaf_count": state.next_index,
            "capacity": merkle_tree.capacity,
            "current_root_index": state.current_root_index,
            "latest_root": digest_hex(state.roots[state.current_root_index]),
        }

        if format.lower() == "json":
            click.echo(json.dumps(info, indent=2))
            return

        table = Table(title="Merkle Tree Status", show_header=True)
        table.add_column("Property", style="cyan")
        table.add_column("Value", overflow="fold")
        for key, value in info.items():
            table.add_row(key.replace("_", " ").title(), str(value))
        Console().print(table)

    except MargayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@tree.command("zeros")
@click.option(
    "--count",
    "-n",
    type=click.IntRange(1, MAX_DEPTH),
    default=MAX_DEPTH,
    help=f"Number of levels to show (default: {MAX_DEPTH})",
)
@click.option(
    "--hash-function",
    "-H",
    type=click.Choice(available_hash_functions()),
    default=None,
    help="Compression function (default: from configuration)",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format (default: table)",
)
@click.pass_context
def zeros(ctx, count: int, hash_function, format: str):
    """
    Show the empty-subtree value of each level.

    Examples:

        margay tree zeros --count 4

        margay tree zeros --hash-function blake2s --format json
    """
    try:
        hasher = resolve_hash_function(hash_function or ctx.obj.config.tree.hash_function)
        table_values = zero_table_for(hasher)
        values: List[str] = [digest_hex(table_values.zero(level)) for level in range(count)]

        if format.lower() == "json":
            click.echo(json.dumps({"hash_function": hasher.name, "zeros": values}, indent=2))
            return

        table = Table(title=f"Zero Values ({hasher.name})", show_header=True)
        table.add_column("Level", justify="right", style="cyan")
        table.add_column("Digest", overflow="fold")
        for level, value in enumerate(values):
            table.add_row(str(level), value)
        Console().print(table)

    except MargayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@tree.command("known-root")
@click.argument("root_value", metavar="ROOT")
@click.pass_context
def known_root(ctx, root_value):
    """
    Check whether ROOT is in the recent root history.

    Exits with status 0 if the root is known and 1 otherwise.
    """
    try:
        merkle_tree = load_tree(ctx.obj.state_store)
    except MargayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if merkle_tree.is_known_root(root_value):
        click.echo("✓ Root is known")
        sys.exit(0)
    else:
        click.echo("✗ Root is not in the history window")
        sys.exit(1)


@tree.command("verify")
@click.argument("leaves", nargs=-1)
@click.pass_context
def verify(ctx, leaves):
    """
    Rebuild the tree from LEAVES and compare with the latest root.

    LEAVES must be every leaf inserted so far, in insertion order. Exits with
    status 1 on a mismatch.

    Examples:

        margay tree verify 12 34 123
    """
    try:
        merkle_tree = load_tree(ctx.obj.state_store)
        parsed = [parse_leaf(leaf) for leaf in leaves]

        expected = compute_reference_root(parsed, merkle_tree.depth, merkle_tree.hasher)
        actual = merkle_tree.latest_root()

        click.echo(f"Tree root:       {digest_hex(actual)}")
        click.echo(f"Recomputed root: {digest_hex(expected)}")

        if len(parsed) != merkle_tree.leaf_count:
            click.echo(
                f"✗ Leaf count mismatch: tree has {merkle_tree.leaf_count}, "
                f"got {len(parsed)}",
                err=True,
            )
            sys.exit(1)
        if expected != actual:
            click.echo("✗ Root mismatch", err=True)
            sys.exit(1)

        click.echo("✓ Tree root matches a full rebuild")

    except MargayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@tree.command("checkpoint")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the signed checkpoint to this file instead of stdout",
)
@click.pass_context
def checkpoint(ctx, output):
    """
    Sign the latest root with the configured checkpoint key.

    Uses signing.private_key_path from the configuration; the key passphrase
    is read from MARGAY_KEY_PASSPHRASE.

    Examples:

        margay tree checkpoint

        margay tree checkpoint --output checkpoint.json
    """
    try:
        config = ctx.obj.config
        if not config.signing.enabled:
            click.echo("Error: Checkpoint signing is disabled", err=True)
            click.echo("Set signing.enabled: true in the configuration.", err=True)
            sys.exit(1)

        merkle_tree = load_tree(ctx.obj.state_store)
        signer = create_checkpoint_signer(config.signing)
        signed = signer.sign_checkpoint(checkpoint_from_tree(merkle_tree))

        document = json.dumps(signed.to_dict(), indent=2)
        if output is None:
            click.echo(document)
        else:
            output = output.expanduser()
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(document + "\n")
            click.echo(f"✓ Signed checkpoint written to {output}")

    except MargayError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(f"Error writing checkpoint: {e}", err=True)
        logger.error(f"Failed to write checkpoint: {e}", exc_info=True)
        sys.exit(1)
