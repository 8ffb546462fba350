"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

CLI commands for Merkle tree operations.

Provides commands for:
- Building and finalizing a tree from an entry file
- Extracting membership proofs
- Verifying membership proofs
- Inspecting a stored tree snapshot
"""

import sys
from pathlib import Path
from typing import Optional

import click

from reserveproof.exceptions import ReserveProofError
from reserveproof.logging_config import get_logger, set_correlation_id
from reserveproof.merkle import (
    MerkleAccumulator,
    ProofService,
    available_hashers,
    default_proof_filename,
    load_entries,
)
from reserveproof.cli.context import CLIContext, pass_context

logger = get_logger(__name__)


def _tree_path(ctx: CLIContext, tree: Optional[Path]) -> Path:
    return tree if tree else Path(ctx.config.storage.tree_path)


def _load_tree(ctx: CLIContext, tree: Optional[Path]) -> MerkleAccumulator:
    return ctx.snapshot_store().load_tree(
        _tree_path(ctx, tree),
        parallel_threshold=ctx.config.performance.parallel_threshold,
        max_workers=ctx.config.performance.max_workers,
    )


@click.command("build")
@click.argument(
    "entries_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Snapshot file to write (default: storage.tree_path from config)",
)
@click.option(
    "--timestamp",
    "-t",
    type=int,
    default=None,
    help="Freshness timestamp bound into the final root (default: now, epoch ms)",
)
@click.option(
    "--hash",
    "hash_function",
    type=click.Choice(available_hashers()),
    default=None,
    help="Hash function (default: hash.function from config)",
)
@pass_context
def build(ctx: CLIContext, entries_file: Path, output: Optional[Path], timestamp: Optional[int], hash_function: Optional[str]):
    """
    Build and finalize a Merkle tree from an entry file.

    ENTRIES_FILE is a .json list of [identifier, balance] pairs or a .csv
    file with identifier and balance columns.

    Examples:

        reserveproof build balances.json --timestamp 1700000000000

        reserveproof build balances.csv -o /var/lib/reserveproof/tree.json
    """
    set_correlation_id()
    try:
        entries = load_entries(entries_file)
        tree = MerkleAccumulator.from_config(ctx.config, hasher=ctx.hasher(hash_function))
        tree.build(entries)
        final_root = tree.finalize(timestamp)

        output_path = ctx.snapshot_store().save_tree(tree, _tree_path(ctx, output))

        click.echo(f"Built Merkle tree from {tree.leaf_count} entries")
        click.echo(f"  Hash function: {tree.hasher.name}")
        click.echo(f"  Depth: {tree.depth}")
        click.echo(f"  Root: {tree.get_root()}")
        click.echo(f"  Timestamp: {tree.timestamp}")
        click.echo(f"  Final root: {final_root}")
        click.echo(f"  Snapshot: {output_path}")

    except ReserveProofError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error building tree: {e}", err=True)
        logger.error(f"Failed to build tree: {e}", exc_info=True)
        sys.exit(1)


@click.command("proof")
@click.argument("identifier")
@click.option(
    "--tree",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Tree snapshot to read (default: storage.tree_path from config)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Proof file to write (default: proof-<identifier>.json in storage.proof_dir)",
)
@pass_context
def proof(ctx: CLIContext, identifier: str, tree: Optional[Path], output: Optional[Path]):
    """
    Extract the membership proof for IDENTIFIER.

    Exits with status 1 when the identifier is not in the tree.

    Examples:

        reserveproof proof alice

        reserveproof proof 3 --tree tree.json -o proof-3.json
    """
    try:
        accumulator = _load_tree(ctx, tree)
        membership = ProofService(accumulator.hasher).extract(accumulator, identifier)

        if membership is None:
            click.echo(f"Error: Identifier '{identifier}' not found in tree", err=True)
            sys.exit(1)

        if output is None:
            output = Path(ctx.config.storage.proof_dir) / default_proof_filename(identifier)
        ctx.snapshot_store().save_proof(membership, output)

        click.echo(f"Proof for '{identifier}' written to {output}")
        click.echo(f"  Balance: {membership.balance}")
        click.echo(f"  Path length: {len(membership.path)}")
        click.echo(f"  Final root: {membership.final_root}")

    except ReserveProofError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error extracting proof: {e}", err=True)
        logger.error(f"Failed to extract proof for {identifier!r}: {e}", exc_info=True)
        sys.exit(1)


@click.command("verify")
@click.argument(
    "proof_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--identifier",
    "-i",
    default=None,
    help="Claimed identifier (default: the one recorded in the proof)",
)
@click.option(
    "--balance",
    "-b",
    type=int,
    default=None,
    help="Claimed balance (default: the one recorded in the proof)",
)
@click.option(
    "--expected-final-root",
    "-r",
    type=int,
    default=None,
    help="Published final root the proof must match",
)
@click.option(
    "--hash",
    "hash_function",
    type=click.Choice(available_hashers()),
    default=None,
    help="Hash function (default: hash.function from config)",
)
@pass_context
def verify(
    ctx: CLIContext,
    proof_file: Path,
    identifier: Optional[str],
    balance: Optional[int],
    expected_final_root: Optional[int],
    hash_function: Optional[str],
):
    """
    Verify a membership proof.

    Exits with status 0 when both checks pass, 1 otherwise.

    Examples:

        reserveproof verify proof-3.json

        reserveproof verify proof-3.json --balance 4000 -r 1234567890
    """
    set_correlation_id()
    try:
        membership = ctx.snapshot_store().load_proof(proof_file)
        claimed_identifier = identifier if identifier is not None else membership.identifier
        claimed_balance = balance if balance is not None else membership.balance

        result = ProofService(ctx.hasher(hash_function)).verify(
            claimed_identifier,
            claimed_balance,
            membership,
            expected_final_root=expected_final_root,
        )

        click.echo(f"Identifier: {claimed_identifier}")
        click.echo(f"Balance: {claimed_balance}")
        click.echo(f"  Merkle path valid: {'yes' if result.merkle_path_valid else 'no'}")
        click.echo(f"  Final root valid: {'yes' if result.final_root_valid else 'no'}")

        if result.overall_valid:
            click.echo("✓ Proof is valid")
            sys.exit(0)
        else:
            click.echo("✗ Proof verification failed", err=True)
            sys.exit(1)

    except ReserveProofError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error verifying proof: {e}", err=True)
        logger.error(f"Failed to verify proof {proof_file}: {e}", exc_info=True)
        sys.exit(1)


@click.command("inspect")
@click.option(
    "--tree",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Tree snapshot to read (default: storage.tree_path from config)",
)
@pass_context
def inspect(ctx: CLIContext, tree: Optional[Path]):
    """Show a summary of a stored tree snapshot."""
    try:
        accumulator = _load_tree(ctx, tree)

        click.echo(f"Tree: {_tree_path(ctx, tree)}")
        click.echo(f"  State: {accumulator.state.value}")
        click.echo(f"  Hash function: {accumulator.hasher.name}")
        click.echo(f"  Leaves: {accumulator.leaf_count}")
        click.echo(f"  Depth: {accumulator.depth}")
        click.echo(f"  Root: {accumulator.get_root()}")
        click.echo(f"  Timestamp: {accumulator.timestamp if accumulator.timestamp is not None else '-'}")
        click.echo(f"  Final root: {accumulator.final_root if accumulator.final_root is not None else '-'}")

    except ReserveProofError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error inspecting tree: {e}", err=True)
        logger.error(f"Failed to inspect tree: {e}", exc_info=True)
        sys.exit(1)
