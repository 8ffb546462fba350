"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

Snapshot persistence for Merkle trees and membership proofs.

Trees and proofs are stored as JSON. Writes are atomic:
1. Rotate rolling backups of the existing file (trees only)
2. Write to a temporary file (.tmp)
3. Flush to disk (fsync)
4. Atomically rename over the target
Transient OS errors are retried with exponential backoff.
"""

import json
import os
import re
import shutil
from pathlib import Path
from typing import Any, Optional, Union

from reserveproof.exceptions import SnapshotReadError, SnapshotWriteError
from reserveproof.logging_config import get_logger, log_snapshot_operation
from reserveproof.merkle.hasher import FieldHasher
from reserveproof.merkle.proof import MembershipProof
from reserveproof.merkle.tree import MerkleAccumulator
from reserveproof.retry import retry_on_transient_failure

logger = get_logger(__name__)

PathLike = Union[str, Path]

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def default_proof_filename(identifier: str) -> str:
    """File name for a proof, e.g. ``proof-alice.json``."""
    return f"proof-{_UNSAFE_FILENAME_CHARS.sub('_', identifier)}.json"


class SnapshotStore:
    """
    Reads and writes tree snapshots and proofs on the local filesystem.

    A loaded snapshot is treated as a cache of the tree: structure is
    validated on load, but nothing is rehashed.
    """

    def __init__(self, backup_count: int = 3, max_retries: int = 3):
        self.backup_count = backup_count
        self.max_retries = max_retries
        self._write_with_retry = retry_on_transient_failure(
            max_retries=max_retries, base_delay=0.1, backoff_factor=2.0,
            operation="snapshot write",
        )(self._write_atomic)

    @classmethod
    def from_config(cls, config) -> "SnapshotStore":
        return cls(
            backup_count=config.storage.backup_count,
            max_retries=config.performance.max_retries,
        )

    # Trees

    def save_tree(self, tree: MerkleAccumulator, path: PathLike) -> Path:
        """
        Persist a tree snapshot.

        Args:
            tree: Built or finalized accumulator
            path: Target file

        Returns:
            Path written

        Raises:
            NotBuiltError: If the tree has not been built
            SnapshotWriteError: If the write fails after all retries
        """
        path = Path(path)
        data = tree.serialize()
        log_snapshot_operation(logger, str(path), "save", entry_count=tree.leaf_count)
        size = self._write(path, data, backup=True)
        log_snapshot_operation(
            logger, str(path), "save",
            entry_count=tree.leaf_count, size_bytes=size, status="completed",
        )
        return path

    def load_tree(self, path: PathLike, hasher: Optional[FieldHasher] = None, **kwargs: Any) -> MerkleAccumulator:
        """
        Load a tree snapshot.

        Args:
            path: Snapshot file
            hasher: Hash primitive; defaults to the snapshot's hashFunction
            **kwargs: Passed to MerkleAccumulator (parallel_threshold, max_workers)

        Raises:
            SnapshotReadError: If the file cannot be read or is not JSON
            MalformedSnapshotError: If the JSON is not a valid snapshot
        """
        path = Path(path)
        log_snapshot_operation(logger, str(path), "load")
        data = self._read(path)
        tree = MerkleAccumulator.deserialize(data, hasher=hasher, **kwargs)
        log_snapshot_operation(
            logger, str(path), "load", entry_count=tree.leaf_count, status="completed",
        )
        return tree

    # Proofs

    def save_proof(self, proof: MembershipProof, path: PathLike) -> Path:
        """
        Persist a membership proof.

        Raises:
            SnapshotWriteError: If the write fails after all retries
        """
        path = Path(path)
        self._write(path, proof.to_dict(), backup=False)
        logger.info(f"Saved proof for {proof.identifier!r} to {path}")
        return path

    def load_proof(self, path: PathLike) -> MembershipProof:
        """
        Load a membership proof.

        Raises:
            SnapshotReadError: If the file cannot be read or is not JSON
            MalformedProofError: If the JSON is not a valid proof
        """
        path = Path(path)
        proof = MembershipProof.from_dict(self._read(path))
        logger.debug(f"Loaded proof for {proof.identifier!r} from {path}")
        return proof

    # I/O

    def _read(self, path: Path) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON from {path}: {e}", exc_info=True)
            raise SnapshotReadError(f"Failed to parse JSON from {path}: {e}") from e
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}", exc_info=True)
            raise SnapshotReadError(f"Failed to read {path}: {e}") from e

    def _write(self, path: Path, data: Any, backup: bool) -> int:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return self._write_with_retry(path, data, backup)
        except OSError as e:
            log_snapshot_operation(logger, str(path), "save", status="failed", error=str(e))
            raise SnapshotWriteError(f"Failed to write {path}: {e}") from e

    def _write_atomic(self, path: Path, data: Any, backup: bool) -> int:
        if backup:
            self._create_backup(path)

        payload = json.dumps(data, indent=2)

        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())

            # os.replace overwrites the target atomically on POSIX and Windows
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        return len(payload.encode("utf-8"))

    def _create_backup(self, path: Path) -> None:
        """
        Create rolling backup of a snapshot file.

        Rotates backups, e.g. with backup_count=3:
        - tree.json.bak.3 -> deleted
        - tree.json.bak.2 -> tree.json.bak.3
        - tree.json.bak.1 -> tree.json.bak.2
        - tree.json -> tree.json.bak.1
        """
        if self.backup_count <= 0 or not path.exists():
            return

        try:
            oldest_backup = Path(f"{path}.bak.{self.backup_count}")
            if oldest_backup.exists():
                oldest_backup.unlink()

            for i in range(self.backup_count - 1, 0, -1):
                old_backup = Path(f"{path}.bak.{i}")
                if old_backup.exists():
                    old_backup.rename(Path(f"{path}.bak.{i + 1}"))

            backup_path = Path(f"{path}.bak.1")
            shutil.copy2(path, backup_path)
            logger.debug(f"Created backup of snapshot at {backup_path}")
        except OSError as e:
            # A missing backup must not block the write itself
            logger.warning(f"Failed to create backup of snapshot {path}: {e}")
