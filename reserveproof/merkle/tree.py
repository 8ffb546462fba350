"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

Merkle accumulator for balance commitments.

This module implements a binary Merkle tree over (identifier, balance)
entries hashed into a prime field. It supports:
- Leaf hashing: Hash([encode(identifier), encode(balance)])
- Layer-by-layer construction, duplicating the last node of an odd layer
- Final root binding: Hash([root, timestamp])
- Parallel pair hashing for large layers, written back by index
- Snapshot serialization and validated deserialization

Lifecycle is strictly forward: EMPTY -> BUILT -> FINALIZED.
"""

import concurrent.futures
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from reserveproof.exceptions import (
    AlreadyBuiltError,
    EmptyInputError,
    FieldElementError,
    InvalidEntryError,
    MalformedSnapshotError,
    NotBuiltError,
)
from reserveproof.logging_config import get_logger, log_merkle_root_computation
from reserveproof.merkle.field import (
    FieldElement,
    encode_balance,
    encode_identifier,
    parse_balance,
    to_field,
)
from reserveproof.merkle.hasher import (
    DEFAULT_HASH_FUNCTION,
    FieldHasher,
    create_hasher,
    get_hasher,
)

logger = get_logger(__name__)

Entry = Tuple[str, int]

_DECIMAL = re.compile(r"-?[0-9]+")


class AccumulatorState(str, Enum):
    """Lifecycle state of a MerkleAccumulator."""

    EMPTY = "empty"
    BUILT = "built"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class TreeNode:
    """
    Node of one tree layer.

    Attributes:
        hash: Field element committed by this node
        identifier: Entry identifier (layer 0 only)
        balance: Entry balance (layer 0 only)
        left: Index of the left child in the layer below (above layer 0)
        right: Index of the right child in the layer below; equals left when
            the node was produced by pairing a lone node with itself
    """
    hash: FieldElement
    identifier: Optional[str] = None
    balance: Optional[int] = None
    left: Optional[int] = None
    right: Optional[int] = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot form; child indices are omitted since they are reconstructible."""
        data: Dict[str, Any] = {"hash": str(self.hash)}
        if self.is_leaf:
            data["identifier"] = self.identifier
            data["balance"] = str(self.balance)
        return data


def hash_leaf(hasher: FieldHasher, identifier: str, balance: Union[int, str]) -> FieldElement:
    """Leaf hash: Hash([encode(identifier), encode(balance)])."""
    return hasher.hash([
        encode_identifier(identifier, hasher.modulus),
        encode_balance(balance, hasher.modulus),
    ])


def child_indices(position: int, layer_length: int) -> Tuple[int, int]:
    """
    Child indices of the parent at ``position`` over a layer of given length.

    The last node of an odd-length layer is paired with itself.
    """
    left = 2 * position
    right = left + 1 if left + 1 < layer_length else left
    return left, right


class MerkleAccumulator:
    """
    Binary Merkle accumulator over (identifier, balance) entries.

    Layer 0 holds one leaf per entry in input order. Each further layer pairs
    adjacent nodes left to right; a lone last node is combined with itself.
    The single node of the top layer is the root. ``finalize`` binds the root
    to a timestamp.

    Example:
        >>> tree = MerkleAccumulator().build([("1", 5000), ("2", 3000)])
        >>> final_root = tree.finalize(1700000000000)
        >>> tree.depth
        2
    """

    # Layer size at which pair hashing moves onto a thread pool
    PARALLEL_THRESHOLD = 1024

    MAX_WORKERS = 4

    def __init__(
        self,
        hasher: Optional[FieldHasher] = None,
        parallel_threshold: Optional[int] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Create an empty accumulator.

        Args:
            hasher: Hash primitive; defaults to the registry default
            parallel_threshold: Layer size at which hashing runs in parallel
            max_workers: Thread pool size for parallel hashing
        """
        self._hasher = hasher if hasher is not None else get_hasher(DEFAULT_HASH_FUNCTION)
        self.parallel_threshold = parallel_threshold or self.PARALLEL_THRESHOLD
        self.max_workers = max_workers or self.MAX_WORKERS

        self._entries: Tuple[Entry, ...] = ()
        self._layers: Tuple[Tuple[TreeNode, ...], ...] = ()
        self._index: Dict[str, int] = {}
        self._timestamp: Optional[int] = None
        self._final_root: Optional[FieldElement] = None

    @classmethod
    def from_config(cls, config, hasher: Optional[FieldHasher] = None) -> "MerkleAccumulator":
        """
        Create an accumulator from a ReserveProofConfig.

        Args:
            config: Loaded configuration
            hasher: Optional explicit hasher overriding ``config.hash``
        """
        return cls(
            hasher=hasher if hasher is not None else create_hasher(config.hash),
            parallel_threshold=config.performance.parallel_threshold,
            max_workers=config.performance.max_workers,
        )

    # State

    @property
    def hasher(self) -> FieldHasher:
        return self._hasher

    @property
    def state(self) -> AccumulatorState:
        if not self._layers:
            return AccumulatorState.EMPTY
        if self._final_root is None:
            return AccumulatorState.BUILT
        return AccumulatorState.FINALIZED

    @property
    def is_built(self) -> bool:
        return bool(self._layers)

    @property
    def is_finalized(self) -> bool:
        return self._final_root is not None

    @property
    def entries(self) -> Tuple[Entry, ...]:
        return self._entries

    @property
    def layers(self) -> Tuple[Tuple[TreeNode, ...], ...]:
        return self._layers

    @property
    def leaf_count(self) -> int:
        return len(self._entries)

    @property
    def depth(self) -> int:
        """Number of layers, leaves through root."""
        return len(self._layers)

    @property
    def timestamp(self) -> Optional[int]:
        return self._timestamp

    @property
    def final_root(self) -> Optional[FieldElement]:
        return self._final_root

    def index_of(self, identifier: str) -> Optional[int]:
        """Leaf position of the first entry with this identifier, or None."""
        return self._index.get(identifier)

    # Construction

    def hash_leaf(self, identifier: str, balance: Union[int, str]) -> FieldElement:
        return hash_leaf(self._hasher, identifier, balance)

    def build(self, entries: Iterable[Tuple[str, Union[int, str]]]) -> "MerkleAccumulator":
        """
        Build the tree from ordered (identifier, balance) entries.

        Args:
            entries: Entries in leaf order

        Returns:
            Self for method chaining

        Raises:
            AlreadyBuiltError: If the tree is already built
            EmptyInputError: If entries is empty
            InvalidEntryError: If an entry is malformed
        """
        if self.is_built:
            raise AlreadyBuiltError("Tree is already built; accumulators are immutable once built")

        validated = self._validate_entries(entries)
        if not validated:
            raise EmptyInputError("Cannot build Merkle tree from empty entries list")

        started = time.perf_counter()

        leaves = self._hash_leaves(validated)
        layers: List[Tuple[TreeNode, ...]] = [tuple(leaves)]
        current: Sequence[TreeNode] = leaves

        # Build tree level by level until we reach the root
        while len(current) > 1:
            if len(current) >= self.parallel_threshold:
                next_layer = self._build_layer_parallel(current)
            else:
                next_layer = self._build_layer(current)
            layers.append(tuple(next_layer))
            current = next_layer

        self._entries = tuple(validated)
        self._layers = tuple(layers)
        self._index = self._build_index(validated)

        log_merkle_root_computation(
            logger,
            entry_count=len(validated),
            depth=len(layers),
            merkle_root=str(self.get_root()),
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return self

    def _validate_entries(self, entries: Iterable[Tuple[str, Union[int, str]]]) -> List[Entry]:
        validated: List[Entry] = []
        for position, entry in enumerate(entries):
            try:
                identifier, balance = entry
            except (TypeError, ValueError):
                raise InvalidEntryError(
                    f"Entry {position} must be an (identifier, balance) pair, got {entry!r}"
                ) from None
            if not isinstance(identifier, str):
                raise InvalidEntryError(
                    f"Entry {position} identifier must be a string, got {type(identifier).__name__}"
                )
            try:
                validated.append((identifier, parse_balance(balance)))
            except FieldElementError as e:
                raise InvalidEntryError(f"Entry {position} ({identifier!r}): {e}") from e
        return validated

    def _make_leaf(self, entry: Entry) -> TreeNode:
        identifier, balance = entry
        return TreeNode(
            hash=self.hash_leaf(identifier, balance),
            identifier=identifier,
            balance=balance,
        )

    def _hash_leaves(self, entries: List[Entry]) -> List[TreeNode]:
        if len(entries) < self.parallel_threshold:
            return [self._make_leaf(entry) for entry in entries]

        # executor.map yields results in submission order
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self._make_leaf, entries))

    def _combine(self, current: Sequence[TreeNode], position: int) -> TreeNode:
        left, right = child_indices(position, len(current))
        return TreeNode(
            hash=self._hasher.hash_pair(current[left].hash, current[right].hash),
            left=left,
            right=right,
        )

    def _build_layer(self, current: Sequence[TreeNode]) -> List[TreeNode]:
        return [self._combine(current, position) for position in range((len(current) + 1) // 2)]

    def _build_layer_parallel(self, current: Sequence[TreeNode]) -> List[TreeNode]:
        """
        Build the next layer on a thread pool.

        Results are written into a pre-sized list by parent position, so
        completion order cannot reorder siblings.
        """
        parent_count = (len(current) + 1) // 2
        next_layer: List[Optional[TreeNode]] = [None] * parent_count

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._combine, current, position): position
                for position in range(parent_count)
            }
            for future in concurrent.futures.as_completed(futures):
                next_layer[futures[future]] = future.result()

        return next_layer

    @staticmethod
    def _build_index(entries: Sequence[Entry]) -> Dict[str, int]:
        index: Dict[str, int] = {}
        for position, (identifier, _) in enumerate(entries):
            if identifier in index:
                logger.warning(
                    f"Duplicate identifier {identifier!r} at leaf {position}; "
                    f"proofs resolve to leaf {index[identifier]}"
                )
                continue
            index[identifier] = position
        return index

    def finalize(self, timestamp: Optional[int] = None) -> FieldElement:
        """
        Bind the root to a freshness timestamp.

        Calling finalize again overwrites the previous timestamp and final root.

        Args:
            timestamp: Integer freshness marker; defaults to current epoch milliseconds

        Returns:
            Final root Hash([root, timestamp])

        Raises:
            NotBuiltError: If build has not completed
        """
        root = self.get_root()
        if root is None:
            raise NotBuiltError("Tree has not been built yet. Call build() first.")

        if timestamp is None:
            timestamp = time.time_ns() // 1_000_000

        final_root = self._hasher.hash([root, timestamp])

        if self._final_root is not None:
            logger.warning(
                f"Re-finalizing tree: replacing timestamp {self._timestamp} with {timestamp}"
            )
        self._timestamp = timestamp
        self._final_root = final_root

        logger.info(f"Finalized Merkle tree: timestamp={timestamp}, final_root={final_root}")
        return final_root

    def get_root(self) -> Optional[FieldElement]:
        """
        Get the Merkle root hash.

        Returns:
            Root hash, or None if the tree has not been built
        """
        if not self._layers:
            return None
        return self._layers[-1][0].hash

    # Snapshots

    def serialize(self) -> Dict[str, Any]:
        """
        Produce a complete snapshot of the tree.

        Field elements and balances are written as decimal strings.

        Raises:
            NotBuiltError: If the tree has not been built
        """
        if not self.is_built:
            raise NotBuiltError("Cannot serialize a tree that has not been built")

        return {
            "root": str(self.get_root()),
            "timestamp": self._timestamp,
            "finalRoot": str(self._final_root) if self._final_root is not None else None,
            "entries": [[identifier, str(balance)] for identifier, balance in self._entries],
            "layers": [[node.to_dict() for node in layer] for layer in self._layers],
            "hashFunction": self._hasher.name,
        }

    @classmethod
    def deserialize(
        cls,
        data: Dict[str, Any],
        hasher: Optional[FieldHasher] = None,
        **kwargs: Any,
    ) -> "MerkleAccumulator":
        """
        Restore an accumulator from a snapshot without rehashing leaves.

        The snapshot is a cache: it is checked for structure and internal
        consistency, but proofs extracted from it are still verified by
        recomputing hashes.

        Args:
            data: Snapshot dictionary as produced by serialize()
            hasher: Hash primitive; defaults to the snapshot's hashFunction
            **kwargs: Extra constructor arguments (parallel_threshold, max_workers)

        Returns:
            Accumulator in BUILT or FINALIZED state

        Raises:
            MalformedSnapshotError: If data is missing fields or violates tree invariants
            UnknownHashFunctionError: If the snapshot names an unregistered hasher
        """
        if not isinstance(data, dict):
            raise MalformedSnapshotError(f"Snapshot must be an object, got {type(data).__name__}")

        missing = [key for key in ("root", "timestamp", "finalRoot", "entries", "layers") if key not in data]
        if missing:
            raise MalformedSnapshotError(f"Snapshot is missing required fields: {', '.join(missing)}")

        hash_function = data.get("hashFunction")
        if hasher is None:
            hasher = get_hasher(hash_function or DEFAULT_HASH_FUNCTION)
        elif hash_function is not None and hash_function != hasher.name:
            raise MalformedSnapshotError(
                f"Snapshot was built with hash function '{hash_function}', "
                f"but '{hasher.name}' was supplied"
            )
        modulus = hasher.modulus

        entries = _parse_entries(data["entries"])
        layers = _parse_layers(data["layers"], modulus)

        if len(entries) != len(layers[0]):
            raise MalformedSnapshotError(
                f"Snapshot has {len(entries)} entries but {len(layers[0])} leaves"
            )
        for position, ((identifier, balance), leaf) in enumerate(zip(entries, layers[0])):
            if identifier != leaf.identifier or balance != leaf.balance:
                raise MalformedSnapshotError(
                    f"Entry {position} ({identifier!r}, {balance}) does not match "
                    f"leaf ({leaf.identifier!r}, {leaf.balance})"
                )

        root = _parse_field(data["root"], modulus, "root")
        if root != layers[-1][0].hash:
            raise MalformedSnapshotError("Snapshot root does not match the top layer")

        timestamp = data["timestamp"]
        final_root = data["finalRoot"]
        if (timestamp is None) != (final_root is None):
            raise MalformedSnapshotError("timestamp and finalRoot must both be set or both be null")

        tree = cls(hasher=hasher, **kwargs)
        tree._entries = tuple(entries)
        tree._layers = tuple(tuple(layer) for layer in layers)
        tree._index = cls._build_index(entries)
        if timestamp is not None:
            tree._timestamp = _parse_int(timestamp, "timestamp")
            tree._final_root = _parse_field(final_root, modulus, "finalRoot")

        logger.debug(
            f"Deserialized Merkle tree: {len(entries)} entries, {len(layers)} layers, "
            f"state={tree.state.value}"
        )
        return tree


def _parse_int(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise MalformedSnapshotError(f"{what} must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _DECIMAL.fullmatch(value.strip()):
        return int(value)
    raise MalformedSnapshotError(f"{what} must be a decimal integer, got {value!r}")


def _parse_field(value: Any, modulus: int, what: str) -> FieldElement:
    try:
        return to_field(_parse_int(value, what), modulus)
    except FieldElementError as e:
        raise MalformedSnapshotError(f"{what}: {e}") from e


def _parse_balance(value: Any, what: str) -> int:
    try:
        return parse_balance(value)
    except FieldElementError as e:
        raise MalformedSnapshotError(f"{what}: {e}") from e


def _parse_entries(raw: Any) -> List[Entry]:
    if not isinstance(raw, list) or not raw:
        raise MalformedSnapshotError("entries must be a non-empty list")
    entries: List[Entry] = []
    for position, entry in enumerate(raw):
        if not isinstance(entry, (list, tuple)) or len(entry) != 2 or not isinstance(entry[0], str):
            raise MalformedSnapshotError(f"entries[{position}] must be an [identifier, balance] pair")
        entries.append((entry[0], _parse_balance(entry[1], f"entries[{position}] balance")))
    return entries


def _parse_layers(raw: Any, modulus: int) -> List[List[TreeNode]]:
    if not isinstance(raw, list) or not raw:
        raise MalformedSnapshotError("layers must be a non-empty list")

    layers: List[List[TreeNode]] = []
    for depth, raw_layer in enumerate(raw):
        if not isinstance(raw_layer, list) or not raw_layer:
            raise MalformedSnapshotError(f"layers[{depth}] must be a non-empty list")

        if depth > 0:
            if len(layers[-1]) == 1:
                raise MalformedSnapshotError(
                    f"layers[{depth}] follows a single-node layer; layers[{depth - 1}] is the root"
                )
            expected = (len(layers[-1]) + 1) // 2
            if len(raw_layer) != expected:
                raise MalformedSnapshotError(
                    f"layers[{depth}] has {len(raw_layer)} nodes, expected {expected}"
                )

        layer: List[TreeNode] = []
        for position, raw_node in enumerate(raw_layer):
            where = f"layers[{depth}][{position}]"
            if not isinstance(raw_node, dict) or "hash" not in raw_node:
                raise MalformedSnapshotError(f"{where} must be an object with a hash")
            node_hash = _parse_field(raw_node["hash"], modulus, f"{where} hash")

            if depth == 0:
                identifier = raw_node.get("identifier")
                if not isinstance(identifier, str) or "balance" not in raw_node:
                    raise MalformedSnapshotError(f"{where} must carry identifier and balance")
                layer.append(TreeNode(
                    hash=node_hash,
                    identifier=identifier,
                    balance=_parse_balance(raw_node["balance"], f"{where} balance"),
                ))
            else:
                left, right = child_indices(position, len(layers[-1]))
                layer.append(TreeNode(hash=node_hash, left=left, right=right))
        layers.append(layer)

    if len(layers[-1]) != 1:
        raise MalformedSnapshotError(
            f"Top layer must hold exactly one node, got {len(layers[-1])}"
        )
    return layers
