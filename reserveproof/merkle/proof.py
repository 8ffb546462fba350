"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

Membership proofs for the Merkle accumulator.

A proof carries everything needed to check one (identifier, balance)
commitment without the tree: the leaf hash, the sibling path up to the
root, and the timestamp binding that produces the published final root.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from reserveproof.exceptions import FieldElementError, MalformedProofError, NotBuiltError
from reserveproof.logging_config import get_logger, log_merkle_verification
from reserveproof.merkle.field import FieldElement, parse_balance
from reserveproof.merkle.hasher import DEFAULT_HASH_FUNCTION, FieldHasher, get_hasher
from reserveproof.merkle.tree import MerkleAccumulator, hash_leaf

logger = get_logger(__name__)

POSITION_LEFT = "left"
POSITION_RIGHT = "right"


@dataclass(frozen=True)
class ProofStep:
    """
    One sibling on the path from a leaf to the root.

    Attributes:
        sibling_hash: Hash of the sibling node
        sibling_is_left: True when the sibling sits to the left of the path node
    """
    sibling_hash: FieldElement
    sibling_is_left: bool

    @property
    def position(self) -> str:
        return POSITION_LEFT if self.sibling_is_left else POSITION_RIGHT

    def to_dict(self) -> Dict[str, str]:
        return {"hash": str(self.sibling_hash), "position": self.position}


@dataclass(frozen=True)
class MembershipProof:
    """Self-contained proof that an (identifier, balance) leaf is in a finalized tree."""

    identifier: str
    balance: int
    leaf_hash: FieldElement
    path: List[ProofStep] = field(default_factory=list)
    root: FieldElement = 0
    timestamp: int = 0
    final_root: FieldElement = 0

    def to_dict(self) -> Dict[str, Any]:
        """Wire form; field elements and the balance are decimal strings."""
        return {
            "identifier": self.identifier,
            "balance": str(self.balance),
            "leafHash": str(self.leaf_hash),
            "proof": [step.to_dict() for step in self.path],
            "root": str(self.root),
            "timestamp": self.timestamp,
            "finalRoot": str(self.final_root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MembershipProof":
        """
        Parse the wire form.

        Raises:
            MalformedProofError: If a field is missing or undecodable, or a
                step position is not "left" or "right"
        """
        if not isinstance(data, dict):
            raise MalformedProofError(f"Proof must be an object, got {type(data).__name__}")

        required = ("identifier", "balance", "leafHash", "proof", "root", "timestamp", "finalRoot")
        missing = [key for key in required if key not in data]
        if missing:
            raise MalformedProofError(f"Proof is missing required fields: {', '.join(missing)}")

        if not isinstance(data["identifier"], str):
            raise MalformedProofError("identifier must be a string")
        if not isinstance(data["proof"], list):
            raise MalformedProofError("proof must be a list of steps")

        path = []
        for position, step in enumerate(data["proof"]):
            if not isinstance(step, dict) or "hash" not in step or "position" not in step:
                raise MalformedProofError(f"proof[{position}] must be an object with hash and position")
            if step["position"] not in (POSITION_LEFT, POSITION_RIGHT):
                raise MalformedProofError(
                    f"proof[{position}] position must be 'left' or 'right', got {step['position']!r}"
                )
            path.append(ProofStep(
                sibling_hash=_parse_int(step["hash"], f"proof[{position}] hash"),
                sibling_is_left=step["position"] == POSITION_LEFT,
            ))

        return cls(
            identifier=data["identifier"],
            balance=_parse_int(data["balance"], "balance"),
            leaf_hash=_parse_int(data["leafHash"], "leafHash"),
            path=path,
            root=_parse_int(data["root"], "root"),
            timestamp=_parse_int(data["timestamp"], "timestamp"),
            final_root=_parse_int(data["finalRoot"], "finalRoot"),
        )


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of checking a proof; failed checks are data, not errors."""

    merkle_path_valid: bool
    final_root_valid: bool

    @property
    def overall_valid(self) -> bool:
        return self.merkle_path_valid and self.final_root_valid

    def to_dict(self) -> Dict[str, bool]:
        return {
            "merkle_path_valid": self.merkle_path_valid,
            "final_root_valid": self.final_root_valid,
            "overall_valid": self.overall_valid,
        }


def _parse_int(value: Any, what: str) -> int:
    try:
        return parse_balance(value)
    except FieldElementError as e:
        raise MalformedProofError(f"{what} must be a non-negative decimal integer, got {value!r}") from e


class ProofService:
    """
    Extracts and verifies membership proofs.

    The service holds only the hash primitive; trees are passed per call, so
    one service can serve any number of finalized snapshots.
    """

    def __init__(self, hasher: Optional[FieldHasher] = None):
        self._hasher = hasher if hasher is not None else get_hasher(DEFAULT_HASH_FUNCTION)

    @property
    def hasher(self) -> FieldHasher:
        return self._hasher

    def extract(self, tree: MerkleAccumulator, identifier: str) -> Optional[MembershipProof]:
        """
        Extract the membership proof for an identifier.

        Args:
            tree: Finalized accumulator
            identifier: Identifier to look up

        Returns:
            MembershipProof, or None if the identifier is not in the tree

        Raises:
            NotBuiltError: If the tree is not finalized
        """
        if not tree.is_finalized:
            raise NotBuiltError(
                f"Tree must be finalized before extracting proofs (state={tree.state.value})"
            )

        index = tree.index_of(identifier)
        if index is None:
            logger.debug(f"Identifier {identifier!r} not found in tree")
            return None

        layers = tree.layers
        leaf = layers[0][index]
        path: List[ProofStep] = []

        for layer in layers[:-1]:
            is_left = index % 2 == 0
            sibling = index + 1 if is_left else index - 1
            # A lone last node was paired with itself, so it is its own sibling
            if sibling >= len(layer):
                sibling = index
            path.append(ProofStep(
                sibling_hash=layer[sibling].hash,
                sibling_is_left=not is_left,
            ))
            index //= 2

        proof = MembershipProof(
            identifier=identifier,
            balance=leaf.balance,
            leaf_hash=leaf.hash,
            path=path,
            root=tree.get_root(),
            timestamp=tree.timestamp,
            final_root=tree.final_root,
        )
        logger.debug(f"Extracted proof for {identifier!r}: {len(path)} steps")
        return proof

    def compute_root(self, identifier: str, balance: Union[int, str], proof: MembershipProof) -> FieldElement:
        """Fold the proof path over the leaf hash of (identifier, balance)."""
        current = hash_leaf(self._hasher, identifier, balance)
        for step in proof.path:
            if step.sibling_is_left:
                current = self._hasher.hash_pair(step.sibling_hash, current)
            else:
                current = self._hasher.hash_pair(current, step.sibling_hash)
        return current

    def verify(
        self,
        identifier: str,
        balance: Union[int, str],
        proof: MembershipProof,
        expected_final_root: Optional[FieldElement] = None,
    ) -> VerificationResult:
        """
        Check a claimed (identifier, balance) against a proof.

        Args:
            identifier: Claimed identifier
            balance: Claimed balance
            proof: Proof to check against
            expected_final_root: Published final root to pin the proof to

        Returns:
            VerificationResult with both checks
        """
        started = time.perf_counter()

        merkle_path_valid = self.compute_root(identifier, balance, proof) == proof.root

        final_root_valid = self._hasher.hash([proof.root, proof.timestamp]) == proof.final_root
        if expected_final_root is not None:
            final_root_valid = final_root_valid and proof.final_root == expected_final_root

        result = VerificationResult(
            merkle_path_valid=merkle_path_valid,
            final_root_valid=final_root_valid,
        )
        log_merkle_verification(
            logger,
            identifier=identifier,
            merkle_path_valid=merkle_path_valid,
            final_root_valid=final_root_valid,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return result


def extract_proof(tree: MerkleAccumulator, identifier: str) -> Optional[MembershipProof]:
    """Extract a proof using the tree's own hasher."""
    return ProofService(tree.hasher).extract(tree, identifier)


def verify_proof(
    identifier: str,
    balance: Union[int, str],
    proof: MembershipProof,
    expected_final_root: Optional[FieldElement] = None,
    hasher: Optional[FieldHasher] = None,
) -> VerificationResult:
    """Verify a proof with the given hasher (default hasher if omitted)."""
    return ProofService(hasher).verify(identifier, balance, proof, expected_final_root)
