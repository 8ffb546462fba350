"""
Merkle accumulator for proof-of-reserves.

This package provides tree construction over (identifier, balance) entries,
timestamp-bound final roots, membership proof extraction and verification,
and snapshot persistence.
"""

from reserveproof.merkle.field import (
    BN254_FIELD_MODULUS,
    encode_balance,
    encode_identifier,
)
from reserveproof.merkle.hasher import (
    FieldHasher,
    Sha256FieldHasher,
    Sha3FieldHasher,
    available_hashers,
    create_hasher,
    get_hasher,
    register_hasher,
)
from reserveproof.merkle.tree import AccumulatorState, MerkleAccumulator, TreeNode, hash_leaf
from reserveproof.merkle.proof import (
    MembershipProof,
    ProofService,
    ProofStep,
    VerificationResult,
    extract_proof,
    verify_proof,
)
from reserveproof.merkle.snapshot import SnapshotStore, default_proof_filename
from reserveproof.merkle.entries import load_entries

__all__ = [
    "BN254_FIELD_MODULUS",
    "encode_balance",
    "encode_identifier",
    "FieldHasher",
    "Sha256FieldHasher",
    "Sha3FieldHasher",
    "available_hashers",
    "create_hasher",
    "get_hasher",
    "register_hasher",
    "AccumulatorState",
    "MerkleAccumulator",
    "TreeNode",
    "hash_leaf",
    "MembershipProof",
    "ProofService",
    "ProofStep",
    "VerificationResult",
    "extract_proof",
    "verify_proof",
    "SnapshotStore",
    "default_proof_filename",
    "load_entries",
]
