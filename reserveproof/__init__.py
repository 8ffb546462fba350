"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

ReserveProof - Merkle commitments for proof-of-reserves and proof-of-liabilities

ReserveProof commits a fixed, ordered set of (identifier, balance) entries to a
timestamp-bound Merkle root and issues per-holder membership proofs that can be
verified without access to the rest of the tree.
"""

from reserveproof._version import __version__

__all__ = ["__version__"]
