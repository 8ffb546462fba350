"""
Unit tests for membership proof extraction and verification.

Tests cover:
- The four-holder reference scenario
- Soundness for every leaf, including lone nodes of odd layers
- Tamper detection on every proof field
- Single-leaf trees
- Snapshot round-trip equivalence of extracted proofs
- Proof wire format
"""

import dataclasses

import pytest
from hypothesis import given, strategies as st

from reserveproof.exceptions import FieldElementError, MalformedProofError, NotBuiltError
from reserveproof.merkle.hasher import Sha3FieldHasher
from reserveproof.merkle.proof import (
    MembershipProof,
    ProofService,
    ProofStep,
    VerificationResult,
    extract_proof,
    verify_proof,
)
from reserveproof.merkle.tree import MerkleAccumulator

SAMPLE_TIMESTAMP = 1700000000000


def _bump(value, hasher):
    return (value + 1) % hasher.modulus


class TestReferenceScenario:
    """Four holders: ("1", 5000), ("2", 3000), ("3", 4000), ("4", 6000)."""

    def test_three_layers(self, finalized_tree):
        assert finalized_tree.depth == 3

    def test_extract_has_two_steps(self, finalized_tree):
        proof = extract_proof(finalized_tree, "3")

        assert proof is not None
        assert len(proof.path) == 2
        assert proof.path[0] == ProofStep(finalized_tree.layers[0][3].hash, sibling_is_left=False)
        assert proof.path[1] == ProofStep(finalized_tree.layers[1][0].hash, sibling_is_left=True)
        assert proof.balance == 4000
        assert proof.timestamp == SAMPLE_TIMESTAMP
        assert proof.root == finalized_tree.get_root()
        assert proof.final_root == finalized_tree.final_root

    def test_true_balance_verifies(self, finalized_tree):
        proof = extract_proof(finalized_tree, "3")
        result = verify_proof("3", 4000, proof)

        assert result.merkle_path_valid
        assert result.final_root_valid
        assert result.overall_valid

    def test_wrong_balance_fails_path(self, finalized_tree):
        proof = extract_proof(finalized_tree, "3")
        result = verify_proof("3", 4001, proof)

        assert not result.merkle_path_valid
        assert result.final_root_valid
        assert not result.overall_valid

    def test_wrong_identifier_fails_path(self, finalized_tree):
        proof = extract_proof(finalized_tree, "3")
        assert not verify_proof("4", 4000, proof).merkle_path_valid


class TestExtraction:
    """Test proof extraction rules."""

    def test_absent_identifier_returns_none(self, finalized_tree):
        assert extract_proof(finalized_tree, "nobody") is None

    def test_requires_finalized_tree(self, sample_entries):
        tree = MerkleAccumulator().build(sample_entries)
        with pytest.raises(NotBuiltError):
            extract_proof(tree, "1")

    def test_requires_built_tree(self):
        with pytest.raises(NotBuiltError):
            ProofService().extract(MerkleAccumulator(), "1")

    def test_single_leaf_tree(self):
        tree = MerkleAccumulator().build([("solo", 77)])
        tree.finalize(10)

        proof = extract_proof(tree, "solo")

        assert proof.path == []
        assert proof.root == proof.leaf_hash
        assert verify_proof("solo", 77, proof).overall_valid

    def test_lone_node_is_its_own_sibling(self):
        tree = MerkleAccumulator().build([("a", 1), ("b", 2), ("c", 3)])
        tree.finalize(10)

        proof = extract_proof(tree, "c")

        assert len(proof.path) == 2
        assert proof.path[0] == ProofStep(proof.leaf_hash, sibling_is_left=False)
        assert verify_proof("c", 3, proof).overall_valid

    @pytest.mark.parametrize("count", range(1, 18))
    def test_every_leaf_verifies(self, count):
        entries = [(f"holder-{i}", 1000 + i) for i in range(count)]
        tree = MerkleAccumulator().build(entries)
        tree.finalize(SAMPLE_TIMESTAMP)

        for identifier, balance in entries:
            proof = extract_proof(tree, identifier)
            assert len(proof.path) == tree.depth - 1
            assert verify_proof(identifier, balance, proof).overall_valid

    def test_duplicate_identifier_proves_first_leaf(self):
        tree = MerkleAccumulator().build([("a", 1), ("b", 2), ("a", 3)])
        tree.finalize(10)

        proof = extract_proof(tree, "a")

        assert proof.balance == 1
        assert verify_proof("a", 1, proof).overall_valid

    def test_service_uses_tree_hasher(self, sample_entries):
        tree = MerkleAccumulator(Sha3FieldHasher()).build(sample_entries)
        tree.finalize(10)

        proof = extract_proof(tree, "2")

        assert verify_proof("2", 3000, proof, hasher=Sha3FieldHasher()).overall_valid
        assert not verify_proof("2", 3000, proof).overall_valid


class TestTamperDetection:
    """Any altered proof field breaks at least one check."""

    @pytest.fixture
    def proof(self, finalized_tree):
        return extract_proof(finalized_tree, "3")

    def test_tampered_sibling_hash(self, finalized_tree, proof):
        for position, step in enumerate(proof.path):
            path = list(proof.path)
            path[position] = ProofStep(_bump(step.sibling_hash, finalized_tree.hasher), step.sibling_is_left)
            tampered = dataclasses.replace(proof, path=path)
            assert not verify_proof("3", 4000, tampered).overall_valid

    def test_flipped_position(self, proof):
        for position, step in enumerate(proof.path):
            path = list(proof.path)
            path[position] = ProofStep(step.sibling_hash, not step.sibling_is_left)
            tampered = dataclasses.replace(proof, path=path)
            assert not verify_proof("3", 4000, tampered).merkle_path_valid

    def test_swapped_positions(self, proof):
        first, second = proof.path
        swapped = [
            ProofStep(first.sibling_hash, second.sibling_is_left),
            ProofStep(second.sibling_hash, first.sibling_is_left),
        ]
        tampered = dataclasses.replace(proof, path=swapped)
        assert not verify_proof("3", 4000, tampered).overall_valid

    def test_tampered_root(self, finalized_tree, proof):
        tampered = dataclasses.replace(proof, root=_bump(proof.root, finalized_tree.hasher))
        result = verify_proof("3", 4000, tampered)

        assert not result.merkle_path_valid
        assert not result.final_root_valid

    def test_tampered_timestamp(self, proof):
        tampered = dataclasses.replace(proof, timestamp=proof.timestamp + 1)
        result = verify_proof("3", 4000, tampered)

        assert result.merkle_path_valid
        assert not result.final_root_valid
        assert not result.overall_valid

    def test_tampered_final_root(self, finalized_tree, proof):
        tampered = dataclasses.replace(proof, final_root=_bump(proof.final_root, finalized_tree.hasher))
        assert not verify_proof("3", 4000, tampered).final_root_valid

    def test_dropped_step(self, proof):
        tampered = dataclasses.replace(proof, path=proof.path[:1])
        assert not verify_proof("3", 4000, tampered).merkle_path_valid


class TestExpectedFinalRoot:
    """Pinning a proof to a published final root."""

    def test_matching_pin(self, finalized_tree):
        proof = extract_proof(finalized_tree, "1")
        result = verify_proof("1", 5000, proof, expected_final_root=finalized_tree.final_root)
        assert result.overall_valid

    def test_mismatched_pin(self, finalized_tree):
        proof = extract_proof(finalized_tree, "1")
        result = verify_proof("1", 5000, proof, expected_final_root=12345)

        assert result.merkle_path_valid
        assert not result.final_root_valid

    def test_self_consistent_forgery_fails_pin(self, finalized_tree):
        """A proof re-bound to another timestamp is consistent but not the published one."""
        hasher = finalized_tree.hasher
        proof = extract_proof(finalized_tree, "1")
        forged = dataclasses.replace(
            proof,
            timestamp=proof.timestamp + 1,
            final_root=hasher.hash([proof.root, proof.timestamp + 1]),
        )

        assert verify_proof("1", 5000, forged).overall_valid
        assert not verify_proof(
            "1", 5000, forged, expected_final_root=finalized_tree.final_root
        ).overall_valid


class TestVerificationErrors:
    """Primitive errors propagate; failed checks do not raise."""

    def test_negative_balance_propagates_field_error(self, finalized_tree):
        proof = extract_proof(finalized_tree, "1")
        with pytest.raises(FieldElementError):
            verify_proof("1", -5, proof)

    def test_result_to_dict(self):
        result = VerificationResult(merkle_path_valid=True, final_root_valid=False)
        assert result.to_dict() == {
            "merkle_path_valid": True,
            "final_root_valid": False,
            "overall_valid": False,
        }


class TestSnapshotEquivalence:
    """Proofs from a restored snapshot equal proofs from the original tree."""

    def test_round_trip_extract(self, finalized_tree):
        restored = MerkleAccumulator.deserialize(finalized_tree.serialize())

        for identifier, _ in finalized_tree.entries:
            assert extract_proof(restored, identifier) == extract_proof(finalized_tree, identifier)

    @given(st.lists(
        st.tuples(st.text(alphabet="abcdefgh0123456789", min_size=1, max_size=6),
                  st.integers(min_value=0, max_value=10 ** 24)),
        min_size=1,
        max_size=24,
    ))
    def test_soundness_property(self, entries):
        tree = MerkleAccumulator().build(entries)
        tree.finalize(SAMPLE_TIMESTAMP)
        restored = MerkleAccumulator.deserialize(tree.serialize())

        for identifier, _ in entries:
            proof = extract_proof(tree, identifier)
            assert proof == extract_proof(restored, identifier)
            assert verify_proof(identifier, proof.balance, proof).overall_valid


class TestProofWireFormat:
    """Test proof to_dict / from_dict."""

    def test_to_dict(self, finalized_tree):
        proof = extract_proof(finalized_tree, "3")
        data = proof.to_dict()

        assert data["identifier"] == "3"
        assert data["balance"] == "4000"
        assert data["leafHash"] == str(proof.leaf_hash)
        assert data["proof"] == [
            {"hash": str(proof.path[0].sibling_hash), "position": "right"},
            {"hash": str(proof.path[1].sibling_hash), "position": "left"},
        ]
        assert data["root"] == str(proof.root)
        assert data["timestamp"] == SAMPLE_TIMESTAMP
        assert data["finalRoot"] == str(proof.final_root)

    def test_from_dict_round_trip(self, finalized_tree):
        proof = extract_proof(finalized_tree, "2")
        assert MembershipProof.from_dict(proof.to_dict()) == proof

    def test_from_dict_accepts_integers(self, finalized_tree):
        proof = extract_proof(finalized_tree, "2")
        data = proof.to_dict()
        data["balance"] = 3000
        data["timestamp"] = str(SAMPLE_TIMESTAMP)
        assert MembershipProof.from_dict(data) == proof

    @pytest.mark.parametrize("field", ["identifier", "balance", "leafHash", "proof", "root", "timestamp", "finalRoot"])
    def test_missing_field(self, finalized_tree, field):
        data = extract_proof(finalized_tree, "2").to_dict()
        del data[field]
        with pytest.raises(MalformedProofError, match=field):
            MembershipProof.from_dict(data)

    def test_invalid_position(self, finalized_tree):
        data = extract_proof(finalized_tree, "2").to_dict()
        data["proof"][0]["position"] = "up"
        with pytest.raises(MalformedProofError, match="position"):
            MembershipProof.from_dict(data)

    def test_step_without_hash(self, finalized_tree):
        data = extract_proof(finalized_tree, "2").to_dict()
        del data["proof"][1]["hash"]
        with pytest.raises(MalformedProofError):
            MembershipProof.from_dict(data)

    def test_undecodable_value(self, finalized_tree):
        data = extract_proof(finalized_tree, "2").to_dict()
        data["root"] = "not-a-number"
        with pytest.raises(MalformedProofError, match="root"):
            MembershipProof.from_dict(data)

    def test_unicode_digit_balance(self, finalized_tree):
        data = extract_proof(finalized_tree, "2").to_dict()
        data["balance"] = "²"
        with pytest.raises(MalformedProofError, match="balance"):
            MembershipProof.from_dict(data)

    def test_not_an_object(self):
        with pytest.raises(MalformedProofError):
            MembershipProof.from_dict("proof")
