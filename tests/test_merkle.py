"""Tests for murmur.integrity.merkle."""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from murmur.integrity.merkle import (
    EMPTY_ROOT,
    MerkleTree,
    build_snapshot,
    canonical_leaf,
    detect_violation,
    hash_pair,
    hour_key,
    leaf_hash,
    percent_variance,
    verify_proof,
)

T0 = 1700000000


class TestLeaves:
    def test_canonical_leaf_format(self):
        assert canonical_leaf("c1", 5, T0) == '{"id":"c1","score":5.0,"timestamp":1700000000}'

    def test_leaf_hash_is_sha256_of_canonical_json(self):
        expected = hashlib.sha256(canonical_leaf("c1", -3.25, T0).encode()).hexdigest()
        assert leaf_hash("c1", -3.25, T0) == expected

    def test_leaf_depends_on_timestamp(self):
        assert leaf_hash("c1", 1.0, T0) != leaf_hash("c1", 1.0, T0 + 3600)

    def test_hash_pair_is_order_independent(self):
        a, b = leaf_hash("a", 1, T0), leaf_hash("b", 2, T0)
        assert hash_pair(a, b) == hash_pair(b, a)
        lo, hi = sorted((a, b))
        assert hash_pair(a, b) == hashlib.sha256(bytes.fromhex(lo) + bytes.fromhex(hi)).hexdigest()


class TestTree:
    def test_empty_root(self):
        assert EMPTY_ROOT == hashlib.sha256(b"[]").hexdigest()
        assert MerkleTree([]).root == EMPTY_ROOT
        assert build_snapshot([], T0).root_hash == EMPTY_ROOT

    def test_single_leaf_is_root(self):
        leaf = leaf_hash("only", 2.0, T0)
        tree = MerkleTree([leaf])
        assert tree.root == leaf
        assert tree.proof(leaf) == []
        assert verify_proof([], leaf, tree.root)

    def test_root_independent_of_input_order(self):
        pairs = [("c1", 1.0), ("c2", -2.5), ("c3", 7.0), ("c4", 0.0)]
        forward = build_snapshot(pairs, T0).root_hash
        backward = build_snapshot(list(reversed(pairs)), T0).root_hash
        assert forward == backward

    def test_odd_node_promoted(self):
        leaves = sorted(leaf_hash(c, 1.0, T0) for c in ("a", "b", "c"))
        tree = MerkleTree(leaves)
        assert tree.levels[1] == [hash_pair(leaves[0], leaves[1]), leaves[2]]
        assert tree.root == hash_pair(hash_pair(leaves[0], leaves[1]), leaves[2])

    @pytest.mark.parametrize("n", [2, 3, 5, 8, 13])
    def test_every_leaf_has_valid_proof(self, n):
        snap = build_snapshot([(f"c{i}", float(i)) for i in range(n)], T0)
        for leaf in snap.leaves.values():
            assert verify_proof(snap.tree.proof(leaf), leaf, snap.root_hash)

    def test_tampered_leaf_fails_proof(self):
        snap = build_snapshot([(f"c{i}", float(i)) for i in range(5)], T0)
        proof = snap.tree.proof(snap.leaves["c2"])
        forged = leaf_hash("c2", 99.0, T0)
        assert not verify_proof(proof, forged, snap.root_hash)

    def test_missing_leaf_proof_raises(self):
        tree = MerkleTree([leaf_hash("a", 1, T0)])
        with pytest.raises(ValueError):
            tree.proof(leaf_hash("b", 1, T0))

    def test_snapshot_counts(self):
        snap = build_snapshot([("a", 1.0), ("b", 2.0)], T0)
        assert snap.rumor_count == 2
        assert len(snap.tree) == 2
        assert snap.snapshot_time == T0


class TestHourKey:
    def test_format(self):
        assert hour_key(datetime(2024, 3, 7, 9, 59, tzinfo=timezone.utc)) == "2024-03-07-09"

    def test_naive_is_utc(self):
        assert hour_key(datetime(2024, 3, 7, 23, 0)) == "2024-03-07-23"

    def test_converts_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        assert hour_key(datetime(2024, 3, 8, 1, 30, tzinfo=plus_two)) == "2024-03-07-23"


class TestVariance:
    def test_threshold_is_exclusive(self):
        assert percent_variance(105, 100) == pytest.approx(5.0)
        assert not detect_violation(105, 100)
        assert detect_violation(105.01, 100)

    def test_negative_scores(self):
        assert percent_variance(-90, -100) == pytest.approx(10.0)
        assert detect_violation(-90, -100)

    def test_small_committed_uses_unit_denominator(self):
        assert percent_variance(0.04, 0) == pytest.approx(4.0)
        assert not detect_violation(0.04, 0)
        assert detect_violation(0.5, 0.2)

    def test_custom_threshold(self):
        assert not detect_violation(110, 100, threshold=10.0)
        assert detect_violation(110, 100, threshold=9.0)
