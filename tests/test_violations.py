"""Tests for murmur.integrity.violations — drift detection against commitments."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import ALL_STORES
from murmur.audit import AuditEventType
from murmur.engine import TrustEngine
from murmur.errors import ClaimNotFound, ClaimNotInCommitment, CommitmentNotFound
from murmur.integrity.violations import ViolationDetector

NOW = datetime(2025, 6, 1, 14, 20, tzinfo=timezone.utc)
LATER = NOW + timedelta(minutes=30)


def set_score(store, claim_id, score):
    claim = store.get_claim(claim_id)
    claim.aggregate_score = score
    store.update_claim(claim)


@pytest.fixture
def committed(engine):
    """Two claims scored 100 and -20, committed at NOW."""
    a = engine.submit_claim("alpha", claim_id="alpha")
    b = engine.submit_claim("beta", claim_id="beta")
    set_score(engine.store, a.claim_id, 100.0)
    set_score(engine.store, b.claim_id, -20.0)
    commitment = engine.commitments.create_hourly_commitment(now=NOW)
    return a, b, commitment


@pytest.mark.parametrize("store", ALL_STORES, indirect=True)
class TestCheckViolations:
    def test_no_drift_no_violation(self, engine, committed):
        assert engine.detector.check_violations(now=LATER) == []

    def test_drift_within_threshold(self, engine, committed):
        set_score(engine.store, "alpha", 104.0)
        assert engine.detector.check_violations(now=LATER) == []

    def test_exactly_five_percent_not_flagged(self, engine, committed):
        set_score(engine.store, "alpha", 105.0)
        assert engine.detector.check_violations(now=LATER) == []

    def test_just_over_five_percent_flagged(self, engine, committed):
        set_score(engine.store, "alpha", 105.01)
        (v,) = engine.detector.check_violations(now=LATER)
        assert v.claim_id == "alpha"
        assert v.percent_variance == pytest.approx(5.01)

    def test_drift_flagged(self, engine, committed):
        _, _, commitment = committed
        set_score(engine.store, "alpha", 120.0)
        violations = engine.detector.check_violations(now=LATER)
        assert len(violations) == 1
        v = violations[0]
        assert v.claim_id == "alpha"
        assert v.committed_score == 100.0
        assert v.current_score == 120.0
        assert v.variance == pytest.approx(20.0)
        assert v.percent_variance == pytest.approx(20.0)
        assert v.commitment.id == commitment.commitment_id
        assert v.commitment.hour_key == "2025-06-01-14"

    def test_claim_filter(self, engine, committed):
        set_score(engine.store, "alpha", 0.0)
        set_score(engine.store, "beta", 0.0)
        assert {v.claim_id for v in engine.detector.check_violations(now=LATER)} == {"alpha", "beta"}
        only = engine.detector.check_violations(claim_id="beta", now=LATER)
        assert [v.claim_id for v in only] == ["beta"]

    def test_one_violation_per_commitment_newest_first(self, engine, committed):
        _, _, first = committed
        set_score(engine.store, "alpha", 50.0)
        second = engine.commitments.create_hourly_commitment(now=NOW + timedelta(hours=1))
        set_score(engine.store, "alpha", 10.0)

        violations = engine.detector.check_violations(now=NOW + timedelta(hours=1, minutes=5))
        assert [v.commitment.id for v in violations] == [second.commitment_id, first.commitment_id]
        assert [v.committed_score for v in violations] == [50.0, 100.0]

    def test_old_commitments_outside_window(self, engine, committed):
        set_score(engine.store, "alpha", 0.0)
        assert engine.detector.check_violations(hours_back=24, now=NOW + timedelta(hours=25)) == []
        assert engine.detector.check_violations(hours_back=48, now=NOW + timedelta(hours=25))

    def test_claim_without_commitment_entry_ignored(self, engine, committed):
        engine.submit_claim("newcomer", claim_id="gamma")
        set_score(engine.store, "gamma", 99.0)
        assert engine.detector.check_violations(now=LATER) == []


class TestDetectorDetails:
    def test_missing_claim_skipped(self, memory_store):
        engine = TrustEngine(memory_store)
        engine.submit_claim("doomed", claim_id="doomed")
        set_score(memory_store, "doomed", 40.0)
        engine.commitments.create_hourly_commitment(now=NOW)
        del memory_store._claims["doomed"]
        assert engine.detector.check_violations(now=LATER) == []

    def test_custom_threshold(self, engine, committed):
        set_score(engine.store, "alpha", 104.0)
        strict = ViolationDetector(engine.store, threshold=1.0)
        assert len(strict.check_violations(now=LATER)) == 1

    def test_audit_entries(self, engine, committed, audit):
        set_score(engine.store, "alpha", 0.0)
        engine.detector.check_violations(now=LATER)
        entries = audit.query(event_type=AuditEventType.VIOLATION_DETECTED)
        assert [e.subject_id for e in entries] == ["alpha"]
        assert entries[0].details["committed_score"] == 100.0

    def test_to_dict(self, engine, committed):
        set_score(engine.store, "beta", 0.0)
        d = engine.detector.check_violations(now=LATER)[0].to_dict()
        assert d["claim_id"] == "beta"
        assert set(d["commitment"]) == {"id", "hour_key", "root_hash", "timestamp"}


class TestVerifyClaimIntegrity:
    def test_unchanged_claim_is_valid(self, engine, committed):
        _, _, commitment = committed
        check = engine.detector.verify_claim_integrity("alpha", commitment.commitment_id)
        assert check.is_valid
        assert check.leaf_verified
        assert check.commitment_hash == commitment.root_hash

    def test_any_change_invalidates(self, engine, committed):
        _, _, commitment = committed
        set_score(engine.store, "alpha", 100.5)
        check = engine.detector.verify_claim_integrity("alpha", commitment.commitment_id)
        assert check.leaf_verified
        assert not check.is_valid
        assert check.current_score == 100.5
        assert check.committed_score == 100.0

    def test_unknown_commitment(self, engine, committed):
        with pytest.raises(CommitmentNotFound):
            engine.detector.verify_claim_integrity("alpha", "missing")

    def test_claim_not_in_commitment(self, engine, committed):
        _, _, commitment = committed
        with pytest.raises(ClaimNotInCommitment):
            engine.detector.verify_claim_integrity("gamma", commitment.commitment_id)

    def test_claim_removed_after_commitment(self, memory_store):
        engine = TrustEngine(memory_store)
        engine.submit_claim("doomed", claim_id="doomed")
        commitment = engine.commitments.create_hourly_commitment(now=NOW)
        del memory_store._claims["doomed"]
        with pytest.raises(ClaimNotFound):
            engine.detector.verify_claim_integrity("doomed", commitment.commitment_id)


class TestIntegrityReport:
    def test_good(self, engine, committed):
        report = engine.detector.integrity_report(now=LATER)
        assert report["health"] == "good"
        assert report["violations"] == 0
        assert report["next_commitment"].startswith("2025-06-01T15:00:00")

    def test_warning(self, engine, committed):
        set_score(engine.store, "alpha", 0.0)
        report = engine.detector.integrity_report(now=LATER)
        assert report["health"] == "warning"
        assert report["sample_claim_ids"] == ["alpha"]

    def test_critical(self, engine):
        for i in range(5):
            engine.submit_claim(f"claim {i}", claim_id=f"c{i}")
        engine.commitments.create_hourly_commitment(now=NOW)
        for i in range(5):
            set_score(engine.store, f"c{i}", 10.0)
        report = engine.detector.integrity_report(now=LATER)
        assert report["health"] == "critical"
        assert report["violations"] == 5
        assert report["violated_claims"] == 5
