"""
Violation detection: compare live claim scores against recent commitments.

A violation is a finding, not an error. Legitimate votes cast after a
commitment move the score too, so every flagged claim is an audit hint for
an operator to review before reverting.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from murmur.audit import AuditEventType, AuditTrail
from murmur.errors import ClaimNotInCommitment, CommitmentNotFound
from murmur.integrity.merkle import (
    DEFAULT_VIOLATION_THRESHOLD,
    MerkleTree,
    detect_violation,
    leaf_hash,
    percent_variance,
    verify_proof,
)
from murmur.integrity.scheduler import next_commitment_time
from murmur.models import Claim, Commitment, to_iso
from murmur.storage import TrustStore

logger = logging.getLogger(__name__)

# Violation count at which the report turns critical
CRITICAL_VIOLATIONS = 5
REPORT_SAMPLE_SIZE = 10


@dataclass(frozen=True)
class CommitmentRef:
    id: str
    hour_key: str
    root_hash: str
    timestamp: str

    @classmethod
    def of(cls, commitment: Commitment) -> "CommitmentRef":
        return cls(
            id=commitment.commitment_id,
            hour_key=commitment.hour_key,
            root_hash=commitment.root_hash,
            timestamp=to_iso(commitment.timestamp),
        )


@dataclass(frozen=True)
class Violation:
    claim_id: str
    current_score: float
    committed_score: float
    variance: float
    percent_variance: float
    commitment: CommitmentRef

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class IntegrityCheck:
    claim_id: str
    is_valid: bool
    commitment_hash: str
    committed_score: float
    current_score: float
    leaf_verified: bool

    def to_dict(self) -> dict:
        return asdict(self)


class ViolationDetector:
    def __init__(self, store: TrustStore, threshold: float = DEFAULT_VIOLATION_THRESHOLD,
                 audit: Optional[AuditTrail] = None):
        self.store = store
        self.threshold = threshold
        self.audit = audit

    def check_violations(self, claim_id: Optional[str] = None, hours_back: int = 24,
                         now: Optional[datetime] = None) -> list[Violation]:
        """Every (claim, commitment) pair whose score drifted past the threshold.

        Newest commitment first. A claim may appear once per commitment it
        was checked against. Claims that no longer exist are skipped.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(hours=hours_back)
        commitments = self.store.list_commitments(since=cutoff, verified_only=True)
        if not commitments:
            logger.info("No verified commitments in the last %d hours", hours_back)
            return []

        claims: dict[str, Optional[Claim]] = {}
        violations = []
        for commitment in commitments:
            ref = CommitmentRef.of(commitment)
            for entry in commitment.entries:
                if claim_id is not None and entry.claim_id != claim_id:
                    continue
                if entry.claim_id not in claims:
                    claims[entry.claim_id] = self.store.get_claim(entry.claim_id)
                claim = claims[entry.claim_id]
                if claim is None:
                    continue

                current = claim.aggregate_score
                if not detect_violation(current, entry.score, self.threshold):
                    continue
                violations.append(Violation(
                    claim_id=entry.claim_id,
                    current_score=current,
                    committed_score=entry.score,
                    variance=abs(current - entry.score),
                    percent_variance=percent_variance(current, entry.score),
                    commitment=ref,
                ))

        if violations:
            logger.warning("Detected %d state violations in the last %d hours",
                           len(violations), hours_back)
            if self.audit is not None:
                for v in violations:
                    self.audit.log(AuditEventType.VIOLATION_DETECTED, v.claim_id, {
                        "commitment_id": v.commitment.id,
                        "committed_score": v.committed_score,
                        "current_score": v.current_score,
                        "percent_variance": v.percent_variance,
                    })
        return violations

    def verify_claim_integrity(self, claim_id: str, commitment_id: str) -> IntegrityCheck:
        """Check one claim against one commitment, including its Merkle proof.

        Raises CommitmentNotFound, ClaimNotInCommitment or ClaimNotFound.
        """
        commitment = self.store.get_commitment(commitment_id)
        if commitment is None:
            raise CommitmentNotFound()
        entry = commitment.entry_for(claim_id)
        if entry is None:
            raise ClaimNotInCommitment()
        claim = self.store.get_claim_or_raise(claim_id)

        leaf = leaf_hash(claim_id, entry.score, commitment.snapshot_time)
        tree = MerkleTree(e.leaf_hash for e in commitment.entries)
        leaf_verified = (
            leaf == entry.leaf_hash
            and tree.root == commitment.root_hash
            and verify_proof(tree.proof(leaf), leaf, commitment.root_hash)
        )

        return IntegrityCheck(
            claim_id=claim_id,
            is_valid=leaf_verified and claim.aggregate_score == entry.score,
            commitment_hash=commitment.root_hash,
            committed_score=entry.score,
            current_score=claim.aggregate_score,
            leaf_verified=leaf_verified,
        )

    def integrity_report(self, hours_back: int = 24, now: Optional[datetime] = None) -> dict:
        """Summary for operators: health, counts and a sample of violated claims."""
        now = now or datetime.now(timezone.utc)
        violations = self.check_violations(hours_back=hours_back, now=now)
        count = len(violations)
        if count == 0:
            health = "good"
        elif count < CRITICAL_VIOLATIONS:
            health = "warning"
        else:
            health = "critical"

        violated = list(dict.fromkeys(v.claim_id for v in violations))
        return {
            "health": health,
            "violations": count,
            "violated_claims": len(violated),
            "sample_claim_ids": violated[:REPORT_SAMPLE_SIZE],
            "hours_back": hours_back,
            "audit_time": to_iso(now),
            "next_commitment": to_iso(next_commitment_time(now)),
        }


__all__ = [
    "ViolationDetector",
    "Violation",
    "CommitmentRef",
    "IntegrityCheck",
    "CRITICAL_VIOLATIONS",
]
