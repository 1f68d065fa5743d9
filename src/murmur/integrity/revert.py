"""
State reversion: overwrite a claim's aggregate score with a committed value.

This is a display-level overwrite. Votes and vote counts are left alone, so
after a revert the score no longer equals the sum of the claim's votes;
the audit trail records the divergence and the next recompute (a new vote
or recompute_all_aggregates) derives the score from votes again.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from murmur.audit import AuditEventType, AuditTrail
from murmur.errors import ClaimNotInCommitment, CommitmentNotFound, MurmurError
from murmur.integrity.violations import ViolationDetector
from murmur.models import utcnow
from murmur.storage import TrustStore

logger = logging.getLogger(__name__)


@dataclass
class RevertResult:
    success: bool
    message: str
    reverted_score: Optional[float] = None
    claim_id: str = ""
    commitment_id: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BulkRevertResult:
    reverted: int = 0
    failed: int = 0
    results: list[RevertResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "reverted": self.reverted,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


class StateReverter:
    def __init__(self, store: TrustStore, audit: Optional[AuditTrail] = None,
                 detector: Optional[ViolationDetector] = None):
        self.store = store
        self.audit = audit
        self.detector = detector or ViolationDetector(store)

    def revert_to_committed_state(self, claim_id: str, commitment_id: str) -> RevertResult:
        """Set the claim's aggregate_score to its value in the commitment.

        Raises CommitmentNotFound, ClaimNotInCommitment or ClaimNotFound.
        """
        commitment = self.store.get_commitment(commitment_id)
        if commitment is None:
            raise CommitmentNotFound()
        entry = commitment.entry_for(claim_id)
        if entry is None:
            raise ClaimNotInCommitment()

        with self.store.claim_transaction(claim_id):
            claim = self.store.get_claim_or_raise(claim_id)
            previous = claim.aggregate_score
            claim.aggregate_score = entry.score
            claim.updated_at = utcnow()
            self.store.update_claim(claim)

        logger.warning("Reverted %s from %.3f to %.3f (commitment %s)",
                       claim_id, previous, entry.score, commitment.hour_key)
        if self.audit is not None:
            self.audit.log(AuditEventType.STATE_REVERTED, claim_id, {
                "commitment_id": commitment.commitment_id,
                "hour_key": commitment.hour_key,
                "previous_score": previous,
                "reverted_score": entry.score,
                "total_votes": claim.total_votes,
            })
        return RevertResult(
            success=True,
            message=(f"Rumor {claim_id} reverted to score {entry.score} "
                     f"from commitment {commitment.hour_key}"),
            reverted_score=entry.score,
            claim_id=claim_id,
            commitment_id=commitment.commitment_id,
        )

    def revert_all_violations(self, hours_back: int = 24,
                              now: Optional[datetime] = None) -> BulkRevertResult:
        """Revert each violated claim once, to its newest violating commitment."""
        result = BulkRevertResult()
        seen: set[str] = set()
        for violation in self.detector.check_violations(hours_back=hours_back, now=now):
            if violation.claim_id in seen:
                continue
            seen.add(violation.claim_id)
            try:
                outcome = self.revert_to_committed_state(violation.claim_id, violation.commitment.id)
            except MurmurError as e:
                logger.error("Revert of %s failed: %s", violation.claim_id, e.message)
                outcome = RevertResult(
                    success=False,
                    message=e.message,
                    claim_id=violation.claim_id,
                    commitment_id=violation.commitment.id,
                )
            if outcome.success:
                result.reverted += 1
            else:
                result.failed += 1
            result.results.append(outcome)
        return result


__all__ = ["StateReverter", "RevertResult", "BulkRevertResult"]
