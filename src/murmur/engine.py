"""
murmur.engine — Wires a store to the scoring and integrity services.

    engine = TrustEngine.from_settings(Settings.from_env())
    voter = engine.register_voter(nullifier("correct horse battery staple"))
    claim = engine.submit_claim("The library closes at 6 on Fridays")
    engine.votes.cast_vote(claim.claim_id, voter.voter_id, True, 25)
    engine.commitments.create_hourly_commitment()

Registration, submission and soft deletion live here as thin collaborators;
every score mutation goes through VoteService or StateReverter.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Optional

from murmur.audit import AuditEventType, AuditTrail
from murmur.config import Settings
from murmur.errors import ValidationError
from murmur.integrity import (
    CommitmentScheduler,
    CommitmentService,
    StateReverter,
    ViolationDetector,
)
from murmur.models import (
    Claim,
    ClaimDependency,
    ClaimStatus,
    Voter,
    new_id,
    utcnow,
    validate_entity_id,
    validate_voter_id,
)
from murmur.scoring.reputation import clamp_reputation, default_reputation
from murmur.storage import MemoryStore, SQLiteStore, TrustStore
from murmur.votes import VoteService

logger = logging.getLogger(__name__)

MAX_CLAIM_LENGTH = 2000


def nullifier(secret: str) -> str:
    """Derive an opaque voter id from a secret phrase."""
    return hashlib.sha256(secret.encode()).hexdigest()


class TrustEngine:
    def __init__(self, store: Optional[TrustStore] = None, *,
                 settings: Optional[Settings] = None,
                 audit: Optional[AuditTrail] = None):
        self.settings = settings or Settings(db_path=":memory:")
        self.store = store or MemoryStore()
        self.audit = audit or AuditTrail(self.store)

        self.votes = VoteService(self.store, audit=self.audit)
        self.commitments = CommitmentService(
            self.store, signing_key=self.settings.signing_key, audit=self.audit
        )
        self.detector = ViolationDetector(
            self.store, threshold=self.settings.violation_threshold, audit=self.audit
        )
        self.reverter = StateReverter(self.store, audit=self.audit, detector=self.detector)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrustEngine":
        store = MemoryStore() if settings.in_memory else SQLiteStore(settings.db_path)
        return cls(store, settings=settings)

    def make_scheduler(self, interval: Optional[float] = None) -> CommitmentScheduler:
        return CommitmentScheduler(self.commitments, interval=interval)

    # Voters

    def register_voter(self, voter_id: str, reputation: Optional[float] = None) -> Voter:
        validate_voter_id(voter_id)
        rep = default_reputation() if reputation is None else clamp_reputation(reputation)
        voter = self.store.add_voter(Voter(voter_id=voter_id, reputation=rep))
        logger.info("Registered voter %s…", voter_id[:12])
        return voter

    def get_voter(self, voter_id: str) -> Voter:
        return self.store.get_voter_or_raise(validate_voter_id(voter_id))

    # Claims

    def submit_claim(self, content: str, claim_id: Optional[str] = None) -> Claim:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Rumor content cannot be empty")
        if len(content) > MAX_CLAIM_LENGTH:
            raise ValidationError(f"Rumor content exceeds {MAX_CLAIM_LENGTH} characters")
        claim = Claim(
            claim_id=validate_entity_id(claim_id, "claim_id") if claim_id else new_id(),
            content=content,
        )
        self.store.add_claim(claim)
        logger.info("Submitted rumor %s", claim.claim_id)
        return claim

    def get_claim(self, claim_id: str) -> Claim:
        return self.store.get_claim_or_raise(validate_entity_id(claim_id, "claim_id"))

    def list_claims(self, include_deleted: bool = False) -> list[Claim]:
        return self.store.list_claims(include_deleted=include_deleted)

    def delete_claim(self, claim_id: str) -> Claim:
        """Soft delete: status=deleted, dependency edges zeroed, score kept."""
        with self.store.claim_transaction(claim_id):
            claim = self.get_claim(claim_id)
            claim.status = ClaimStatus.DELETED
            claim.updated_at = utcnow()
            self.store.update_claim(claim)
        zeroed = self.store.zero_dependencies(claim_id)
        self.audit.log(AuditEventType.CLAIM_DELETED, claim_id, {
            "aggregate_score": claim.aggregate_score,
            "dependencies_zeroed": zeroed,
        })
        logger.info("Deleted rumor %s (%d dependencies zeroed)", claim_id, zeroed)
        return claim

    def add_dependency(self, parent_claim_id: str, child_claim_id: str,
                       influence_weight: float = 1.0) -> ClaimDependency:
        self.get_claim(parent_claim_id)
        self.get_claim(child_claim_id)
        if parent_claim_id == child_claim_id:
            raise ValidationError("A rumor cannot depend on itself")
        dep = ClaimDependency(parent_claim_id, child_claim_id, influence_weight)
        self.store.add_dependency(dep)
        return dep

    def close(self) -> None:
        self.store.close()


__all__ = ["TrustEngine", "nullifier", "MAX_CLAIM_LENGTH"]
