"""
murmur.votes — Trust Score Aggregator.

cast_vote() is the one place a vote turns into score:

    validate → reputation → weight → consensus → bonus → insert → recompute

all inside store.claim_transaction(claim_id), so two concurrent votes on the
same claim cannot both read the pre-vote vote set, and a failed insert leaves
no partial state. Aggregates are always re-derived from the full vote set,
never adjusted incrementally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from murmur.audit import AuditEventType, AuditTrail
from murmur.errors import ClaimNotActive, InvalidCredits, NotFoundError
from murmur.models import Claim, Vote, utcnow, validate_entity_id, validate_voter_id
from murmur.scoring import (
    AccuracySample,
    ReputationUpdate,
    calculate_aggregate_truth_score,
    calculate_consensus,
    calculate_trust_score,
    preview_bayesian_bonus,
    update_reputation,
    validate_credits,
    vote_weight_preview,
)
from murmur.scoring.constants import DEFAULT_REPUTATION_SCORE
from murmur.storage import TrustStore

logger = logging.getLogger(__name__)

# Recent votes considered by update_voter_reputation
REPUTATION_WINDOW = 20


@dataclass(frozen=True)
class CastVoteResult:
    vote: Vote
    claim: Claim

    def to_dict(self) -> dict:
        return {
            "vote": {
                "vote_id": self.vote.vote_id,
                "quadratic_weight": self.vote.quadratic_weight,
                "bayesian_bonus": self.vote.bayesian_bonus,
                "final_trust_score": self.vote.final_trust_score,
                "credits_spent": self.vote.credits_spent,
                "vote_value": self.vote.vote_value,
            },
            "claim": {
                "claim_id": self.claim.claim_id,
                "new_aggregate_score": self.claim.aggregate_score,
                "new_total_votes": self.claim.total_votes,
                "true_votes": self.claim.true_votes,
                "false_votes": self.claim.false_votes,
            },
        }


class VoteService:
    """Casts votes and keeps claim aggregates consistent with their votes."""

    def __init__(self, store: TrustStore, audit: Optional[AuditTrail] = None):
        self.store = store
        self.audit = audit

    def _log(self, event: AuditEventType, subject_id: str, details: dict) -> None:
        if self.audit is not None:
            self.audit.log(event, subject_id, details)

    def cast_vote(
        self,
        claim_id: str,
        voter_id: str,
        vote_value: bool,
        credits_spent: int,
        predicted_consensus: Optional[bool] = None,
    ) -> CastVoteResult:
        """Score and persist one vote, then recompute the claim aggregate.

        Raises InvalidCredits, InvalidIdentifier, ClaimNotFound,
        ClaimNotActive, VoterNotFound or AlreadyVoted.
        """
        validate_entity_id(claim_id, "claim_id")
        validate_voter_id(voter_id)
        ok, error = validate_credits(credits_spent)
        if not ok:
            raise InvalidCredits(error)

        with self.store.claim_transaction(claim_id):
            claim = self.store.get_claim_or_raise(claim_id)
            if not claim.is_active:
                raise ClaimNotActive()
            voter = self.store.get_voter_or_raise(voter_id)
            reputation = voter.reputation or DEFAULT_REPUTATION_SCORE

            existing = self.store.list_votes(claim_id)
            score = calculate_trust_score(
                credits_spent=int(credits_spent),
                vote_value=bool(vote_value),
                voter_reputation=reputation,
                existing_votes=existing,
                predicted_consensus=predicted_consensus,
            )
            vote = Vote(
                claim_id=claim_id,
                voter_id=voter_id,
                vote_value=bool(vote_value),
                credits_spent=int(credits_spent),
                predicted_consensus=predicted_consensus,
                quadratic_weight=score.quadratic_weight,
                bayesian_bonus=score.bayesian_bonus,
                final_trust_score=score.final_trust_score,
            )
            self.store.insert_vote(vote)
            claim = self._recompute(claim)
            self.store.touch_voter(voter_id, utcnow())

        logger.info(
            "Vote cast on %s: weight=%.3f bonus=%.3f score=%.3f aggregate=%.3f",
            claim_id, vote.quadratic_weight, vote.bayesian_bonus,
            vote.final_trust_score, claim.aggregate_score,
        )
        self._log(AuditEventType.VOTE_CAST, claim_id, {
            "vote_id": vote.vote_id,
            "voter_id": voter_id,
            "vote_value": vote.vote_value,
            "credits_spent": vote.credits_spent,
            "final_trust_score": vote.final_trust_score,
            "aggregate_score": claim.aggregate_score,
        })
        return CastVoteResult(vote=vote, claim=claim)

    def _recompute(self, claim: Claim) -> Claim:
        """Re-derive score and counts from every vote on the claim."""
        votes = self.store.list_votes(claim.claim_id)
        true_votes = sum(1 for v in votes if v.vote_value)
        claim.aggregate_score = calculate_aggregate_truth_score(votes)
        claim.total_votes = len(votes)
        claim.true_votes = true_votes
        claim.false_votes = len(votes) - true_votes
        claim.updated_at = utcnow()
        self.store.update_claim(claim)
        return claim

    def recompute_claim_aggregate(self, claim_id: str) -> Claim:
        """Recompute aggregate_score and vote counts from the full vote set."""
        with self.store.claim_transaction(claim_id):
            claim = self.store.get_claim_or_raise(claim_id)
            before = claim.aggregate_score
            claim = self._recompute(claim)
        if before != claim.aggregate_score:
            self._log(AuditEventType.AGGREGATE_RECOMPUTED, claim_id, {
                "previous_score": before,
                "aggregate_score": claim.aggregate_score,
            })
        return claim

    def remove_vote(self, claim_id: str, voter_id: str) -> Claim:
        """Delete a vote and recompute the claim in the same transaction."""
        with self.store.claim_transaction(claim_id):
            claim = self.store.get_claim_or_raise(claim_id)
            removed = self.store.delete_vote(claim_id, voter_id)
            if removed is None:
                raise NotFoundError("Vote not found")
            claim = self._recompute(claim)
        self._log(AuditEventType.VOTE_REMOVED, claim_id, {
            "vote_id": removed.vote_id,
            "voter_id": voter_id,
            "aggregate_score": claim.aggregate_score,
        })
        return claim

    def recompute_all_aggregates(self) -> dict:
        """Maintenance pass: re-derive every claim's aggregate and counts."""
        fixed = errors = 0
        claims = self.store.list_claims(include_deleted=True)
        for claim in claims:
            try:
                self.recompute_claim_aggregate(claim.claim_id)
                fixed += 1
            except Exception:
                errors += 1
                logger.exception("Failed to recompute aggregate for %s", claim.claim_id)
        logger.info("Recomputed aggregates: %d fixed, %d errors", fixed, errors)
        return {"fixed": fixed, "errors": errors, "total": len(claims)}

    def preview_vote(
        self,
        claim_id: str,
        credits: int,
        voter_id: Optional[str] = None,
        vote_value: Optional[bool] = None,
        predicted_consensus: Optional[bool] = None,
    ) -> dict:
        """Weight preview plus the claim's current consensus. No side effects."""
        ok, error = validate_credits(credits)
        if not ok:
            raise InvalidCredits(error)
        self.store.get_claim_or_raise(claim_id)
        consensus = calculate_consensus(self.store.list_votes(claim_id))

        reputation = DEFAULT_REPUTATION_SCORE
        if voter_id:
            voter = self.store.get_voter(validate_voter_id(voter_id))
            if voter is not None:
                reputation = voter.reputation

        preview = vote_weight_preview(credits)
        preview["user_reputation"] = reputation
        result = {
            "preview": preview,
            "consensus": {
                **consensus.to_dict(),
                "current_consensus": "truth" if consensus.consensus_value else "lie",
                "bayesian_active": consensus.is_consensus_reached,
            },
        }
        if vote_value is not None:
            bonus = preview_bayesian_bonus(vote_value, predicted_consensus, consensus, reputation)
            result["bonus"] = {
                "potential_bonus": bonus.potential_bonus,
                "bonus_type": bonus.bonus_type,
                "explanation": bonus.explanation,
            }
        return result

    def update_voter_reputation(self, voter_id: str) -> ReputationUpdate:
        """One moving-average step from the voter's recent resolved votes.

        A vote is resolved once its claim has reached consensus; the sample
        compares the vote against that consensus.
        """
        voter = self.store.get_voter_or_raise(validate_voter_id(voter_id))
        samples = []
        for vote in self.store.list_votes_by_voter(voter_id, limit=REPUTATION_WINDOW):
            consensus = calculate_consensus(self.store.list_votes(vote.claim_id))
            if consensus.is_consensus_reached:
                samples.append(AccuracySample(vote.vote_value, consensus.consensus_value))

        update = update_reputation(voter.reputation, samples)
        if update.change != 0:
            voter.reputation = update.new_reputation
            self.store.update_voter(voter)
            logger.info("Reputation for %s: %.3f -> %.3f",
                        voter_id, update.previous_reputation, update.new_reputation)
            self._log(AuditEventType.REPUTATION_UPDATED, voter_id, update.to_dict())
        return update


__all__ = ["VoteService", "CastVoteResult", "REPUTATION_WINDOW"]
