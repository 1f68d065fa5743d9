"""
Consensus tracking and the Bayesian Truth Serum bonus.

A voter casts True/False and may predict what the majority will vote. Once a
claim has enough votes for a consensus to mean something, two patterns earn a
bonus proportional to the voter's reputation:

  surprising truth   predicted the crowd correctly but voted against it
                     (private information)                      rep × 0.5
  minority correct   predicted against the eventual majority and voted
                     the same way                               rep × 0.3

Everything else earns nothing, so contrarianism alone is not rewarded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .constants import (
    MIN_VOTES_FOR_BAYESIAN,
    MINORITY_CORRECT_BONUS,
    SURPRISING_TRUTH_BONUS,
)


@dataclass(frozen=True)
class ConsensusInfo:
    true_votes: int
    false_votes: int
    total_votes: int
    consensus_value: bool
    consensus_strength: float  # 0.5 - 1.0, share of the majority side
    is_consensus_reached: bool

    def to_dict(self) -> dict:
        return {
            "true_votes": self.true_votes,
            "false_votes": self.false_votes,
            "total_votes": self.total_votes,
            "consensus_value": self.consensus_value,
            "consensus_strength": self.consensus_strength,
            "is_consensus_reached": self.is_consensus_reached,
        }


@dataclass(frozen=True)
class BonusPreview:
    potential_bonus: float
    bonus_type: str  # none | surprising_truth | minority_correct
    explanation: str


def _field(vote: Any, name: str, default=None):
    if isinstance(vote, dict):
        return vote.get(name, default)
    return getattr(vote, name, default)


def calculate_consensus(votes: Iterable[Any]) -> ConsensusInfo:
    """Majority by raw vote count. Ties favour True."""
    true_votes = 0
    total = 0
    for v in votes:
        total += 1
        if _field(v, "vote_value"):
            true_votes += 1
    false_votes = total - true_votes
    strength = max(true_votes, false_votes) / total if total > 0 else 0.5
    return ConsensusInfo(
        true_votes=true_votes,
        false_votes=false_votes,
        total_votes=total,
        consensus_value=true_votes >= false_votes,
        consensus_strength=strength,
        is_consensus_reached=total >= MIN_VOTES_FOR_BAYESIAN,
    )


def calculate_weighted_consensus(votes: Iterable[Any]) -> ConsensusInfo:
    """Majority by summed trust score. A vote without a score counts as 1."""
    true_votes = false_votes = 0
    true_score = false_score = 0.0
    for v in votes:
        score = _field(v, "final_trust_score") or 1.0
        if _field(v, "vote_value"):
            true_votes += 1
            true_score += score
        else:
            false_votes += 1
            false_score += score
    total_score = true_score + false_score
    total = true_votes + false_votes
    return ConsensusInfo(
        true_votes=true_votes,
        false_votes=false_votes,
        total_votes=total,
        consensus_value=true_score >= false_score,
        consensus_strength=(
            max(true_score, false_score) / total_score if total_score > 0 else 0.5
        ),
        is_consensus_reached=total >= MIN_VOTES_FOR_BAYESIAN,
    )


def calculate_bayesian_bonus(
    vote_value: bool,
    predicted_consensus: Optional[bool],
    actual_consensus: bool,
    voter_reputation: float,
    has_enough_votes: bool,
) -> float:
    """Bonus for an informative prediction. First matching rule wins."""
    if predicted_consensus is None or not has_enough_votes:
        return 0.0

    if predicted_consensus == actual_consensus and vote_value != predicted_consensus:
        return voter_reputation * SURPRISING_TRUTH_BONUS

    if predicted_consensus != actual_consensus and vote_value == predicted_consensus:
        return voter_reputation * MINORITY_CORRECT_BONUS

    return 0.0


def preview_bayesian_bonus(
    vote_value: bool,
    predicted_consensus: Optional[bool],
    current: ConsensusInfo,
    voter_reputation: float,
) -> BonusPreview:
    """What bonus a vote would earn against the current consensus."""
    if predicted_consensus is None:
        return BonusPreview(0.0, "none", "Make a prediction to potentially earn a bonus")

    if not current.is_consensus_reached:
        return BonusPreview(
            0.0, "none", f"Bonus applies after {MIN_VOTES_FOR_BAYESIAN} votes"
        )

    bonus = calculate_bayesian_bonus(
        vote_value,
        predicted_consensus,
        current.consensus_value,
        voter_reputation,
        current.is_consensus_reached,
    )
    if bonus <= 0:
        return BonusPreview(0.0, "none", "No bonus for this vote/prediction combination")

    if predicted_consensus == current.consensus_value:
        return BonusPreview(
            bonus,
            "surprising_truth",
            "Surprising Truth bonus: you predicted the crowd but voted differently",
        )
    return BonusPreview(
        bonus,
        "minority_correct",
        "Minority Correct bonus: your minority prediction matched your vote",
    )
