"""
Quadratic Bayesian Scoring.

    trust_score = quadratic_weight × reputation + bayesian_bonus
    aggregate   = Σ (vote_value ? trust_score : −trust_score)

Pure functions only: nothing in this package touches persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from murmur.errors import InvalidCredits

from .bayesian import (
    BonusPreview,
    ConsensusInfo,
    calculate_bayesian_bonus,
    calculate_consensus,
    calculate_weighted_consensus,
    preview_bayesian_bonus,
)
from .constants import (
    DEFAULT_REPUTATION_SCORE,
    MAX_REPUTATION_SCORE,
    MAX_VOTE_CREDITS,
    MIN_REPUTATION_SCORE,
    MIN_VOTE_CREDITS,
    MIN_VOTES_FOR_BAYESIAN,
    MIN_VOTES_FOR_REPUTATION_UPDATE,
)
from .quadratic import (
    calculate_group_influence,
    calculate_quadratic_weight,
    calculate_split_efficiency,
    credits_needed_for_weight,
    validate_credits,
    vote_weight_preview,
)
from .reputation import (
    AccuracySample,
    ReputationUpdate,
    calculate_accuracy_score,
    calculate_effective_influence,
    calculate_new_reputation,
    clamp_reputation,
    preview_reputation_change,
    REPUTATION_TIERS,
    reputation_tier,
    update_reputation,
)


@dataclass(frozen=True)
class TrustScore:
    quadratic_weight: float
    bayesian_bonus: float
    final_trust_score: float
    effective_influence: float
    consensus: ConsensusInfo


def calculate_trust_score(
    credits_spent: int,
    vote_value: bool,
    voter_reputation: float,
    existing_votes: Iterable[Any],
    predicted_consensus: Optional[bool] = None,
) -> TrustScore:
    """Score a single vote against the votes already cast on the claim.

    Raises InvalidCredits for out-of-range or fractional credits.
    """
    ok, error = validate_credits(credits_spent)
    if not ok:
        raise InvalidCredits(error)

    weight = calculate_quadratic_weight(credits_spent)
    consensus = calculate_consensus(existing_votes)
    bonus = calculate_bayesian_bonus(
        vote_value,
        predicted_consensus,
        consensus.consensus_value,
        voter_reputation,
        consensus.is_consensus_reached,
    )
    influence = calculate_effective_influence(weight, voter_reputation)
    return TrustScore(
        quadratic_weight=weight,
        bayesian_bonus=bonus,
        final_trust_score=influence + bonus,
        effective_influence=influence,
        consensus=consensus,
    )


def calculate_aggregate_truth_score(votes: Iterable[Any]) -> float:
    """Signed sum of trust scores: True votes add, False votes subtract."""
    total = 0.0
    for v in votes:
        if isinstance(v, dict):
            value, score = v["vote_value"], v["final_trust_score"]
        else:
            value, score = v.vote_value, v.final_trust_score
        total += score if value else -score
    return total


__all__ = [
    "AccuracySample",
    "BonusPreview",
    "ConsensusInfo",
    "ReputationUpdate",
    "TrustScore",
    "DEFAULT_REPUTATION_SCORE",
    "MAX_REPUTATION_SCORE",
    "MAX_VOTE_CREDITS",
    "MIN_REPUTATION_SCORE",
    "MIN_VOTE_CREDITS",
    "MIN_VOTES_FOR_BAYESIAN",
    "MIN_VOTES_FOR_REPUTATION_UPDATE",
    "calculate_accuracy_score",
    "calculate_aggregate_truth_score",
    "calculate_bayesian_bonus",
    "calculate_consensus",
    "calculate_effective_influence",
    "calculate_group_influence",
    "calculate_new_reputation",
    "calculate_quadratic_weight",
    "calculate_split_efficiency",
    "calculate_trust_score",
    "calculate_weighted_consensus",
    "clamp_reputation",
    "credits_needed_for_weight",
    "preview_bayesian_bonus",
    "preview_reputation_change",
    "REPUTATION_TIERS",
    "reputation_tier",
    "update_reputation",
    "validate_credits",
    "vote_weight_preview",
]
