"""
Reputation — a bounded, slowly adapting multiplier on vote influence.

    new = clamp(old × 0.9 + accuracy × 0.1, 0.1, 5.0)

Accuracy is the share of a voter's recent votes that matched the claim's
consensus. Fewer than five samples leaves reputation unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from .constants import (
    ACCURACY_WEIGHT,
    DEFAULT_REPUTATION_SCORE,
    MAX_REPUTATION_SCORE,
    MIN_REPUTATION_SCORE,
    MIN_VOTES_FOR_REPUTATION_UPDATE,
    REPUTATION_DECAY_FACTOR,
)


@dataclass(frozen=True)
class AccuracySample:
    vote_value: bool
    claim_consensus: bool


@dataclass(frozen=True)
class ReputationUpdate:
    previous_reputation: float
    new_reputation: float
    accuracy_score: float
    votes_analyzed: int
    correct_votes: int
    change: float

    def to_dict(self) -> dict:
        return {
            "previous_reputation": self.previous_reputation,
            "new_reputation": self.new_reputation,
            "accuracy_score": self.accuracy_score,
            "votes_analyzed": self.votes_analyzed,
            "correct_votes": self.correct_votes,
            "change": self.change,
        }


def clamp_reputation(value: float) -> float:
    return max(MIN_REPUTATION_SCORE, min(MAX_REPUTATION_SCORE, value))


def _is_correct(sample: Any) -> bool:
    if isinstance(sample, dict):
        return sample["vote_value"] == sample["claim_consensus"]
    return sample.vote_value == sample.claim_consensus


def calculate_accuracy_score(samples: Sequence[Any]) -> float:
    """Share of correct votes; 0.5 (neutral) when there are none."""
    if not samples:
        return 0.5
    correct = sum(1 for s in samples if _is_correct(s))
    return correct / len(samples)


def calculate_new_reputation(current: float, accuracy: float) -> float:
    return clamp_reputation(current * REPUTATION_DECAY_FACTOR + accuracy * ACCURACY_WEIGHT)


def update_reputation(current: float, samples: Sequence[Any]) -> ReputationUpdate:
    """Apply one moving-average step from recent accuracy samples."""
    if len(samples) < MIN_VOTES_FOR_REPUTATION_UPDATE:
        return ReputationUpdate(
            previous_reputation=current,
            new_reputation=current,
            accuracy_score=0.0,
            votes_analyzed=len(samples),
            correct_votes=0,
            change=0.0,
        )

    correct = sum(1 for s in samples if _is_correct(s))
    accuracy = correct / len(samples)
    new = calculate_new_reputation(current, accuracy)
    return ReputationUpdate(
        previous_reputation=current,
        new_reputation=new,
        accuracy_score=accuracy,
        votes_analyzed=len(samples),
        correct_votes=correct,
        change=new - current,
    )


# Display tiers, highest first: (tier, label, min_score)
REPUTATION_TIERS = (
    ("oracle", "Oracle", 3.0),
    ("expert", "Expert", 2.0),
    ("trusted", "Trusted", 1.5),
    ("novice", "Novice", 0.0),
)


def reputation_tier(reputation: float) -> dict:
    """Display tier for a reputation value."""
    last = len(REPUTATION_TIERS) - 1
    for index, (tier, label, min_score) in enumerate(REPUTATION_TIERS):
        if reputation >= min_score or index == last:
            next_score = REPUTATION_TIERS[index - 1][2] if index else None
            return {"tier": tier, "label": label, "min_score": min_score,
                    "next_tier_score": next_score}


def calculate_effective_influence(quadratic_weight: float, reputation: float) -> float:
    return quadratic_weight * reputation


def default_reputation() -> float:
    return DEFAULT_REPUTATION_SCORE


def preview_reputation_change(current: float, simulated_accuracy: float) -> dict:
    projected = calculate_new_reputation(current, simulated_accuracy)
    change = projected - current
    return {
        "current_reputation": current,
        "projected_reputation": projected,
        "change": change,
        "percent_change": (change / current) * 100 if current > 0 else 0.0,
    }
