"""
Quadratic voting — vote_weight = √(credits_spent).

Doubling a vote's influence costs four times the credits, so concentrating
a budget on one claim is expensive compared to spreading it honestly.
"""

from __future__ import annotations

import math
from typing import Iterable, Optional

from .constants import MAX_VOTE_CREDITS, MIN_VOTE_CREDITS


def calculate_quadratic_weight(credits_spent: float) -> float:
    """Clamp credits to [1, 100] and return their square root."""
    valid = max(MIN_VOTE_CREDITS, min(MAX_VOTE_CREDITS, credits_spent))
    return math.sqrt(valid)


def credits_needed_for_weight(desired_weight: float) -> int:
    """Credits needed to reach a weight (weight², capped at the maximum)."""
    return min(MAX_VOTE_CREDITS, math.ceil(desired_weight ** 2))


def calculate_group_influence(credits_list: Iterable[float]) -> float:
    """Total quadratic influence of several voters."""
    return sum(calculate_quadratic_weight(c) for c in credits_list)


def calculate_split_efficiency(total_credits: float, num_accounts: int) -> float:
    """Influence ratio of splitting a budget across accounts vs. one account.

    Returns 0.0 for non-positive input.
    """
    if num_accounts <= 0 or total_credits <= 0:
        return 0.0
    single = calculate_quadratic_weight(total_credits)
    per_account = total_credits / num_accounts
    split = calculate_group_influence([per_account] * num_accounts)
    return split / single


def validate_credits(credits) -> tuple[bool, Optional[str]]:
    """Check that credits is a whole number within bounds.

    Returns (valid, error_message).
    """
    if isinstance(credits, bool) or not isinstance(credits, int):
        if not (isinstance(credits, float) and credits.is_integer()):
            return False, "Credits must be a whole number"
    if credits < MIN_VOTE_CREDITS:
        return False, f"Must spend at least {MIN_VOTE_CREDITS} credit"
    if credits > MAX_VOTE_CREDITS:
        return False, f"Cannot spend more than {MAX_VOTE_CREDITS} credits"
    return True, None


def vote_weight_preview(credits: int) -> dict:
    """Weight preview for display: current weight and the cost of doubling it."""
    weight = calculate_quadratic_weight(credits)
    return {
        "credits": credits,
        "weight": weight,
        "weight_formatted": f"{weight:.2f}",
        "double_weight_cost": min(MAX_VOTE_CREDITS, (weight * 2) ** 2),
    }
