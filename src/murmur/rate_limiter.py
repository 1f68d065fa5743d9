"""VoterRateLimiter — vote-casting limits keyed on voter reputation.

Higher reputation = more votes per minute. New voters start at the default
reputation (1.0) and land in the "novice" tier, matching reputation_tier().

The limiter is an ordinary object: the API receives one through
create_app(rate_limiter=...) and tests build their own.

Usage:
    limiter = VoterRateLimiter()
    result = limiter.check(voter_id, reputation=2.4)
    if not result.allowed:
        return 429, {"retry_after": result.retry_after}
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from murmur.scoring.reputation import REPUTATION_TIERS


@dataclass
class RateTier:
    """A rate limit tier based on a reputation threshold."""
    min_reputation: float
    votes_per_minute: int
    burst: int = 5
    label: str = ""

    def __post_init__(self):
        if not self.label:
            self.label = f"reputation>={self.min_reputation}"


@dataclass
class RateCheckResult:
    allowed: bool
    tier: RateTier
    remaining: int
    retry_after: float = 0.0
    voter_id: str = ""
    reputation: float = 0.0


@dataclass
class _VoterBucket:
    """Token bucket for a single voter."""
    tokens: float
    max_tokens: int
    refill_rate: float  # tokens per second
    last_refill: float = 0.0

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, now: float) -> bool:
        self.refill(now)
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False

    def time_until_available(self, now: float) -> float:
        self.refill(now)
        if self.tokens >= 1.0:
            return 0.0
        if self.refill_rate <= 0:
            return float("inf")
        return (1.0 - self.tokens) / self.refill_rate


# Votes per minute and burst per reputation tier
TIER_RATES = {
    "oracle": (60, 20),
    "expert": (30, 10),
    "trusted": (20, 8),
    "novice": (10, 5),
}


def default_tiers() -> list[RateTier]:
    """Rate tiers on the same thresholds and names as reputation_tier()."""
    tiers = []
    for name, _label, min_score in REPUTATION_TIERS:
        votes_per_minute, burst = TIER_RATES[name]
        tiers.append(RateTier(min_reputation=min_score, votes_per_minute=votes_per_minute,
                              burst=burst, label=name))
    return tiers


class VoterRateLimiter:
    """Token bucket per voter; the tier is re-selected on every check
    since reputation moves between votes."""

    def __init__(self, tiers: Optional[list[RateTier]] = None):
        self._tiers = sorted(tiers or default_tiers(),
                             key=lambda t: t.min_reputation, reverse=True)
        self._buckets: dict[str, _VoterBucket] = {}
        self._voter_tiers: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def tiers(self) -> list[RateTier]:
        return list(self._tiers)

    def get_tier(self, reputation: float) -> RateTier:
        for tier in self._tiers:
            if reputation >= tier.min_reputation:
                return tier
        return self._tiers[-1]

    def _bucket_for(self, voter_id: str, tier: RateTier, now: float) -> _VoterBucket:
        if voter_id in self._buckets and self._voter_tiers.get(voter_id) == tier.label:
            return self._buckets[voter_id]

        # New voter or tier changed
        bucket = _VoterBucket(
            tokens=float(tier.burst),
            max_tokens=tier.burst,
            refill_rate=tier.votes_per_minute / 60.0,
            last_refill=now,
        )
        self._buckets[voter_id] = bucket
        self._voter_tiers[voter_id] = tier.label
        return bucket

    def check(self, voter_id: str, reputation: float,
              now: Optional[float] = None) -> RateCheckResult:
        """Consume one token for voter_id if available.

        Args:
            voter_id: Voter nullifier
            reputation: Current reputation (0.1 - 5.0)
            now: Current timestamp (defaults to time.time())
        """
        if now is None:
            now = time.time()

        tier = self.get_tier(reputation)
        with self._lock:
            bucket = self._bucket_for(voter_id, tier, now)
            allowed = bucket.consume(now)
            remaining = int(bucket.tokens)
            retry_after = 0.0 if allowed else bucket.time_until_available(now)

        return RateCheckResult(
            allowed=allowed,
            tier=tier,
            remaining=remaining,
            retry_after=round(retry_after, 3),
            voter_id=voter_id,
            reputation=reputation,
        )

    def reset(self, voter_id: str) -> None:
        with self._lock:
            self._buckets.pop(voter_id, None)
            self._voter_tiers.pop(voter_id, None)

    def reset_all(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._voter_tiers.clear()

    def stats(self) -> dict:
        now = time.time()
        voters = {}
        with self._lock:
            for voter_id, bucket in self._buckets.items():
                bucket.refill(now)
                voters[voter_id] = {
                    "tier": self._voter_tiers.get(voter_id, "novice"),
                    "remaining_tokens": round(bucket.tokens, 1),
                    "max_tokens": bucket.max_tokens,
                }
        return {
            "total_voters": len(voters),
            "tiers": [
                {"label": t.label, "min_reputation": t.min_reputation,
                 "vpm": t.votes_per_minute, "burst": t.burst}
                for t in self._tiers
            ],
            "voters": voters,
        }


__all__ = ["VoterRateLimiter", "RateTier", "RateCheckResult", "TIER_RATES", "default_tiers"]
