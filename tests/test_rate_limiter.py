"""Tests for VoterRateLimiter."""

import threading

import pytest

from murmur.rate_limiter import RateTier, VoterRateLimiter
from murmur.scoring import reputation_tier

VOTER = "ab" * 32


class TestRateTier:
    def test_default_label(self):
        assert RateTier(min_reputation=2.5, votes_per_minute=40).label == "reputation>=2.5"

    def test_custom_label(self):
        assert RateTier(min_reputation=3.0, votes_per_minute=60, label="oracle").label == "oracle"


class TestVoterRateLimiter:
    def test_default_tiers(self):
        limiter = VoterRateLimiter()
        assert [t.label for t in limiter.tiers] == ["oracle", "expert", "trusted", "novice"]

    def test_tier_selection(self):
        limiter = VoterRateLimiter()
        assert limiter.get_tier(5.0).label == "oracle"
        assert limiter.get_tier(3.0).label == "oracle"
        assert limiter.get_tier(2.4).label == "expert"
        assert limiter.get_tier(1.5).label == "trusted"
        assert limiter.get_tier(1.0).label == "novice"
        assert limiter.get_tier(0.1).label == "novice"

    @pytest.mark.parametrize("reputation", [0.1, 1.0, 1.5, 1.99, 2.0, 2.7, 3.0, 5.0])
    def test_tiers_follow_reputation_tier(self, reputation):
        limiter = VoterRateLimiter()
        assert limiter.get_tier(reputation).label == reputation_tier(reputation)["tier"]

    def test_allow_within_burst(self):
        limiter = VoterRateLimiter()
        for i in range(5):
            result = limiter.check(VOTER, reputation=1.0, now=1000.0)
            assert result.allowed, f"Vote {i} should be allowed within burst"
        assert result.remaining == 0

    def test_deny_after_burst(self):
        limiter = VoterRateLimiter()
        for _ in range(5):
            limiter.check(VOTER, reputation=1.0, now=1000.0)
        result = limiter.check(VOTER, reputation=1.0, now=1000.0)
        assert not result.allowed
        assert result.tier.label == "novice"
        # 10 votes/minute refills one token every 6 seconds
        assert result.retry_after == 6.0

    def test_refill_over_time(self):
        limiter = VoterRateLimiter()
        for _ in range(5):
            limiter.check(VOTER, reputation=1.0, now=1000.0)
        assert not limiter.check(VOTER, reputation=1.0, now=1003.0).allowed
        assert limiter.check(VOTER, reputation=1.0, now=1006.5).allowed

    def test_higher_reputation_bigger_burst(self):
        limiter = VoterRateLimiter()
        allowed = sum(limiter.check(VOTER, reputation=4.0, now=1000.0).allowed for _ in range(25))
        assert allowed == 20

    def test_tier_change_resets_bucket(self):
        limiter = VoterRateLimiter()
        for _ in range(5):
            limiter.check(VOTER, reputation=1.0, now=1000.0)
        assert not limiter.check(VOTER, reputation=1.0, now=1000.0).allowed
        promoted = limiter.check(VOTER, reputation=2.0, now=1000.0)
        assert promoted.allowed
        assert promoted.tier.label == "expert"

    def test_voters_are_independent(self):
        limiter = VoterRateLimiter()
        for _ in range(5):
            limiter.check(VOTER, reputation=1.0, now=1000.0)
        assert limiter.check("cd" * 32, reputation=1.0, now=1000.0).allowed

    def test_reset(self):
        limiter = VoterRateLimiter()
        for _ in range(6):
            limiter.check(VOTER, reputation=1.0, now=1000.0)
        limiter.reset(VOTER)
        assert limiter.check(VOTER, reputation=1.0, now=1000.0).allowed

    def test_reset_all_and_stats(self):
        limiter = VoterRateLimiter()
        limiter.check(VOTER, reputation=1.0)
        limiter.check("cd" * 32, reputation=3.5)
        stats = limiter.stats()
        assert stats["total_voters"] == 2
        assert stats["voters"]["cd" * 32]["tier"] == "oracle"
        assert len(stats["tiers"]) == 4
        limiter.reset_all()
        assert limiter.stats()["total_voters"] == 0

    def test_custom_tiers(self):
        limiter = VoterRateLimiter(tiers=[RateTier(0.0, votes_per_minute=1, burst=1, label="strict")])
        assert limiter.check(VOTER, reputation=5.0, now=0.0).allowed
        assert not limiter.check(VOTER, reputation=5.0, now=0.0).allowed

    def test_thread_safety(self):
        limiter = VoterRateLimiter(tiers=[RateTier(0.0, votes_per_minute=60, burst=50)])
        results = []

        def hammer():
            for _ in range(20):
                results.append(limiter.check(VOTER, reputation=1.0, now=1000.0).allowed)

        threads = [threading.Thread(target=hammer) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sum(results) == 50
