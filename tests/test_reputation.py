"""Tests for murmur.scoring.reputation — moving-average reputation."""

import random

import pytest

from murmur.scoring.reputation import (
    AccuracySample,
    calculate_accuracy_score,
    calculate_effective_influence,
    calculate_new_reputation,
    clamp_reputation,
    default_reputation,
    preview_reputation_change,
    reputation_tier,
    update_reputation,
)


def samples(correct, wrong):
    return [AccuracySample(True, True)] * correct + [AccuracySample(True, False)] * wrong


class TestAccuracy:
    def test_empty_is_neutral(self):
        assert calculate_accuracy_score([]) == 0.5

    def test_share_correct(self):
        assert calculate_accuracy_score(samples(3, 1)) == pytest.approx(0.75)

    def test_dict_samples(self):
        s = [{"vote_value": False, "claim_consensus": False}, {"vote_value": True, "claim_consensus": False}]
        assert calculate_accuracy_score(s) == pytest.approx(0.5)


class TestUpdateReputation:
    def test_too_few_samples_is_noop(self):
        u = update_reputation(2.0, samples(4, 0))
        assert u.new_reputation == 2.0
        assert u.change == 0.0
        assert u.votes_analyzed == 4

    def test_moving_average(self):
        u = update_reputation(2.0, samples(4, 1))
        assert u.accuracy_score == pytest.approx(0.8)
        assert u.new_reputation == pytest.approx(2.0 * 0.9 + 0.8 * 0.1)
        assert u.correct_votes == 4
        assert u.change == pytest.approx(u.new_reputation - 2.0)

    def test_floor(self):
        assert update_reputation(0.1, samples(0, 5)).new_reputation == 0.1

    def test_ceiling(self):
        assert calculate_new_reputation(5.0, 1.0) <= 5.0
        assert clamp_reputation(7.3) == 5.0
        assert clamp_reputation(-1) == 0.1

    def test_bounded_under_random_sequences(self):
        rng = random.Random(42)
        rep = default_reputation()
        for _ in range(500):
            n = rng.randint(0, 12)
            batch = [AccuracySample(rng.random() < 0.5, rng.random() < 0.5) for _ in range(n)]
            rep = update_reputation(rep, batch).new_reputation
            assert 0.1 <= rep <= 5.0

    def test_to_dict(self):
        d = update_reputation(1.0, samples(5, 0)).to_dict()
        assert set(d) == {"previous_reputation", "new_reputation", "accuracy_score",
                          "votes_analyzed", "correct_votes", "change"}


class TestTiersAndPreview:
    @pytest.mark.parametrize("rep,tier", [(0.1, "novice"), (1.49, "novice"), (1.5, "trusted"),
                                          (2.0, "expert"), (3.0, "oracle"), (5.0, "oracle")])
    def test_tier(self, rep, tier):
        assert reputation_tier(rep)["tier"] == tier

    def test_tier_bounds(self):
        assert reputation_tier(2.4) == {"tier": "expert", "label": "Expert",
                                        "min_score": 2.0, "next_tier_score": 3.0}
        assert reputation_tier(3.0)["next_tier_score"] is None
        assert reputation_tier(0.0)["next_tier_score"] == 1.5

    def test_effective_influence(self):
        assert calculate_effective_influence(5.0, 1.5) == pytest.approx(7.5)

    def test_preview_change(self):
        p = preview_reputation_change(1.0, 1.0)
        assert p["projected_reputation"] == pytest.approx(1.0)
        p = preview_reputation_change(2.0, 0.0)
        assert p["projected_reputation"] == pytest.approx(1.8)
        assert p["percent_change"] == pytest.approx(-10.0)
