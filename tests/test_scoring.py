"""Tests for murmur.scoring — per-vote trust score and claim aggregate."""

import pytest

from murmur.errors import InvalidCredits, ValidationError
from murmur.scoring import calculate_aggregate_truth_score, calculate_trust_score


def prior(true_count, false_count):
    return [{"vote_value": True}] * true_count + [{"vote_value": False}] * false_count


class TestTrustScore:
    def test_no_prior_votes(self):
        s = calculate_trust_score(25, True, 1.0, [])
        assert s.quadratic_weight == 5.0
        assert s.bayesian_bonus == 0.0
        assert s.final_trust_score == 5.0

    def test_reputation_scales(self):
        s = calculate_trust_score(16, False, 2.5, [])
        assert s.effective_influence == pytest.approx(10.0)
        assert s.final_trust_score == pytest.approx(10.0)

    def test_bonus_requires_ten_prior_votes(self):
        s = calculate_trust_score(4, False, 1.0, prior(9, 0), predicted_consensus=True)
        assert s.bayesian_bonus == 0.0

    def test_surprising_truth_bonus(self):
        s = calculate_trust_score(4, False, 1.0, prior(7, 3), predicted_consensus=True)
        assert s.bayesian_bonus == pytest.approx(0.5)
        assert s.final_trust_score == pytest.approx(2.5)

    def test_minority_correct_bonus(self):
        s = calculate_trust_score(4, False, 2.0, prior(7, 3), predicted_consensus=False)
        assert s.bayesian_bonus == pytest.approx(0.6)
        assert s.final_trust_score == pytest.approx(4.6)

    @pytest.mark.parametrize("credits", [0, 101, 3.5, True])
    def test_invalid_credits(self, credits):
        with pytest.raises(InvalidCredits):
            calculate_trust_score(credits, True, 1.0, [])

    def test_invalid_credits_maps_to_400(self):
        with pytest.raises(ValidationError) as exc:
            calculate_trust_score(0, True, 1.0, [])
        assert exc.value.status_code == 400
        assert exc.value.code == "InvalidCredits"


class TestAggregate:
    def test_signed_sum(self):
        vs = [
            {"vote_value": True, "final_trust_score": 5.0},
            {"vote_value": False, "final_trust_score": 8.0},
        ]
        assert calculate_aggregate_truth_score(vs) == pytest.approx(-3.0)

    def test_empty(self):
        assert calculate_aggregate_truth_score([]) == 0.0
