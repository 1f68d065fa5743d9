"""Scoring constants shared by the quadratic, Bayesian and reputation modules."""

# Credit bounds for quadratic voting
MIN_VOTE_CREDITS = 1
MAX_VOTE_CREDITS = 100

# Bayesian bonus
MIN_VOTES_FOR_BAYESIAN = 10
SURPRISING_TRUTH_BONUS = 0.5
MINORITY_CORRECT_BONUS = 0.3

# Reputation
DEFAULT_REPUTATION_SCORE = 1.0
MIN_REPUTATION_SCORE = 0.1
MAX_REPUTATION_SCORE = 5.0
REPUTATION_DECAY_FACTOR = 0.9  # weight of the old reputation in the moving average
ACCURACY_WEIGHT = 0.1  # weight of recent accuracy in the moving average
MIN_VOTES_FOR_REPUTATION_UPDATE = 5
