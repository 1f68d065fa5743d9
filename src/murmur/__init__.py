"""murmur — Quadratic, prediction-aware trust scoring for anonymous rumors,
with hourly Merkle commitments to detect and undo score tampering."""

__version__ = "0.1.0"

from murmur.errors import (
    MurmurError, ValidationError, ConflictError, NotFoundError, StorageError,
    InvalidCredits, InvalidIdentifier, AlreadyVoted, ClaimNotActive,
    DuplicateCommitment, ClaimNotFound, VoterNotFound, CommitmentNotFound,
    ClaimNotInCommitment,
)
from murmur.models import Voter, Claim, ClaimStatus, ClaimDependency, Vote, Commitment, CommitmentEntry
from murmur.storage import TrustStore, MemoryStore, SQLiteStore
from murmur.audit import AuditTrail, AuditEntry, AuditEventType
from murmur.votes import VoteService, CastVoteResult
from murmur.integrity import (
    CommitmentService, CommitmentScheduler, ViolationDetector, StateReverter,
    MerkleTree, build_snapshot, hour_key,
)
from murmur.rate_limiter import VoterRateLimiter, RateTier, RateCheckResult
from murmur.config import Settings
from murmur.engine import TrustEngine, nullifier

__all__ = [
    "__version__",
    "MurmurError", "ValidationError", "ConflictError", "NotFoundError", "StorageError",
    "InvalidCredits", "InvalidIdentifier", "AlreadyVoted", "ClaimNotActive",
    "DuplicateCommitment", "ClaimNotFound", "VoterNotFound", "CommitmentNotFound",
    "ClaimNotInCommitment",
    "Voter", "Claim", "ClaimStatus", "ClaimDependency", "Vote", "Commitment", "CommitmentEntry",
    "TrustStore", "MemoryStore", "SQLiteStore",
    "AuditTrail", "AuditEntry", "AuditEventType",
    "VoteService", "CastVoteResult",
    "CommitmentService", "CommitmentScheduler", "ViolationDetector", "StateReverter",
    "MerkleTree", "build_snapshot", "hour_key",
    "VoterRateLimiter", "RateTier", "RateCheckResult",
    "Settings",
    "TrustEngine", "nullifier",
]
