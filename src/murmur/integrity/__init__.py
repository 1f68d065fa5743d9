"""State commitment and integrity checks for claim scores."""

from murmur.integrity.merkle import (
    EMPTY_ROOT,
    MerkleTree,
    Snapshot,
    build_snapshot,
    detect_violation,
    hour_key,
    leaf_hash,
    percent_variance,
    verify_proof,
)
from murmur.integrity.scheduler import (
    CommitmentScheduler,
    next_commitment_time,
    time_until_next_commitment,
)
from murmur.integrity.commitments import CommitmentService, CommitmentVerification
from murmur.integrity.violations import CommitmentRef, IntegrityCheck, Violation, ViolationDetector
from murmur.integrity.revert import BulkRevertResult, RevertResult, StateReverter

__all__ = [
    "EMPTY_ROOT",
    "MerkleTree",
    "Snapshot",
    "build_snapshot",
    "detect_violation",
    "hour_key",
    "leaf_hash",
    "percent_variance",
    "verify_proof",
    "CommitmentScheduler",
    "next_commitment_time",
    "time_until_next_commitment",
    "CommitmentService",
    "CommitmentVerification",
    "CommitmentRef",
    "IntegrityCheck",
    "Violation",
    "ViolationDetector",
    "BulkRevertResult",
    "RevertResult",
    "StateReverter",
]
