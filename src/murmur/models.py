"""
murmur.models — Persisted entities: voters, claims, votes and commitments.

Plain dataclasses with to_dict()/from_dict(); the store owns persistence and
the services own every mutation.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from murmur.errors import InvalidIdentifier
from murmur.scoring.constants import DEFAULT_REPUTATION_SCORE

VOTER_ID_LENGTH = 64
_VOTER_ID_RE = re.compile(r"^[0-9a-f]{64}$")
_ENTITY_ID_RE = re.compile(r"^[A-Za-z0-9_\-:.]{1,128}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def from_iso(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def validate_voter_id(voter_id: str) -> str:
    """Voter ids are opaque 64-char lowercase hex nullifiers."""
    if not isinstance(voter_id, str) or not _VOTER_ID_RE.match(voter_id):
        raise InvalidIdentifier(
            f"voter_id must be {VOTER_ID_LENGTH} lowercase hex characters"
        )
    return voter_id


def validate_entity_id(value: str, name: str = "id") -> str:
    if not isinstance(value, str) or not _ENTITY_ID_RE.match(value):
        raise InvalidIdentifier(f"Malformed {name}")
    return value


class ClaimStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    ARCHIVED = "archived"


@dataclass
class Voter:
    voter_id: str
    reputation: float = DEFAULT_REPUTATION_SCORE
    created_at: datetime = field(default_factory=utcnow)
    last_active: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "voter_id": self.voter_id,
            "reputation": self.reputation,
            "created_at": to_iso(self.created_at),
            "last_active": to_iso(self.last_active),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Voter":
        return cls(
            voter_id=data["voter_id"],
            reputation=float(data.get("reputation", DEFAULT_REPUTATION_SCORE)),
            created_at=from_iso(data.get("created_at")) or utcnow(),
            last_active=from_iso(data.get("last_active")) or utcnow(),
        )


@dataclass
class Claim:
    claim_id: str
    content: str = ""
    aggregate_score: float = 0.0
    total_votes: int = 0
    true_votes: int = 0
    false_votes: int = 0
    status: ClaimStatus = ClaimStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == ClaimStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "claim_id": self.claim_id,
            "content": self.content,
            "aggregate_score": self.aggregate_score,
            "total_votes": self.total_votes,
            "true_votes": self.true_votes,
            "false_votes": self.false_votes,
            "status": self.status.value,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Claim":
        return cls(
            claim_id=data["claim_id"],
            content=data.get("content", ""),
            aggregate_score=float(data.get("aggregate_score", 0.0)),
            total_votes=int(data.get("total_votes", 0)),
            true_votes=int(data.get("true_votes", 0)),
            false_votes=int(data.get("false_votes", 0)),
            status=ClaimStatus(data.get("status", "active")),
            created_at=from_iso(data.get("created_at")) or utcnow(),
            updated_at=from_iso(data.get("updated_at")) or utcnow(),
        )


@dataclass
class ClaimDependency:
    """Edge between two claims; zeroed when either end is deleted."""
    parent_claim_id: str
    child_claim_id: str
    influence_weight: float = 1.0


@dataclass
class Vote:
    claim_id: str
    voter_id: str
    vote_value: bool
    credits_spent: int
    predicted_consensus: Optional[bool] = None
    quadratic_weight: float = 0.0
    bayesian_bonus: float = 0.0
    final_trust_score: float = 0.0
    vote_id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "vote_id": self.vote_id,
            "claim_id": self.claim_id,
            "voter_id": self.voter_id,
            "vote_value": self.vote_value,
            "credits_spent": self.credits_spent,
            "predicted_consensus": self.predicted_consensus,
            "quadratic_weight": self.quadratic_weight,
            "bayesian_bonus": self.bayesian_bonus,
            "final_trust_score": self.final_trust_score,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Vote":
        predicted = data.get("predicted_consensus")
        return cls(
            vote_id=data.get("vote_id") or new_id(),
            claim_id=data["claim_id"],
            voter_id=data["voter_id"],
            vote_value=bool(data["vote_value"]),
            credits_spent=int(data["credits_spent"]),
            predicted_consensus=None if predicted is None else bool(predicted),
            quadratic_weight=float(data.get("quadratic_weight", 0.0)),
            bayesian_bonus=float(data.get("bayesian_bonus", 0.0)),
            final_trust_score=float(data.get("final_trust_score", 0.0)),
            created_at=from_iso(data.get("created_at")) or utcnow(),
        )


@dataclass(frozen=True)
class CommitmentEntry:
    claim_id: str
    score: float
    leaf_hash: str

    def to_dict(self) -> dict:
        return {"claim_id": self.claim_id, "score": self.score, "leaf_hash": self.leaf_hash}

    @classmethod
    def from_dict(cls, data: dict) -> "CommitmentEntry":
        return cls(
            claim_id=data["claim_id"],
            score=float(data["score"]),
            leaf_hash=data["leaf_hash"],
        )


@dataclass
class Commitment:
    """Hourly Merkle snapshot of every non-deleted claim's score."""
    hour_key: str
    timestamp: datetime
    root_hash: str
    entries: list[CommitmentEntry] = field(default_factory=list)
    verified: bool = False
    signature: Optional[str] = None
    signer_public_key: Optional[str] = None
    commitment_id: str = field(default_factory=new_id)

    @property
    def rumor_count(self) -> int:
        return len(self.entries)

    @property
    def snapshot_time(self) -> int:
        """Unix seconds hashed into every leaf."""
        return int(self.timestamp.timestamp())

    def entry_for(self, claim_id: str) -> Optional[CommitmentEntry]:
        for entry in self.entries:
            if entry.claim_id == claim_id:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "commitment_id": self.commitment_id,
            "hour_key": self.hour_key,
            "timestamp": to_iso(self.timestamp),
            "root_hash": self.root_hash,
            "rumor_count": self.rumor_count,
            "entries": [e.to_dict() for e in self.entries],
            "verified": self.verified,
            "signature": self.signature,
            "signer_public_key": self.signer_public_key,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Commitment":
        return cls(
            commitment_id=data.get("commitment_id") or new_id(),
            hour_key=data["hour_key"],
            timestamp=from_iso(data["timestamp"]),
            root_hash=data["root_hash"],
            entries=[CommitmentEntry.from_dict(e) for e in data.get("entries", [])],
            verified=bool(data.get("verified", False)),
            signature=data.get("signature"),
            signer_public_key=data.get("signer_public_key"),
        )


__all__ = [
    "ClaimStatus",
    "Voter",
    "Claim",
    "ClaimDependency",
    "Vote",
    "CommitmentEntry",
    "Commitment",
    "utcnow",
    "new_id",
    "validate_voter_id",
    "validate_entity_id",
]
