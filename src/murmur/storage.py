"""
murmur.storage — Persistence backends for voters, claims, votes, commitments
and the audit log.

Backends: MemoryStore (tests, single process), SQLiteStore (WAL, thread-safe)

Both backends guarantee:
- (claim_id, voter_id) uniqueness is enforced by the insert itself
  (insert-or-fail), never by a separate read
- claim_transaction(claim_id) serialises read-recompute-write cycles on one
  claim and rolls back every write made inside it on error
- hour_key uniqueness on commitments
- audit entries are append-only and unique per sequence number

The store has no hooks: it never recomputes scores on its own.
"""

from __future__ import annotations

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from murmur.audit import AuditEntry
from murmur.errors import (
    AlreadyVoted,
    ClaimNotFound,
    ConflictError,
    DuplicateCommitment,
    StorageError,
    VoterNotFound,
)
from murmur.models import (
    Claim,
    ClaimDependency,
    ClaimStatus,
    Commitment,
    CommitmentEntry,
    Vote,
    Voter,
    from_iso,
    to_iso,
)


# ─── Abstract Store ────────────────────────────────────────────────

class TrustStore(ABC):
    """Abstract persistence interface."""

    # Voters
    @abstractmethod
    def add_voter(self, voter: Voter) -> Voter: ...

    @abstractmethod
    def get_voter(self, voter_id: str) -> Optional[Voter]: ...

    @abstractmethod
    def update_voter(self, voter: Voter) -> None: ...

    @abstractmethod
    def touch_voter(self, voter_id: str, when: datetime) -> None:
        """Set last_active only; reputation is left as stored."""

    # Claims
    @abstractmethod
    def add_claim(self, claim: Claim) -> Claim: ...

    @abstractmethod
    def get_claim(self, claim_id: str) -> Optional[Claim]: ...

    @abstractmethod
    def update_claim(self, claim: Claim) -> None: ...

    @abstractmethod
    def list_claims(self, include_deleted: bool = False) -> list[Claim]: ...

    @abstractmethod
    def add_dependency(self, dep: ClaimDependency) -> None: ...

    @abstractmethod
    def list_dependencies(self, claim_id: str) -> list[ClaimDependency]: ...

    @abstractmethod
    def zero_dependencies(self, claim_id: str) -> int: ...

    # Votes
    @abstractmethod
    def insert_vote(self, vote: Vote) -> Vote:
        """Insert or raise AlreadyVoted."""

    @abstractmethod
    def get_vote(self, claim_id: str, voter_id: str) -> Optional[Vote]: ...

    @abstractmethod
    def delete_vote(self, claim_id: str, voter_id: str) -> Optional[Vote]: ...

    @abstractmethod
    def list_votes(self, claim_id: str) -> list[Vote]: ...

    @abstractmethod
    def list_votes_by_voter(self, voter_id: str, limit: int = 100) -> list[Vote]:
        """Newest first."""

    # Commitments
    @abstractmethod
    def insert_commitment(self, commitment: Commitment) -> Commitment:
        """Insert or raise DuplicateCommitment for an existing hour_key."""

    @abstractmethod
    def get_commitment(self, commitment_id: str) -> Optional[Commitment]: ...

    @abstractmethod
    def get_commitment_by_hour(self, hour_key: str) -> Optional[Commitment]: ...

    @abstractmethod
    def list_commitments(self, since: Optional[datetime] = None,
                         verified_only: bool = False,
                         limit: Optional[int] = None) -> list[Commitment]:
        """Newest first."""

    # Audit
    @abstractmethod
    def append_audit_entry(self, entry: AuditEntry) -> None:
        """Persist one entry or raise ConflictError if its sequence is taken."""

    @abstractmethod
    def list_audit_entries(self) -> list[AuditEntry]:
        """All entries in sequence order."""

    # Transactions
    @abstractmethod
    def claim_transaction(self, claim_id: str):
        """Context manager: exclusive, all-or-nothing section for one claim."""

    def get_claim_or_raise(self, claim_id: str) -> Claim:
        claim = self.get_claim(claim_id)
        if claim is None:
            raise ClaimNotFound(f"Rumor {claim_id} not found")
        return claim

    def get_voter_or_raise(self, voter_id: str) -> Voter:
        voter = self.get_voter(voter_id)
        if voter is None:
            raise VoterNotFound()
        return voter

    def close(self) -> None:
        pass


# ─── Memory Store ──────────────────────────────────────────────────

class MemoryStore(TrustStore):
    """In-memory store with per-claim locks."""

    def __init__(self):
        self._voters: dict[str, Voter] = {}
        self._claims: dict[str, Claim] = {}
        self._deps: list[ClaimDependency] = []
        self._votes: dict[tuple[str, str], Vote] = {}
        self._commitments: dict[str, Commitment] = {}
        self._by_hour: dict[str, str] = {}
        self._audit: list[AuditEntry] = []
        self._lock = threading.RLock()
        self._claim_locks: dict[str, threading.RLock] = {}

    def _claim_lock(self, claim_id: str) -> threading.RLock:
        with self._lock:
            return self._claim_locks.setdefault(claim_id, threading.RLock())

    @contextmanager
    def claim_transaction(self, claim_id: str) -> Iterator[None]:
        with self._claim_lock(claim_id):
            with self._lock:
                claim_before = copy.deepcopy(self._claims.get(claim_id))
                votes_before = {k: v for k, v in self._votes.items() if k[0] == claim_id}
            try:
                yield
            except BaseException:
                with self._lock:
                    if claim_before is not None:
                        self._claims[claim_id] = claim_before
                    for key in [k for k in self._votes if k[0] == claim_id]:
                        del self._votes[key]
                    self._votes.update(votes_before)
                raise

    # Voters

    def add_voter(self, voter: Voter) -> Voter:
        with self._lock:
            if voter.voter_id in self._voters:
                raise ConflictError("Voter already registered")
            self._voters[voter.voter_id] = copy.deepcopy(voter)
        return voter

    def get_voter(self, voter_id: str) -> Optional[Voter]:
        with self._lock:
            voter = self._voters.get(voter_id)
            return copy.deepcopy(voter) if voter else None

    def update_voter(self, voter: Voter) -> None:
        with self._lock:
            if voter.voter_id not in self._voters:
                raise VoterNotFound()
            self._voters[voter.voter_id] = copy.deepcopy(voter)

    def touch_voter(self, voter_id: str, when: datetime) -> None:
        with self._lock:
            voter = self._voters.get(voter_id)
            if voter is None:
                raise VoterNotFound()
            voter.last_active = when

    # Claims

    def add_claim(self, claim: Claim) -> Claim:
        with self._lock:
            if claim.claim_id in self._claims:
                raise ConflictError("Rumor already exists")
            self._claims[claim.claim_id] = copy.deepcopy(claim)
        return claim

    def get_claim(self, claim_id: str) -> Optional[Claim]:
        with self._lock:
            claim = self._claims.get(claim_id)
            return copy.deepcopy(claim) if claim else None

    def update_claim(self, claim: Claim) -> None:
        with self._lock:
            if claim.claim_id not in self._claims:
                raise ClaimNotFound()
            self._claims[claim.claim_id] = copy.deepcopy(claim)

    def list_claims(self, include_deleted: bool = False) -> list[Claim]:
        with self._lock:
            return [
                copy.deepcopy(c) for c in self._claims.values()
                if include_deleted or c.status != ClaimStatus.DELETED
            ]

    def add_dependency(self, dep: ClaimDependency) -> None:
        with self._lock:
            self._deps.append(copy.deepcopy(dep))

    def list_dependencies(self, claim_id: str) -> list[ClaimDependency]:
        with self._lock:
            return [
                copy.deepcopy(d) for d in self._deps
                if claim_id in (d.parent_claim_id, d.child_claim_id)
            ]

    def zero_dependencies(self, claim_id: str) -> int:
        count = 0
        with self._lock:
            for d in self._deps:
                if claim_id in (d.parent_claim_id, d.child_claim_id):
                    d.influence_weight = 0.0
                    count += 1
        return count

    # Votes

    def insert_vote(self, vote: Vote) -> Vote:
        key = (vote.claim_id, vote.voter_id)
        with self._lock:
            if key in self._votes:
                raise AlreadyVoted()
            self._votes[key] = copy.deepcopy(vote)
        return vote

    def get_vote(self, claim_id: str, voter_id: str) -> Optional[Vote]:
        with self._lock:
            vote = self._votes.get((claim_id, voter_id))
            return copy.deepcopy(vote) if vote else None

    def delete_vote(self, claim_id: str, voter_id: str) -> Optional[Vote]:
        with self._lock:
            return self._votes.pop((claim_id, voter_id), None)

    def list_votes(self, claim_id: str) -> list[Vote]:
        with self._lock:
            votes = [copy.deepcopy(v) for (cid, _), v in self._votes.items() if cid == claim_id]
        return sorted(votes, key=lambda v: v.created_at)

    def list_votes_by_voter(self, voter_id: str, limit: int = 100) -> list[Vote]:
        with self._lock:
            votes = [copy.deepcopy(v) for (_, vid), v in self._votes.items() if vid == voter_id]
        votes.sort(key=lambda v: v.created_at, reverse=True)
        return votes[:limit]

    # Commitments

    def insert_commitment(self, commitment: Commitment) -> Commitment:
        with self._lock:
            if commitment.hour_key in self._by_hour:
                raise DuplicateCommitment(commitment.hour_key)
            self._commitments[commitment.commitment_id] = copy.deepcopy(commitment)
            self._by_hour[commitment.hour_key] = commitment.commitment_id
        return commitment

    def get_commitment(self, commitment_id: str) -> Optional[Commitment]:
        with self._lock:
            c = self._commitments.get(commitment_id)
            return copy.deepcopy(c) if c else None

    def get_commitment_by_hour(self, hour_key: str) -> Optional[Commitment]:
        with self._lock:
            cid = self._by_hour.get(hour_key)
            return copy.deepcopy(self._commitments[cid]) if cid else None

    def list_commitments(self, since: Optional[datetime] = None,
                         verified_only: bool = False,
                         limit: Optional[int] = None) -> list[Commitment]:
        with self._lock:
            items = [copy.deepcopy(c) for c in self._commitments.values()]
        if since is not None:
            items = [c for c in items if c.timestamp >= since]
        if verified_only:
            items = [c for c in items if c.verified]
        items.sort(key=lambda c: c.timestamp, reverse=True)
        return items[:limit] if limit is not None else items

    # Audit

    def append_audit_entry(self, entry: AuditEntry) -> None:
        with self._lock:
            if entry.sequence != len(self._audit):
                raise ConflictError(f"Audit sequence {entry.sequence} already written")
            self._audit.append(copy.deepcopy(entry))

    def list_audit_entries(self) -> list[AuditEntry]:
        with self._lock:
            return copy.deepcopy(self._audit)


# ─── SQLite Store ──────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS voters (
    voter_id TEXT PRIMARY KEY,
    reputation REAL NOT NULL DEFAULT 1.0,
    created_at TEXT NOT NULL,
    last_active TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS claims (
    claim_id TEXT PRIMARY KEY,
    content TEXT NOT NULL DEFAULT '',
    aggregate_score REAL NOT NULL DEFAULT 0.0,
    total_votes INTEGER NOT NULL DEFAULT 0,
    true_votes INTEGER NOT NULL DEFAULT 0,
    false_votes INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_claims_status ON claims(status);
CREATE TABLE IF NOT EXISTS claim_dependencies (
    parent_claim_id TEXT NOT NULL,
    child_claim_id TEXT NOT NULL,
    influence_weight REAL NOT NULL DEFAULT 1.0
);
CREATE TABLE IF NOT EXISTS votes (
    vote_id TEXT PRIMARY KEY,
    claim_id TEXT NOT NULL,
    voter_id TEXT NOT NULL,
    vote_value INTEGER NOT NULL,
    credits_spent INTEGER NOT NULL CHECK (credits_spent BETWEEN 1 AND 100),
    predicted_consensus INTEGER,
    quadratic_weight REAL NOT NULL,
    bayesian_bonus REAL NOT NULL,
    final_trust_score REAL NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (claim_id, voter_id)
);
CREATE INDEX IF NOT EXISTS idx_votes_voter ON votes(voter_id);
CREATE TABLE IF NOT EXISTS commitments (
    commitment_id TEXT PRIMARY KEY,
    hour_key TEXT NOT NULL UNIQUE,
    ts REAL NOT NULL,
    timestamp TEXT NOT NULL,
    root_hash TEXT NOT NULL,
    rumor_count INTEGER NOT NULL,
    entries TEXT NOT NULL,
    verified INTEGER NOT NULL DEFAULT 0,
    signature TEXT,
    signer_public_key TEXT
);
CREATE INDEX IF NOT EXISTS idx_commitments_ts ON commitments(ts);
CREATE TABLE IF NOT EXISTS audit_log (
    sequence INTEGER PRIMARY KEY,
    event_type TEXT NOT NULL,
    subject_id TEXT NOT NULL,
    timestamp REAL NOT NULL,
    details TEXT NOT NULL,
    entry_hash TEXT NOT NULL,
    prev_hash TEXT NOT NULL
);
"""


def _opt_bool(value) -> Optional[bool]:
    return None if value is None else bool(value)


class SQLiteStore(TrustStore):
    """File-based SQLite with WAL mode, thread-safe.

    One connection in autocommit mode guarded by a re-entrant lock;
    claim_transaction() wraps its body in BEGIN IMMEDIATE / COMMIT.
    """

    def __init__(self, db_path: str = "murmur.db"):
        self._db_path = db_path
        self._lock = threading.RLock()
        self._in_txn = False
        self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            raise StorageError(f"{type(e).__name__}: {e}") from e

    @contextmanager
    def claim_transaction(self, claim_id: str) -> Iterator[None]:
        with self._lock:
            if self._in_txn:
                yield
                return
            self._execute("BEGIN IMMEDIATE")
            self._in_txn = True
            try:
                yield
            except BaseException:
                self._in_txn = False
                self._conn.execute("ROLLBACK")
                raise
            self._in_txn = False
            self._execute("COMMIT")

    # Voters

    def add_voter(self, voter: Voter) -> Voter:
        with self._lock:
            try:
                self._execute(
                    "INSERT INTO voters (voter_id, reputation, created_at, last_active) "
                    "VALUES (?, ?, ?, ?)",
                    (voter.voter_id, voter.reputation,
                     to_iso(voter.created_at), to_iso(voter.last_active)),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("Voter already registered") from e
        return voter

    def get_voter(self, voter_id: str) -> Optional[Voter]:
        with self._lock:
            row = self._execute("SELECT * FROM voters WHERE voter_id = ?", (voter_id,)).fetchone()
        return Voter.from_dict(dict(row)) if row else None

    def update_voter(self, voter: Voter) -> None:
        with self._lock:
            cur = self._execute(
                "UPDATE voters SET reputation = ?, last_active = ? WHERE voter_id = ?",
                (voter.reputation, to_iso(voter.last_active), voter.voter_id),
            )
        if cur.rowcount == 0:
            raise VoterNotFound()

    def touch_voter(self, voter_id: str, when: datetime) -> None:
        with self._lock:
            cur = self._execute(
                "UPDATE voters SET last_active = ? WHERE voter_id = ?",
                (to_iso(when), voter_id),
            )
        if cur.rowcount == 0:
            raise VoterNotFound()

    # Claims

    def add_claim(self, claim: Claim) -> Claim:
        with self._lock:
            try:
                self._execute(
                    "INSERT INTO claims (claim_id, content, aggregate_score, total_votes, "
                    "true_votes, false_votes, status, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (claim.claim_id, claim.content, claim.aggregate_score, claim.total_votes,
                     claim.true_votes, claim.false_votes, claim.status.value,
                     to_iso(claim.created_at), to_iso(claim.updated_at)),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("Rumor already exists") from e
        return claim

    def get_claim(self, claim_id: str) -> Optional[Claim]:
        with self._lock:
            row = self._execute("SELECT * FROM claims WHERE claim_id = ?", (claim_id,)).fetchone()
        return Claim.from_dict(dict(row)) if row else None

    def update_claim(self, claim: Claim) -> None:
        with self._lock:
            cur = self._execute(
                "UPDATE claims SET content = ?, aggregate_score = ?, total_votes = ?, "
                "true_votes = ?, false_votes = ?, status = ?, updated_at = ? "
                "WHERE claim_id = ?",
                (claim.content, claim.aggregate_score, claim.total_votes, claim.true_votes,
                 claim.false_votes, claim.status.value, to_iso(claim.updated_at),
                 claim.claim_id),
            )
        if cur.rowcount == 0:
            raise ClaimNotFound()

    def list_claims(self, include_deleted: bool = False) -> list[Claim]:
        sql = "SELECT * FROM claims"
        params: tuple = ()
        if not include_deleted:
            sql += " WHERE status != ?"
            params = (ClaimStatus.DELETED.value,)
        with self._lock:
            rows = self._execute(sql + " ORDER BY created_at", params).fetchall()
        return [Claim.from_dict(dict(r)) for r in rows]

    def add_dependency(self, dep: ClaimDependency) -> None:
        with self._lock:
            self._execute(
                "INSERT INTO claim_dependencies (parent_claim_id, child_claim_id, influence_weight) "
                "VALUES (?, ?, ?)",
                (dep.parent_claim_id, dep.child_claim_id, dep.influence_weight),
            )

    def list_dependencies(self, claim_id: str) -> list[ClaimDependency]:
        with self._lock:
            rows = self._execute(
                "SELECT * FROM claim_dependencies WHERE parent_claim_id = ? OR child_claim_id = ?",
                (claim_id, claim_id),
            ).fetchall()
        return [ClaimDependency(**dict(r)) for r in rows]

    def zero_dependencies(self, claim_id: str) -> int:
        with self._lock:
            cur = self._execute(
                "UPDATE claim_dependencies SET influence_weight = 0 "
                "WHERE parent_claim_id = ? OR child_claim_id = ?",
                (claim_id, claim_id),
            )
        return cur.rowcount

    # Votes

    @staticmethod
    def _row_to_vote(row: sqlite3.Row) -> Vote:
        data = dict(row)
        data["predicted_consensus"] = _opt_bool(data["predicted_consensus"])
        return Vote.from_dict(data)

    def insert_vote(self, vote: Vote) -> Vote:
        with self._lock:
            try:
                self._execute(
                    "INSERT INTO votes (vote_id, claim_id, voter_id, vote_value, credits_spent, "
                    "predicted_consensus, quadratic_weight, bayesian_bonus, final_trust_score, "
                    "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (vote.vote_id, vote.claim_id, vote.voter_id, int(vote.vote_value),
                     vote.credits_spent,
                     None if vote.predicted_consensus is None else int(vote.predicted_consensus),
                     vote.quadratic_weight, vote.bayesian_bonus, vote.final_trust_score,
                     to_iso(vote.created_at)),
                )
            except sqlite3.IntegrityError as e:
                raise AlreadyVoted() from e
        return vote

    def get_vote(self, claim_id: str, voter_id: str) -> Optional[Vote]:
        with self._lock:
            row = self._execute(
                "SELECT * FROM votes WHERE claim_id = ? AND voter_id = ?", (claim_id, voter_id)
            ).fetchone()
        return self._row_to_vote(row) if row else None

    def delete_vote(self, claim_id: str, voter_id: str) -> Optional[Vote]:
        with self._lock:
            vote = self.get_vote(claim_id, voter_id)
            if vote is None:
                return None
            self._execute(
                "DELETE FROM votes WHERE claim_id = ? AND voter_id = ?", (claim_id, voter_id)
            )
        return vote

    def list_votes(self, claim_id: str) -> list[Vote]:
        with self._lock:
            rows = self._execute(
                "SELECT * FROM votes WHERE claim_id = ? ORDER BY created_at", (claim_id,)
            ).fetchall()
        return [self._row_to_vote(r) for r in rows]

    def list_votes_by_voter(self, voter_id: str, limit: int = 100) -> list[Vote]:
        with self._lock:
            rows = self._execute(
                "SELECT * FROM votes WHERE voter_id = ? ORDER BY created_at DESC LIMIT ?",
                (voter_id, limit),
            ).fetchall()
        return [self._row_to_vote(r) for r in rows]

    # Commitments

    @staticmethod
    def _row_to_commitment(row: sqlite3.Row) -> Commitment:
        return Commitment(
            commitment_id=row["commitment_id"],
            hour_key=row["hour_key"],
            timestamp=from_iso(row["timestamp"]),
            root_hash=row["root_hash"],
            entries=[CommitmentEntry.from_dict(e) for e in json.loads(row["entries"])],
            verified=bool(row["verified"]),
            signature=row["signature"],
            signer_public_key=row["signer_public_key"],
        )

    def insert_commitment(self, commitment: Commitment) -> Commitment:
        with self._lock:
            try:
                self._execute(
                    "INSERT INTO commitments (commitment_id, hour_key, ts, timestamp, root_hash, "
                    "rumor_count, entries, verified, signature, signer_public_key) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (commitment.commitment_id, commitment.hour_key,
                     commitment.timestamp.timestamp(), to_iso(commitment.timestamp),
                     commitment.root_hash, commitment.rumor_count,
                     json.dumps([e.to_dict() for e in commitment.entries]),
                     int(commitment.verified), commitment.signature,
                     commitment.signer_public_key),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateCommitment(commitment.hour_key) from e
        return commitment

    def get_commitment(self, commitment_id: str) -> Optional[Commitment]:
        with self._lock:
            row = self._execute(
                "SELECT * FROM commitments WHERE commitment_id = ?", (commitment_id,)
            ).fetchone()
        return self._row_to_commitment(row) if row else None

    def get_commitment_by_hour(self, hour_key: str) -> Optional[Commitment]:
        with self._lock:
            row = self._execute(
                "SELECT * FROM commitments WHERE hour_key = ?", (hour_key,)
            ).fetchone()
        return self._row_to_commitment(row) if row else None

    def list_commitments(self, since: Optional[datetime] = None,
                         verified_only: bool = False,
                         limit: Optional[int] = None) -> list[Commitment]:
        clauses, params = [], []
        if since is not None:
            clauses.append("ts >= ?")
            params.append(since.timestamp())
        if verified_only:
            clauses.append("verified = 1")
        sql = "SELECT * FROM commitments"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY ts DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._lock:
            rows = self._execute(sql, tuple(params)).fetchall()
        return [self._row_to_commitment(r) for r in rows]

    # Audit

    def append_audit_entry(self, entry: AuditEntry) -> None:
        with self._lock:
            try:
                self._execute(
                    "INSERT INTO audit_log (sequence, event_type, subject_id, timestamp, "
                    "details, entry_hash, prev_hash) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (entry.sequence, entry.event_type, entry.subject_id, entry.timestamp,
                     json.dumps(entry.details, sort_keys=True, default=str),
                     entry.entry_hash, entry.prev_hash),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Audit sequence {entry.sequence} already written") from e

    def list_audit_entries(self) -> list[AuditEntry]:
        with self._lock:
            rows = self._execute("SELECT * FROM audit_log ORDER BY sequence").fetchall()
        return [
            AuditEntry(
                event_type=r["event_type"],
                subject_id=r["subject_id"],
                timestamp=r["timestamp"],
                details=json.loads(r["details"]),
                entry_hash=r["entry_hash"],
                prev_hash=r["prev_hash"],
                sequence=r["sequence"],
            )
            for r in rows
        ]

    def close(self):
        self._conn.close()


__all__ = [
    "TrustStore",
    "MemoryStore",
    "SQLiteStore",
]
