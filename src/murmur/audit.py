"""
murmur Audit Trail — tamper-evident log of scoring and integrity decisions.

Every vote cast, commitment, revert and reputation update is appended as a
hash-chained entry: each entry hashes its own content together with the hash
of the previous entry, so editing any historical entry breaks the chain.

A revert overwrites a claim's aggregate without touching its votes; the
trail is where that divergence stays visible.
"""

import hashlib
import json
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from murmur.errors import ConflictError

if TYPE_CHECKING:
    from murmur.storage import TrustStore

GENESIS_HASH = "genesis"


class AuditEventType(str, Enum):
    """Auditable events in the engine."""
    VOTE_CAST = "vote.cast"
    VOTE_REMOVED = "vote.removed"
    AGGREGATE_RECOMPUTED = "aggregate.recomputed"
    REPUTATION_UPDATED = "reputation.updated"
    COMMITMENT_CREATED = "commitment.created"
    COMMITMENT_FAILED = "commitment.failed"
    VIOLATION_DETECTED = "violation.detected"
    STATE_REVERTED = "state.reverted"
    CLAIM_DELETED = "claim.deleted"


@dataclass
class AuditEntry:
    """A single audit log entry with hash-chain integrity."""
    event_type: str
    subject_id: str
    timestamp: float
    details: dict
    entry_hash: str = ""
    prev_hash: str = ""
    sequence: int = 0

    def compute_hash(self) -> str:
        """SHA-256 of this entry's content + prev_hash."""
        content = json.dumps({
            "event_type": self.event_type,
            "subject_id": self.subject_id,
            "timestamp": self.timestamp,
            "details": self.details,
            "prev_hash": self.prev_hash,
            "sequence": self.sequence,
        }, sort_keys=True, default=str)
        return hashlib.sha256(content.encode()).hexdigest()

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEntry":
        return cls(**data)


class AuditTrail:
    """
    Append-only, hash-chained audit trail.

    With a store, the chain is loaded from it on construction and every new
    entry is written through before it is kept in memory, so the trail
    outlives the process (a CLI revert stays visible to the next run).

    Usage:
        trail = AuditTrail(store)
        trail.log(AuditEventType.VOTE_CAST, subject_id=claim_id, details={...})
        ok, bad_index = trail.verify_integrity()
        reverts = trail.query(event_type=AuditEventType.STATE_REVERTED)
    """

    def __init__(self, store: Optional["TrustStore"] = None):
        self._store = store
        self._lock = threading.Lock()
        self._entries: list[AuditEntry] = store.list_audit_entries() if store is not None else []

    def _next_entry(self, event_type, subject_id: str, details: Optional[dict]) -> AuditEntry:
        prev_hash = self._entries[-1].entry_hash if self._entries else GENESIS_HASH
        entry = AuditEntry(
            event_type=event_type.value if isinstance(event_type, AuditEventType) else event_type,
            subject_id=subject_id,
            timestamp=time.time(),
            details=details or {},
            prev_hash=prev_hash,
            sequence=len(self._entries),
        )
        entry.entry_hash = entry.compute_hash()
        return entry

    def log(self, event_type: AuditEventType, subject_id: str,
            details: Optional[dict] = None) -> AuditEntry:
        """Append an entry."""
        with self._lock:
            entry = self._next_entry(event_type, subject_id, details)
            while self._store is not None:
                try:
                    self._store.append_audit_entry(entry)
                    break
                except ConflictError:
                    # Another process extended the chain; continue from its tail
                    self._entries = self._store.list_audit_entries()
                    entry = self._next_entry(event_type, subject_id, details)
            self._entries.append(entry)
        return entry

    def refresh(self) -> int:
        """Reload the chain from the store; returns the entry count."""
        if self._store is not None:
            with self._lock:
                self._entries = self._store.list_audit_entries()
        return len(self._entries)

    def verify_integrity(self) -> tuple[bool, Optional[int]]:
        """(True, None) if intact, else (False, index of first bad entry)."""
        for i, entry in enumerate(self._entries):
            if entry.entry_hash != entry.compute_hash():
                return False, i
            expected_prev = GENESIS_HASH if i == 0 else self._entries[i - 1].entry_hash
            if entry.prev_hash != expected_prev:
                return False, i
        return True, None

    def query(self, subject_id: Optional[str] = None,
              event_type: Optional[AuditEventType] = None,
              since: Optional[float] = None,
              until: Optional[float] = None,
              limit: int = 100) -> list[AuditEntry]:
        """Most recent matching entries, returned oldest first."""
        results = []
        event_val = event_type.value if isinstance(event_type, AuditEventType) else event_type

        for entry in reversed(self._entries):
            if subject_id and entry.subject_id != subject_id:
                continue
            if event_val and entry.event_type != event_val:
                continue
            if since and entry.timestamp < since:
                continue
            if until and entry.timestamp > until:
                continue
            results.append(entry)
            if len(results) >= limit:
                break

        return list(reversed(results))

    def export_json(self) -> str:
        return json.dumps([e.to_dict() for e in self._entries], indent=2, default=str)

    @classmethod
    def from_json(cls, data: str) -> "AuditTrail":
        """Import a trail. Raises ValueError if the chain is broken."""
        trail = cls()
        for entry_data in json.loads(data):
            trail._entries.append(AuditEntry.from_dict(entry_data))

        ok, bad_idx = trail.verify_integrity()
        if not ok:
            raise ValueError(f"Imported trail has corrupted entry at index {bad_idx}")
        return trail

    @property
    def size(self) -> int:
        return len(self._entries)

    def summary(self) -> dict:
        event_counts: dict[str, int] = {}
        subjects: set[str] = set()
        for entry in self._entries:
            event_counts[entry.event_type] = event_counts.get(entry.event_type, 0) + 1
            subjects.add(entry.subject_id)

        return {
            "total_entries": len(self._entries),
            "unique_subjects": len(subjects),
            "event_counts": event_counts,
            "first_entry": self._entries[0].timestamp if self._entries else None,
            "last_entry": self._entries[-1].timestamp if self._entries else None,
            "integrity_verified": self.verify_integrity()[0],
        }


__all__ = ["AuditTrail", "AuditEntry", "AuditEventType", "GENESIS_HASH"]
