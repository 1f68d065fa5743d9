"""
Hourly state commitments.

create_hourly_commitment() freezes every non-deleted claim's current score
into a Merkle snapshot keyed by its UTC hour. It is idempotent per hour:
the scheduler and a manual trigger can both fire in the same hour and see
the same commitment. Storage failures are logged and reported as None so
the scheduler simply retries next cycle.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from murmur.audit import AuditEventType, AuditTrail
from murmur.errors import CommitmentNotFound, DuplicateCommitment, StorageError
from murmur.integrity.merkle import MerkleTree, build_snapshot, hour_key, leaf_hash
from murmur.models import Commitment, CommitmentEntry
from murmur.storage import TrustStore

logger = logging.getLogger(__name__)


def signing_payload(commitment: Commitment) -> bytes:
    """Canonical bytes signed for a commitment (deterministic)."""
    return json.dumps({
        "hour_key": commitment.hour_key,
        "root_hash": commitment.root_hash,
        "rumor_count": commitment.rumor_count,
        "timestamp": commitment.snapshot_time,
    }, sort_keys=True, separators=(",", ":")).encode()


def load_signing_key(key: Union[str, SigningKey, None]) -> Optional[SigningKey]:
    if key is None or isinstance(key, SigningKey):
        return key
    return SigningKey(key.encode(), encoder=HexEncoder)


@dataclass
class CommitmentVerification:
    commitment_id: str
    hour_key: str
    leaves_valid: bool
    root_valid: bool
    signature_valid: Optional[bool]  # None when unsigned

    @property
    def is_valid(self) -> bool:
        return self.leaves_valid and self.root_valid and self.signature_valid is not False

    def to_dict(self) -> dict:
        d = asdict(self)
        d["is_valid"] = self.is_valid
        return d


class CommitmentService:
    """Creates, lists and verifies hourly commitments."""

    def __init__(self, store: TrustStore, signing_key: Union[str, SigningKey, None] = None,
                 audit: Optional[AuditTrail] = None):
        self.store = store
        self.signing_key = load_signing_key(signing_key)
        self.audit = audit

    @property
    def public_key_hex(self) -> Optional[str]:
        if self.signing_key is None:
            return None
        return self.signing_key.verify_key.encode(encoder=HexEncoder).decode()

    def _log(self, event: AuditEventType, subject_id: str, details: dict) -> None:
        if self.audit is not None:
            self.audit.log(event, subject_id, details)

    def _sign(self, commitment: Commitment) -> None:
        if self.signing_key is None:
            return
        commitment.signature = self.signing_key.sign(signing_payload(commitment)).signature.hex()
        commitment.signer_public_key = self.public_key_hex

    def create_hourly_commitment(self, now: Optional[datetime] = None) -> Optional[Commitment]:
        """Commit the current hour, or return the commitment that already exists.

        A naive now is read as UTC. Returns None on storage failure.
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        key = hour_key(now)
        try:
            existing = self.store.get_commitment_by_hour(key)
            if existing is not None:
                logger.info("State commitment already exists for %s", key)
                return existing

            claims = self.store.list_claims()
            if not claims:
                logger.info("No active rumors found for commitment %s", key)

            snapshot_time = int(now.timestamp())
            snapshot = build_snapshot(
                ((c.claim_id, c.aggregate_score) for c in claims), snapshot_time
            )
            commitment = Commitment(
                hour_key=key,
                timestamp=now,
                root_hash=snapshot.root_hash,
                entries=[
                    CommitmentEntry(c.claim_id, c.aggregate_score, snapshot.leaves[c.claim_id])
                    for c in claims
                ],
                verified=True,
            )
            self._sign(commitment)

            try:
                self.store.insert_commitment(commitment)
            except DuplicateCommitment:
                # A concurrent trigger won the hour
                logger.info("Commitment for %s created concurrently", key)
                return self.store.get_commitment_by_hour(key)
        except (StorageError, sqlite3.Error) as e:
            logger.exception("Error creating state commitment for %s", key)
            self._log(AuditEventType.COMMITMENT_FAILED, key, {"error": type(e).__name__})
            return None

        logger.info("State commitment created for %s: %s (%d rumors)",
                    key, commitment.root_hash, commitment.rumor_count)
        self._log(AuditEventType.COMMITMENT_CREATED, commitment.commitment_id, {
            "hour_key": key,
            "root_hash": commitment.root_hash,
            "rumor_count": commitment.rumor_count,
        })
        return commitment

    def get_commitment_history(self, limit: int = 24) -> list[Commitment]:
        """Most recent commitments, newest first."""
        return self.store.list_commitments(limit=limit)

    def get_commitment(self, commitment_id: str) -> Commitment:
        commitment = self.store.get_commitment(commitment_id)
        if commitment is None:
            raise CommitmentNotFound()
        return commitment

    def verify_commitment(self, commitment: Union[Commitment, str]) -> CommitmentVerification:
        """Recompute leaves and root from the stored entries and check the signature."""
        if isinstance(commitment, str):
            commitment = self.get_commitment(commitment)

        leaves_valid = all(
            e.leaf_hash == leaf_hash(e.claim_id, e.score, commitment.snapshot_time)
            for e in commitment.entries
        )
        root_valid = MerkleTree(e.leaf_hash for e in commitment.entries).root == commitment.root_hash

        signature_valid: Optional[bool] = None
        if commitment.signature:
            try:
                vk = VerifyKey(commitment.signer_public_key.encode(), encoder=HexEncoder)
                vk.verify(signing_payload(commitment), bytes.fromhex(commitment.signature))
                signature_valid = True
            except (BadSignatureError, ValueError, AttributeError):
                signature_valid = False

        return CommitmentVerification(
            commitment_id=commitment.commitment_id,
            hour_key=commitment.hour_key,
            leaves_valid=leaves_valid,
            root_valid=root_valid,
            signature_valid=signature_valid,
        )


__all__ = [
    "CommitmentService",
    "CommitmentVerification",
    "signing_payload",
    "load_signing_key",
]
