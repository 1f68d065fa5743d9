"""
Merkle snapshot builder.

Leaves are SHA-256 over canonical JSON {"id", "score", "timestamp"}; the
tree sorts its leaves and sorts every pair before hashing, so the root
depends only on the set of (claim, score) pairs and the snapshot time.
An odd node at any level is promoted unchanged.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

DEFAULT_VIOLATION_THRESHOLD = 5.0


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


EMPTY_ROOT = _sha256(b"[]").hex()


def canonical_leaf(claim_id: str, score: float, snapshot_time: int) -> str:
    return json.dumps(
        {"id": claim_id, "score": float(score), "timestamp": int(snapshot_time)},
        sort_keys=True,
        separators=(",", ":"),
    )


def leaf_hash(claim_id: str, score: float, snapshot_time: int) -> str:
    """Hex leaf hash for one claim's score at snapshot_time (unix seconds)."""
    return _sha256(canonical_leaf(claim_id, score, snapshot_time).encode()).hex()


def hash_pair(a: str, b: str) -> str:
    lo, hi = sorted((a, b))
    return _sha256(bytes.fromhex(lo) + bytes.fromhex(hi)).hex()


class MerkleTree:
    """Sorted-leaf, sorted-pair binary Merkle tree over hex leaf hashes."""

    def __init__(self, leaves: Iterable[str]):
        self.leaves: list[str] = sorted(leaves)
        self.levels: list[list[str]] = [list(self.leaves)]
        while len(self.levels[-1]) > 1:
            level = self.levels[-1]
            nxt = []
            for i in range(0, len(level), 2):
                if i + 1 < len(level):
                    nxt.append(hash_pair(level[i], level[i + 1]))
                else:
                    nxt.append(level[i])
            self.levels.append(nxt)

    @property
    def root(self) -> str:
        if not self.leaves:
            return EMPTY_ROOT
        return self.levels[-1][0]

    def __len__(self) -> int:
        return len(self.leaves)

    def proof(self, leaf: str) -> list[str]:
        """Sibling hashes from leaf to root. Raises ValueError if absent."""
        try:
            index = self.leaves.index(leaf)
        except ValueError:
            raise ValueError(f"Leaf {leaf[:16]}… not in tree") from None

        path = []
        for level in self.levels[:-1]:
            sibling = index ^ 1
            if sibling < len(level):
                path.append(level[sibling])
            index //= 2
        return path


def verify_proof(proof: Sequence[str], leaf: str, root: str) -> bool:
    node = leaf
    for sibling in proof:
        node = hash_pair(node, sibling)
    return node == root


@dataclass
class Snapshot:
    root_hash: str
    snapshot_time: int
    leaves: dict[str, str] = field(default_factory=dict)  # claim_id -> leaf hash
    tree: Optional[MerkleTree] = None

    @property
    def rumor_count(self) -> int:
        return len(self.leaves)


def build_snapshot(scores: Iterable[tuple[str, float]], snapshot_time: int) -> Snapshot:
    """Build the tree for (claim_id, score) pairs at snapshot_time."""
    leaves = {cid: leaf_hash(cid, score, snapshot_time) for cid, score in scores}
    tree = MerkleTree(leaves.values())
    return Snapshot(root_hash=tree.root, snapshot_time=int(snapshot_time),
                    leaves=leaves, tree=tree)


def hour_key(dt: Optional[datetime] = None) -> str:
    """"YYYY-MM-DD-HH" in UTC."""
    dt = dt or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d-%H")


def percent_variance(current: float, committed: float) -> float:
    return abs(current - committed) / max(abs(committed), 1.0) * 100


def detect_violation(current: float, committed: float,
                     threshold: float = DEFAULT_VIOLATION_THRESHOLD) -> bool:
    return percent_variance(current, committed) > threshold


__all__ = [
    "EMPTY_ROOT",
    "DEFAULT_VIOLATION_THRESHOLD",
    "MerkleTree",
    "Snapshot",
    "build_snapshot",
    "canonical_leaf",
    "leaf_hash",
    "hash_pair",
    "verify_proof",
    "hour_key",
    "percent_variance",
    "detect_violation",
]
