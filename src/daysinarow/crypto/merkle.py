"""Merkle tree over event hashes.

Leaves are the `sha256:` hashes of event records, kept in log order: two
logs holding the same events in a different order are different histories
and must produce different roots. An odd node at any level is paired with
itself.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

PREFIX = "sha256:"


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single leaf."""
    leaf_hash: str
    index: int
    path: list[tuple[str, str]]  # (sibling_hash, "L" | "R")
    root: str


class MerkleTree:
    """Deterministic, order-preserving SHA-256 Merkle tree.

    Usage:
        tree = MerkleTree(log.event_hashes())
        root = tree.root
        proof = tree.inclusion_proof(0)
        verify_proof(proof)  # True
    """

    def __init__(self, leaves: list[str] | None = None) -> None:
        self._levels: list[list[str]] = [[_strip(leaf) for leaf in (leaves or [])]]
        self._build()

    @property
    def leaf_count(self) -> int:
        return len(self._levels[0])

    @property
    def root(self) -> str:
        if not self._levels[0]:
            return PREFIX + _sha256_hex(b"")
        return PREFIX + self._levels[-1][0]

    def inclusion_proof(self, index: int) -> MerkleProof:
        if not 0 <= index < self.leaf_count:
            raise IndexError(f"Leaf index out of range: {index}")
        path: list[tuple[str, str]] = []
        position = index
        for level in self._levels[:-1]:
            if position % 2 == 0:
                sibling = level[position + 1] if position + 1 < len(level) else level[position]
                path.append((PREFIX + sibling, "R"))
            else:
                path.append((PREFIX + level[position - 1], "L"))
            position //= 2
        return MerkleProof(
            leaf_hash=PREFIX + self._levels[0][index],
            index=index,
            path=path,
            root=self.root,
        )

    def _build(self) -> None:
        level = self._levels[0]
        while len(level) > 1:
            parents = []
            for i in range(0, len(level), 2):
                right = level[i + 1] if i + 1 < len(level) else level[i]
                parents.append(_hash_pair(level[i], right))
            self._levels.append(parents)
            level = parents


def verify_proof(proof: MerkleProof) -> bool:
    """Recompute the root from a leaf and its path."""
    node = _strip(proof.leaf_hash)
    for sibling, side in proof.path:
        if side == "L":
            node = _hash_pair(_strip(sibling), node)
        else:
            node = _hash_pair(node, _strip(sibling))
    return PREFIX + node == proof.root


def _strip(value: str) -> str:
    return value.removeprefix(PREFIX)


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hash_pair(left: str, right: str) -> str:
    return _sha256_hex(f"{left}{right}".encode("utf-8"))
