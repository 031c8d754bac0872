"""Audit primitives: Merkle roots over the event log and on-chain anchoring."""

from daysinarow.crypto.anchor import AnchorRecord, anchor_to_chain, event_log_root
from daysinarow.crypto.merkle import MerkleProof, MerkleTree, verify_proof

__all__ = [
    "AnchorRecord",
    "MerkleProof",
    "MerkleTree",
    "anchor_to_chain",
    "event_log_root",
    "verify_proof",
]
