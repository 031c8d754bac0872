"""Core data models for the commitment escrow."""

from daysinarow.models.commitment import (
    COMMITMENT_TRANSITIONS,
    CheckInOutcome,
    CheckInResult,
    ClaimReceipt,
    Commitment,
    CommitmentState,
    LossAccount,
)

__all__ = [
    "COMMITMENT_TRANSITIONS",
    "CheckInOutcome",
    "CheckInResult",
    "ClaimReceipt",
    "Commitment",
    "CommitmentState",
    "LossAccount",
]
