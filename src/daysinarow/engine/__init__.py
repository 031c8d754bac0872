"""Escrow engines: day-window math, fees, lifecycle and settlement."""

from daysinarow.engine.day_window import (
    check_in_deadline,
    day_index,
    expected_day,
    final_deadline,
    has_missed_day,
    next_midnight,
    resolve_state,
)
from daysinarow.engine.fees import FeeSchedule, compute_fee
from daysinarow.engine.lifecycle import CommitmentLifecycle
from daysinarow.engine.settlement import ClaimEngine

__all__ = [
    "ClaimEngine",
    "CommitmentLifecycle",
    "FeeSchedule",
    "check_in_deadline",
    "compute_fee",
    "day_index",
    "expected_day",
    "final_deadline",
    "has_missed_day",
    "next_midnight",
    "resolve_state",
]
