"""Error taxonomy for the commitment escrow.

Every failure is synchronous and recoverable by the caller: re-invoke with
corrected arguments, or wait for the clock to move. Nothing here signals an
internal fault. Whenever one of these is raised, the ledger and all balances
are exactly as they were before the call.
"""

from __future__ import annotations


class DaysInARowError(Exception):
    """Base class for all escrow errors."""


class ValidationError(DaysInARowError, ValueError):
    """Bad input to commitment creation or administration."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class AuthorizationError(DaysInARowError, PermissionError):
    """Caller is not allowed to perform this operation."""


class TooEarlyError(DaysInARowError):
    """The clock has not yet reached the required instant."""


class StillActiveError(TooEarlyError):
    """Finalize was attempted before the commitment's deadline passed."""


class AlreadyCompletedError(DaysInARowError):
    """The commitment already reached its target."""


class AlreadyFailedError(DaysInARowError):
    """The commitment already failed."""


class AlreadyCheckedInError(DaysInARowError):
    """A check-in was already recorded for the current day."""


class NothingToClaimError(DaysInARowError):
    """No failed, unsettled commitments are owed to the loss account."""


class PausedError(DaysInARowError):
    """The escrow is paused."""


class UnknownCommitmentError(DaysInARowError, LookupError):
    """No commitment exists with the requested identifier."""


class TransferError(DaysInARowError):
    """A fund transfer was rejected; the enclosing operation is rolled back."""
