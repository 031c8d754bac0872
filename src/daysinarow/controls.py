"""Capability guards: ownership and the pause circuit breaker.

The engine never consults a global flag. It is handed a guard object at
construction and asks it two questions: is the escrow paused, and is this
caller the owner. `Controls` is the in-process implementation; anything
satisfying the two Protocols can stand in for it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from daysinarow.accounts import normalize_address
from daysinarow.errors import AuthorizationError, PausedError, ValidationError


@runtime_checkable
class PauseGuard(Protocol):
    def is_paused(self) -> bool:
        ...


@runtime_checkable
class OwnerGuard(Protocol):
    def is_owner(self, caller: str) -> bool:
        ...


def require_not_paused(guard: PauseGuard) -> None:
    """Fail fast before any state is read."""
    if guard.is_paused():
        raise PausedError("Pausable: paused")


def require_owner(guard: OwnerGuard, caller: str) -> None:
    if not guard.is_owner(caller):
        raise AuthorizationError("Ownable: caller is not the owner")


class Controls:
    """Owner-managed pause switch.

    Usage:
        controls = Controls(owner="0x1111...")
        controls.pause(owner)
        controls.is_paused()  # True
    """

    def __init__(self, owner: str, paused: bool = False) -> None:
        self._owner = normalize_address(owner, "owner")
        self._paused = paused

    @property
    def owner(self) -> str:
        return self._owner

    def is_paused(self) -> bool:
        return self._paused

    def is_owner(self, caller: str) -> bool:
        try:
            return normalize_address(caller, "caller") == self._owner
        except ValueError:
            return False

    def pause(self, caller: str) -> None:
        require_owner(self, caller)
        if self._paused:
            raise PausedError("Pausable: paused")
        self._paused = True

    def unpause(self, caller: str) -> None:
        require_owner(self, caller)
        if not self._paused:
            raise ValidationError("paused", "Pausable: not paused")
        self._paused = False

    def transfer_ownership(self, caller: str, new_owner: str) -> str:
        require_owner(self, caller)
        self._owner = normalize_address(new_owner, "new_owner")
        return self._owner
