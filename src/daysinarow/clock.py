"""Clock sources.

All deadline math runs on a single monotonic clock measured in unix
seconds. In production that is the latest block's timestamp; tests and
scenarios drive a manual clock forward explicitly.
"""

from __future__ import annotations

import time
from typing import Any, Protocol, runtime_checkable

SECONDS_PER_DAY = 86_400


@runtime_checkable
class Clock(Protocol):
    """Anything that can report the current time in unix seconds."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall-clock time from the host."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """A clock that only moves when told to.

    Usage:
        clock = ManualClock(1_700_006_400)
        clock.advance_days(1)
        clock.advance(-1)   # rejected, the clock is monotonic
    """

    def __init__(self, start: int) -> None:
        if start < 0:
            raise ValueError("Clock start must be non-negative")
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move the clock forward by a number of seconds."""
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += int(seconds)
        return self._now

    def advance_days(self, days: int = 1, seconds_per_day: int = SECONDS_PER_DAY) -> int:
        """Move the clock forward by whole days."""
        return self.advance(days * seconds_per_day)

    def set(self, timestamp: int) -> int:
        """Jump to an absolute timestamp not earlier than the current one."""
        return self.advance(int(timestamp) - self._now)


class BlockClock:
    """Current time taken from the latest block of an Ethereum node."""

    def __init__(self, w3: Any) -> None:
        self._w3 = w3

    @classmethod
    def connect(cls, rpc_url: str) -> BlockClock:
        from web3 import Web3, HTTPProvider

        return cls(Web3(HTTPProvider(rpc_url)))

    def now(self) -> int:
        block = self._w3.eth.get_block("latest")
        return int(block["timestamp"])
