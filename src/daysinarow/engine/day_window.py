"""Calendar-day window arithmetic.

Day 0 starts at a commitment's start_date. Day k covers
[start_date + k*D, start_date + (k+1)*D) where D is seconds_per_day.

A commitment must be checked in on every day in sequence. The deadline for
the next required day is the instant its window closes, and it is an
exclusive upper bound:

    now <= deadline   still on time
    now >  deadline   a day was missed, the commitment has failed

When every day but the last has been checked in, that deadline is
start_date + target_days * D.

Everything here is a pure function of the record and the clock reading.
Nothing runs on a timer; failure is discovered whenever a commitment is
next touched.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from daysinarow.clock import SECONDS_PER_DAY
from daysinarow.models.commitment import Commitment, CommitmentState


def day_index(start_date: int, now: int, seconds_per_day: int = SECONDS_PER_DAY) -> int:
    """floor((now - start_date) / seconds_per_day). Negative before the start."""
    return (now - start_date) // seconds_per_day


def expected_day(commitment: Commitment) -> int:
    """Index of the next day that needs a check-in."""
    if commitment.last_check_in_day is None:
        return 0
    return commitment.last_check_in_day + 1


def check_in_deadline(
    commitment: Commitment,
    seconds_per_day: int = SECONDS_PER_DAY,
) -> int:
    """Last instant at which the next required check-in is still on time."""
    return commitment.start_date + (expected_day(commitment) + 1) * seconds_per_day


def final_deadline(
    commitment: Commitment,
    seconds_per_day: int = SECONDS_PER_DAY,
) -> int:
    """Close of the last day on which the streak could still be completed."""
    return commitment.start_date + commitment.target_days * seconds_per_day


def has_missed_day(
    commitment: Commitment,
    now: int,
    seconds_per_day: int = SECONDS_PER_DAY,
) -> bool:
    """True when an ACTIVE commitment's next required day has closed."""
    if commitment.state is not CommitmentState.ACTIVE:
        return False
    return now > check_in_deadline(commitment, seconds_per_day)


def resolve_state(
    commitment: Commitment,
    now: int,
    seconds_per_day: int = SECONDS_PER_DAY,
) -> CommitmentState:
    """The commitment's true state as of `now`, without changing it."""
    if has_missed_day(commitment, now, seconds_per_day):
        return CommitmentState.FAILED
    return commitment.state


def next_midnight(now: int, tz: Optional[tzinfo] = None) -> int:
    """Unix timestamp of the first local midnight strictly after `now`.

    Start dates are chosen by the caller, conventionally tonight's midnight
    in the user's time zone.
    """
    zone = tz or timezone.utc
    local = datetime.fromtimestamp(now, zone)
    midnight = datetime.combine(
        (local + timedelta(days=1)).date(), datetime.min.time(), tzinfo=zone
    )
    return int(midnight.timestamp())
