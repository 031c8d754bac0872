"""Append-only event log: the notification stream and audit trail.

Every state change in the escrow produces an event record appended here:
commitment creation, check-ins, completions, failures, claims, and every
administrative change. Events are immutable once written. The log serves as:
1. The notification feed for external indexers.
2. The audit trail a third party can verify (each record carries a hash of
   its canonical JSON form).
3. The input to the Merkle root that can be anchored on chain.
"""

from __future__ import annotations

import enum
import hashlib
import json
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional


class EventKind(str, enum.Enum):
    """Classification of escrow events."""
    # Commitment lifecycle
    COMMITMENT_CREATED = "CommitmentCreated"
    CHECK_IN = "CheckIn"
    COMMITMENT_COMPLETED = "CommitmentCompleted"
    COMMITMENT_FAILED = "CommitmentFailed"
    # Settlement
    CLAIMED = "Claimed"
    # Administration
    RAKE_UPDATED = "RakeUpdated"
    TREASURY_UPDATED = "TreasuryUpdated"
    LOSS_ACCOUNT_ADDED = "LossAccountAdded"
    LOSS_ACCOUNT_REMOVED = "LossAccountRemoved"
    PAUSED = "Paused"
    UNPAUSED = "Unpaused"
    OWNERSHIP_TRANSFERRED = "OwnershipTransferred"


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable escrow event.

    Once created, an event cannot be modified. The event_hash is
    computed at creation time and is the leaf hash used for anchoring.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp: Optional[int] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash.

        `timestamp` is the escrow clock reading in unix seconds.
        """
        if timestamp is None:
            ts = datetime.now(timezone.utc)
        else:
            ts = datetime.fromtimestamp(timestamp, timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")

        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only event log with optional file persistence.

    Events can only be appended, never modified or deleted.
    The log can be persisted to a JSONL file (one JSON object per line)
    and loaded back for verification. A record reaches memory only after
    its line is on disk.

    Usage:
        log = EventLog(storage_path=Path("events.jsonl"))
        with log.batch():
            log.emit(EventKind.COMMITMENT_FAILED, actor, payload, timestamp=now)
            log.emit(EventKind.CLAIMED, actor, payload, timestamp=now)
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()
        self._pending: Optional[list[EventRecord]] = None

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def next_event_id(self) -> str:
        """Monotonically increasing id for the next event."""
        queued = len(self._pending) if self._pending is not None else 0
        return f"EVT-{len(self._events) + queued + 1:08d}"

    def emit(
        self,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp: Optional[int] = None,
    ) -> EventRecord:
        """Create and append an event in one step."""
        event = EventRecord.create(
            event_id=self.next_event_id(),
            event_kind=event_kind,
            actor_id=actor_id,
            payload=payload,
            timestamp=timestamp,
        )
        self.append(event)
        return event

    def append(self, event: EventRecord) -> None:
        """Append an event to the log.

        Raises ValueError if event_id is a duplicate (replay protection).
        Inside `batch()` the event is queued until the batch closes.
        """
        queued = self._pending if self._pending is not None else []
        if event.event_id in self._event_ids or any(
            e.event_id == event.event_id for e in queued
        ):
            raise ValueError(f"Duplicate event ID: {event.event_id}")

        if self._pending is not None:
            self._pending.append(event)
            return
        self._commit([event])

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Queue events and commit them together when the block succeeds.

        An error inside the block discards the queue. A failed write on
        exit raises and leaves both the file and memory without the batch.
        Nested batches join the outermost one.
        """
        if self._pending is not None:
            yield
            return
        self._pending = []
        try:
            yield
            pending = self._pending
        finally:
            self._pending = None
        self._commit(pending)

    def _commit(self, events: list[EventRecord]) -> None:
        if not events:
            return
        if self._storage_path:
            self._write_to_file(events)
        for event in events:
            self._events.append(event)
            self._event_ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def event_hashes(self, kind: Optional[EventKind] = None) -> list[str]:
        return [e.event_hash for e in self.events(kind)]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _write_to_file(self, events: list[EventRecord]) -> None:
        lines = "".join(
            json.dumps(e.to_dict(), sort_keys=True, ensure_ascii=False) + "\n"
            for e in events
        )
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(lines)

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                event_id = data["event_id"]
                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on load (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    data["event_id"],
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["actor_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=event_id,
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event_id)
