"""
Rollup Event Logger

Tamper-evident audit trail of what the rollup did: batches committed or
rejected, fraud proofs generated and checked, dispute status changes.

Features:
- Hash-chained events (each digest covers the previous one)
- Subscriber callbacks
- Query by type, JSON export, integrity check

This is an audit record for operators and the surrounding system; it
is not part of the state commitments and never feeds back into replay.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..core_crypto.hashing import sha256

logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

EVENT_VERSION = "1.0"
GENESIS_EVENT_DIGEST = b'\x00' * 32


# ============================================================================
# Event Types
# ============================================================================

class EventType(Enum):
    """Kinds of rollup events."""

    # State
    ACCOUNT_SEEDED = "account_seeded"
    BATCH_COMMITTED = "batch_committed"
    BATCH_REJECTED = "batch_rejected"

    # Fraud proofs
    PROOF_GENERATED = "proof_generated"
    PROOF_VERIFIED = "proof_verified"
    PROOF_REJECTED = "proof_rejected"

    # Disputes
    UPDATE_FINALIZED = "update_finalized"
    CHALLENGE_OPENED = "challenge_opened"
    UPDATE_CONFIRMED = "update_confirmed"
    UPDATE_PROVEN_FRAUDULENT = "update_proven_fraudulent"


# ============================================================================
# Event Structure
# ============================================================================

@dataclass(frozen=True)
class RollupEvent:
    """One entry of the audit trail."""
    sequence: int
    event_type: EventType
    timestamp: int
    prev_digest: bytes
    details: Dict[str, Any] = field(default_factory=dict)

    def body(self) -> bytes:
        """Canonical bytes the digest is computed over."""
        return json.dumps({
            'version': EVENT_VERSION,
            'seq': self.sequence,
            'type': self.event_type.value,
            'time': self.timestamp,
            'details': self.details,
        }, sort_keys=True, separators=(',', ':')).encode()

    @property
    def digest(self) -> bytes:
        return sha256(self.prev_digest, self.body())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'seq': self.sequence,
            'type': self.event_type.value,
            'time': self.timestamp,
            'prev': self.prev_digest.hex(),
            'details': self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RollupEvent':
        return cls(
            sequence=data['seq'],
            event_type=EventType(data['type']),
            timestamp=data['time'],
            prev_digest=bytes.fromhex(data['prev']),
            details=data.get('details', {}),
        )

    def __str__(self) -> str:
        return f"#{self.sequence} {self.event_type.value} {self.details}"


# ============================================================================
# Event Logger
# ============================================================================

class EventLogger:
    """
    Append-only, hash-chained event log with subscribers.

    Example:
        >>> events = EventLogger()
        >>> _ = events.record(EventType.BATCH_COMMITTED, update_index=0)
        >>> events.verify_integrity()
        True
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._events: List[RollupEvent] = []
        self._callbacks: List[Callable[[RollupEvent], None]] = []
        self._clock = clock

    def __len__(self) -> int:
        return len(self._events)

    @property
    def head_digest(self) -> bytes:
        return self._events[-1].digest if self._events else GENESIS_EVENT_DIGEST

    def record(self, event_type: EventType, **details: Any) -> RollupEvent:
        """
        Append an event and notify subscribers.

        A failing subscriber is logged and skipped; it never stops the
        event from being recorded or other subscribers from running.
        """
        event = RollupEvent(
            sequence=len(self._events),
            event_type=event_type,
            timestamp=int(self._clock()),
            prev_digest=self.head_digest,
            details=details,
        )
        self._events.append(event)
        logger.debug("Event %s", event)

        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception("Event callback %r failed", callback)
        return event

    def add_callback(self, callback: Callable[[RollupEvent], None]) -> None:
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[RollupEvent], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def get_all_events(self) -> List[RollupEvent]:
        return list(self._events)

    def get_events_by_type(self, event_type: EventType) -> List[RollupEvent]:
        return [e for e in self._events if e.event_type == event_type]

    def get_recent_events(self, count: int = 10) -> List[RollupEvent]:
        """
        Get the most recent events.

        Args:
            count: Maximum number of events to return

        Returns:
            Up to `count` events, oldest first; empty if count <= 0
        """
        if count <= 0:
            return []
        return self._events[-count:]

    def verify_integrity(self) -> bool:
        """Re-walk the digest chain; False at the first broken link."""
        prev = GENESIS_EVENT_DIGEST
        for i, event in enumerate(self._events):
            if event.sequence != i or event.prev_digest != prev:
                return False
            prev = event.digest
        return True

    def export_log(self) -> str:
        """Export the trail as JSON."""
        return json.dumps({
            'version': EVENT_VERSION,
            'head': self.head_digest.hex(),
            'events': [e.to_dict() for e in self._events],
        }, indent=2)

    @classmethod
    def import_log(cls, json_str: str) -> 'EventLogger':
        """
        Load an exported trail.

        Raises:
            ValueError: If the digest chain does not check out
        """
        data = json.loads(json_str)
        events_logger = cls()
        events_logger._events = [RollupEvent.from_dict(e) for e in data['events']]
        if not events_logger.verify_integrity():
            raise ValueError("Event log digest chain is broken")
        if events_logger.head_digest.hex() != data['head']:
            raise ValueError("Event log head digest mismatch")
        return events_logger
