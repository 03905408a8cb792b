"""
SynthStake Audit Trail

Tamper-evident record of every staking operation. Each event carries a
SHA-256 digest over its canonical JSON content and the digest of the
previous event, so editing or dropping an entry breaks the chain.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import hashlib
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class AuditEventType(Enum):
    """Types of audit events."""
    STAKE = "stake"
    UNSTAKE = "unstake"
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"
    CONFIG_CHANGED = "config_changed"
    STATUS_CHANGED = "status_changed"
    ROLE_CHANGED = "role_changed"
    OPERATION_FAILED = "operation_failed"


def canonical_json_bytes(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")


@dataclass
class AuditEvent:
    """An audit log entry."""
    event_id: str
    event_type: AuditEventType
    timestamp: str
    epoch: int
    component_id: str
    action: str
    outcome: str  # success, failure
    details: Dict[str, Any]

    previous_event_digest: Optional[str] = None
    event_digest: str = ""

    def __post_init__(self):
        if not self.event_digest:
            self.event_digest = self.compute_digest()

    def compute_digest(self) -> str:
        content = {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "epoch": self.epoch,
            "component_id": self.component_id,
            "action": self.action,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
        }
        return hashlib.sha256(canonical_json_bytes(content)).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "epoch": self.epoch,
            "component_id": self.component_id,
            "action": self.action,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
            "event_digest": self.event_digest,
        }


class AuditLogger:
    """
    Tamper-evident audit logger.

    Each event includes a hash chain linking to the previous event,
    making it possible to detect log tampering.
    """

    def __init__(self):
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()

    def log(
        self,
        event_type: AuditEventType,
        component_id: str,
        action: str,
        outcome: str,
        epoch: int = 0,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Append an audit event."""
        with self._lock:
            previous_digest = self._events[-1].event_digest if self._events else None
            event = AuditEvent(
                event_id=f"evt-{len(self._events) + 1:012d}",
                event_type=event_type,
                timestamp=datetime.now(timezone.utc).isoformat(),
                epoch=epoch,
                component_id=component_id,
                action=action,
                outcome=outcome,
                details=details or {},
                previous_event_digest=previous_digest,
            )
            self._events.append(event)
            return event

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """
        Verify the audit log chain integrity.

        Returns (valid, first_invalid_index).
        """
        with self._lock:
            for i, event in enumerate(self._events):
                if event.compute_digest() != event.event_digest:
                    return (False, i)
                if i > 0 and event.previous_event_digest != self._events[i - 1].event_digest:
                    return (False, i)
            return (True, None)

    def get_events(
        self,
        event_type: Optional[AuditEventType] = None,
        action: Optional[str] = None,
        outcome: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query audit events."""
        with self._lock:
            events = list(self._events)

        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if action:
            events = [e for e in events if e.action == action]
        if outcome:
            events = [e for e in events if e.outcome == outcome]

        return events[-limit:]

    def export(self) -> List[Dict[str, Any]]:
        """Export all events as dicts."""
        with self._lock:
            return [e.to_dict() for e in self._events]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
