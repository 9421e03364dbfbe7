"""
Audit Logger Service
In-memory event trail for one monitoring session, for debugging alert timing
and flush behaviour.
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from utils.debug import debug_log

MAX_EVENTS_PER_SESSION = 5000
MAX_SUMMARY_ERRORS = 20


class EventType(str, Enum):
    """Types of audit events."""
    SESSION_START = "session_start"
    SESSION_STOP = "session_stop"
    STATE_CHANGE = "state_change"
    ALERT_FIRED = "alert_fired"
    NOTIFICATION_SUPPRESSED = "notification_suppressed"
    ALERT_CANCELLED = "alert_cancelled"
    FLUSH = "flush"
    FLUSH_FAILED = "flush_failed"
    CONNECTIVITY = "connectivity"


@dataclass
class AuditEvent:
    """A single audit event."""
    ts: int  # ms since session start
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "ts": self.ts,
            "type": self.type,
            **self.data
        }


@dataclass
class AuditSummary:
    """Counters for the session."""
    state_changes: int = 0
    alerts: int = 0
    suppressed_notifications: int = 0
    cancelled_alerts: int = 0
    flushes: int = 0
    flush_failures: int = 0
    disconnects: int = 0
    errors: List[str] = field(default_factory=list)


class SessionAuditLogger:
    """Audit trail for a single monitoring session."""

    def __init__(self, session_id: Optional[str] = None, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.session_id = session_id
        self.events: List[AuditEvent] = []
        self.summary = AuditSummary()
        self.start_ms = int(self.clock() * 1000)

    def reset(self, session_id: Optional[str] = None):
        self.session_id = session_id
        self.events = []
        self.summary = AuditSummary()
        self.start_ms = int(self.clock() * 1000)

    def _now_ms(self) -> int:
        return int(self.clock() * 1000) - self.start_ms

    def _append(self, event_type: EventType, **data):
        if len(self.events) >= MAX_EVENTS_PER_SESSION:
            # Keep the newest events, the head of a long session is rarely interesting
            del self.events[0]
        self.events.append(AuditEvent(ts=self._now_ms(), type=event_type.value, data=data))

    def log_session_start(self):
        self._append(EventType.SESSION_START, sessionId=self.session_id)

    def log_session_stop(self, flushed: bool):
        self._append(EventType.SESSION_STOP, sessionId=self.session_id, flushed=flushed)

    def log_state_change(self, from_state: str, to_state: str):
        self.summary.state_changes += 1
        self._append(EventType.STATE_CHANGE, **{"from": from_state, "to": to_state})

    def log_alert(self):
        self.summary.alerts += 1
        self._append(EventType.ALERT_FIRED)

    def log_notification_suppressed(self):
        self.summary.suppressed_notifications += 1
        self._append(EventType.NOTIFICATION_SUPPRESSED)

    def log_alert_cancelled(self):
        self.summary.cancelled_alerts += 1
        self._append(EventType.ALERT_CANCELLED)

    def log_flush(self, good_seconds: float, bad_seconds: float, alerts: int):
        self.summary.flushes += 1
        self._append(EventType.FLUSH, goodSeconds=round(good_seconds, 3),
                     badSeconds=round(bad_seconds, 3), alerts=alerts)

    def log_flush_failed(self, error: str):
        self.summary.flush_failures += 1
        self.summary.errors.append(error)
        del self.summary.errors[:-MAX_SUMMARY_ERRORS]
        self._append(EventType.FLUSH_FAILED, error=error)
        debug_log(f"Flush failed for {self.session_id}: {error}", tag="AUDIT")

    def log_connectivity(self, connected: bool):
        if not connected:
            self.summary.disconnects += 1
        self._append(EventType.CONNECTIVITY, connected=connected)

    def get_events(self) -> List[Dict]:
        return [e.to_dict() for e in self.events]

    def get_summary(self) -> Dict:
        return asdict(self.summary)
