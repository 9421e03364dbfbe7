import time
from typing import Callable, Optional

import config as cfg
from core.alert_policy import AlertPolicy, AlertSink
from core.events import EventChannel
from core.scheduler import Scheduler
from core.state_machine import PostureStateMachine
from models.schemas import PostureCategory, PostureEvent
from services.audit_logger import SessionAuditLogger
from services.history_store import DailyHistoryStore
from services.session_manager import SessionAccumulator
from utils.debug import debug_log


def _debug_log(message: str):
    debug_log(message, tag="MONITOR")


class PostureMonitor:
    """
    One monitoring pipeline: samples -> state machine -> (alert policy,
    session accumulator) -> daily history.

    Not thread-safe. Every call, and every timer the scheduler runs, must
    happen on the same event loop.
    """

    def __init__(
        self,
        store: DailyHistoryStore,
        scheduler: Scheduler,
        sink: Optional[AlertSink] = None,
        tunables: Optional[cfg.Tunables] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tunables = tunables or cfg.DEFAULT_TUNABLES
        self.clock = clock
        self.store = store
        self.audit = SessionAuditLogger(clock=clock)

        # The sample source reports connectivity here; nobody holds the monitor
        self.connectivity = EventChannel("connectivity")
        self.state = PostureStateMachine(self.tunables, connectivity=self.connectivity)
        self.accumulator = SessionAccumulator(
            store, scheduler, self.tunables, clock=clock, on_flush=self._on_flush,
        )
        self.alerts = AlertPolicy(
            scheduler,
            sink=sink,
            is_posture_bad=lambda: self.state.category.is_bad,
            on_alert=self._on_alert,
            on_notification_suppressed=self.audit.log_notification_suppressed,
            tunables=self.tunables,
            clock=clock,
        )

        self.state.events.subscribe(self._on_posture_event)
        self.connectivity.subscribe(self._on_connectivity)
        self._needs_resync = False

    @property
    def is_monitoring(self) -> bool:
        return self.accumulator.is_active

    # === EVENT WIRING ===

    def _on_posture_event(self, event: PostureEvent, previous: PostureCategory, current: PostureCategory):
        if event == PostureEvent.POSTURE_RECOVERED and self.alerts.is_armed:
            self.audit.log_alert_cancelled()
        self.alerts.handle_event(event)

    def _on_alert(self):
        self.accumulator.increment_alert()
        self.audit.log_alert()

    def _on_connectivity(self, connected: bool):
        if not self.is_monitoring:
            return
        self.audit.log_connectivity(connected)
        if not connected:
            self._needs_resync = True

    def _on_flush(self, good: float, bad: float, alerts: int, success: bool, error: str):
        if success:
            self.audit.log_flush(good, bad, alerts)
        else:
            self.audit.log_flush_failed(error)

    # === SAMPLE SOURCE INBOUND ===

    def handle_sample(self, pitch, roll) -> Optional[PostureCategory]:
        if not self.is_monitoring:
            return None

        previous = self.state.category
        category = self.state.process_sample(pitch, roll)
        if category is None:
            return None

        if category != previous:
            self.audit.log_state_change(previous.value, category.value)

        now = self.clock()
        if self._needs_resync:
            # Time spent disconnected is not posture time
            self._needs_resync = False
            self.accumulator.resync(now)
        else:
            self.accumulator.update(category, now)
        return category

    def handle_unavailable(self):
        self.state.mark_unavailable()

    # === SESSION CONTROL ===

    def start_monitoring(self) -> Optional[str]:
        session_id = self.accumulator.start()
        if session_id is None:
            return None
        self.state.reset()
        self._needs_resync = False
        self.audit.reset(session_id)
        self.audit.log_session_start()
        _debug_log(f"Monitoring {session_id}")
        return session_id

    def stop_monitoring(self) -> Optional[dict]:
        """Final flush first, then timers are torn down. Idempotent."""
        summary = self.accumulator.stop()
        if summary is None:
            return None
        self.alerts.cancel()
        self.state.reset()
        self.audit.log_session_stop(summary["flushed"])
        summary["audit"] = self.audit.get_summary()
        summary["events"] = self.audit.get_events()
        return summary

    def close(self):
        self.stop_monitoring()
        self.state.close()

    # === SETTINGS / STATUS ===

    def set_sound_enabled(self, enabled: bool):
        self.alerts.sound_enabled = bool(enabled)

    def set_notifications_enabled(self, enabled: bool):
        self.alerts.notifications_enabled = bool(enabled)
        if not enabled:
            self.alerts.clear_indications()

    def status(self) -> dict:
        snapshot = self.state.snapshot().model_dump(mode="json")
        snapshot["color"] = self.state.category.color
        snapshot["is_monitoring"] = self.is_monitoring
        snapshot["session_stats"] = {
            "unflushed_good_seconds": round(self.accumulator.good_seconds, 1),
            "unflushed_bad_seconds": round(self.accumulator.bad_seconds, 1),
            "unflushed_alerts": self.accumulator.alert_count,
        }
        today = self.store.today
        snapshot["today"] = {
            "score": today.score,
            "good_posture_duration": today.good_posture_duration,
            "alert_count": today.alert_count,
        }
        return snapshot
