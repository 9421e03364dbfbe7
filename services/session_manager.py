import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import config as cfg
from core.scheduler import Scheduler, TimerHandle
from models.schemas import PostureCategory
from services.history_store import DailyHistoryStore
from utils.debug import debug_log


def _debug_log(message: str):
    debug_log(message, tag="SESSION")


@dataclass
class MonitoringSession:
    """In-memory state of the running session. Never persisted as such."""
    session_id: Optional[str] = None
    start_time: Optional[datetime] = None
    good_seconds: float = 0.0
    bad_seconds: float = 0.0
    alert_count: int = 0
    last_sample_time: Optional[float] = None  # monotonic clock
    running: bool = False
    # Lifetime totals, for the stop summary; not reset by flushes
    total_good_seconds: float = 0.0
    total_bad_seconds: float = 0.0
    total_alerts: int = 0


class SessionAccumulator:
    """
    Turns classified samples into good/bad seconds for one monitoring session
    and periodically merges them into the daily history.

    All methods, including the flush timer callback, must run on the same
    thread (the event loop), so accumulation and flush never interleave.
    """

    def __init__(
        self,
        store: DailyHistoryStore,
        scheduler: Scheduler,
        tunables: Optional[cfg.Tunables] = None,
        clock: Callable[[], float] = time.monotonic,
        on_flush: Optional[Callable[[float, float, int, bool, str], None]] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.tunables = tunables or cfg.DEFAULT_TUNABLES
        self.clock = clock
        self.on_flush = on_flush
        self.session = MonitoringSession()
        self._flush_timer: Optional[TimerHandle] = None

    @property
    def is_active(self) -> bool:
        return self.session.running

    @property
    def good_seconds(self) -> float:
        return self.session.good_seconds

    @property
    def bad_seconds(self) -> float:
        return self.session.bad_seconds

    @property
    def alert_count(self) -> int:
        return self.session.alert_count

    def start(self) -> Optional[str]:
        """Begin a fresh session. Returns its id, or None if one is already running."""
        if self.session.running:
            return None

        self.session = MonitoringSession(
            session_id=str(uuid.uuid4()),
            start_time=datetime.now(),
            last_sample_time=self.clock(),
            running=True,
        )
        self._schedule_flush()
        _debug_log(f"Started: {self.session.session_id}")
        return self.session.session_id

    def update(self, category: PostureCategory, now: Optional[float] = None):
        """Attribute the time since the previous sample to `category`."""
        if not self.session.running:
            return
        now = self.clock() if now is None else now
        last = self.session.last_sample_time
        self.session.last_sample_time = now
        if last is None:
            return

        elapsed = now - last
        # Big gaps mean the app was suspended; don't book them as posture time
        if elapsed < 0 or elapsed >= self.tunables.stale_ceiling:
            return

        if category == PostureCategory.GOOD:
            self.session.good_seconds += elapsed
            self.session.total_good_seconds += elapsed
        elif category.is_bad:
            self.session.bad_seconds += elapsed
            self.session.total_bad_seconds += elapsed

    def resync(self, now: Optional[float] = None):
        """Restart interval measurement without booking the time just passed."""
        if not self.session.running:
            return
        self.session.last_sample_time = self.clock() if now is None else now

    def increment_alert(self):
        if not self.session.running:
            return
        self.session.alert_count += 1
        self.session.total_alerts += 1

    def _schedule_flush(self):
        self._flush_timer = self.scheduler.call_later(self.tunables.flush_interval, self._on_flush_tick)

    def _on_flush_tick(self):
        self._flush_timer = None
        if not self.session.running:
            return
        self.flush()
        self._schedule_flush()

    def flush(self) -> bool:
        """
        Merge buffered deltas into today's record. Buffers are zeroed only when
        the store confirms the write; otherwise they are kept for the next try.
        """
        if not self.session.running:
            return True

        good = self.session.good_seconds
        bad = self.session.bad_seconds
        alerts = self.session.alert_count
        if good == 0 and bad == 0 and alerts == 0:
            return True

        success, error = self.store.merge_today(good, bad, alerts)
        if success:
            self.session.good_seconds = 0.0
            self.session.bad_seconds = 0.0
            self.session.alert_count = 0
        else:
            _debug_log(f"Flush failed, keeping {good:.1f}s good / {bad:.1f}s bad for retry: {error}")

        if self.on_flush:
            self.on_flush(good, bad, alerts, success, error)
        return success

    def stop(self) -> Optional[dict]:
        """
        Final flush, then tear down the flush timer and close the session.
        Returns the session summary, or None if nothing was running.
        """
        if not self.session.running:
            return None

        flushed = self.flush()
        if self._flush_timer is not None:
            self._flush_timer.cancel()
            self._flush_timer = None

        session = self.session
        end_time = datetime.now()
        duration_sec = (end_time - session.start_time).total_seconds()
        total_tracked = session.total_good_seconds + session.total_bad_seconds
        good_percentage = (session.total_good_seconds / total_tracked * 100) if total_tracked > 0 else 0.0

        summary = {
            "session_id": session.session_id,
            "start_time": session.start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_minutes": round(duration_sec / 60.0, 2),
            "good_time_minutes": round(session.total_good_seconds / 60.0, 2),
            "bad_time_minutes": round(session.total_bad_seconds / 60.0, 2),
            "good_posture_percentage": round(good_percentage, 1),
            "alerts": session.total_alerts,
            "flushed": flushed,
        }

        # Unflushed deltas after a failed final write are lost
        self.session = MonitoringSession()
        _debug_log(f"Stopped: {summary['session_id']} (flushed={flushed})")
        return summary
