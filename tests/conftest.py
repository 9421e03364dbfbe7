from datetime import datetime
from typing import Callable, List

import pytest

import config as cfg
from core.alert_policy import AlertSink
from models.database import MemoryHistoryPersistence
from services.history_store import DailyHistoryStore

FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0)


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """call_later stand-in: timers fire only inside advance()."""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.timers: List[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.clock.now + delay, callback)
        self.timers.append(timer)
        return timer

    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float):
        target = self.clock.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.timers.remove(timer)
            self.clock.now = max(self.clock.now, timer.when)
            timer.callback()
        self.timers = [t for t in self.timers if not t.cancelled]
        self.clock.now = target


class RecordingSink(AlertSink):
    def __init__(self):
        self.calls: List[str] = []

    def play_sound(self):
        self.calls.append("sound")

    def post_notification(self, title: str, body: str):
        self.calls.append("notify")

    def withdraw_notification(self):
        self.calls.append("withdraw")

    def count(self, name: str) -> int:
        return self.calls.count(name)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def tunables() -> cfg.Tunables:
    return cfg.Tunables(
        threshold_pitch=0.20,
        threshold_roll=0.20,
        confirm_delay=5.0,
        cooldown=60.0,
        flush_interval=5.0,
        stale_ceiling=2.0,
        retention_days=90,
    )


@pytest.fixture
def persistence() -> MemoryHistoryPersistence:
    return MemoryHistoryPersistence()


@pytest.fixture
def store(persistence, tunables) -> DailyHistoryStore:
    return DailyHistoryStore(persistence, tunables, now=lambda: FIXED_NOW)
