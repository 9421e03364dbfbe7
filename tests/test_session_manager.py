import json

import pytest

from models.database import JsonFileHistoryPersistence
from models.schemas import PostureCategory
from services.history_store import DailyHistoryStore
from services.session_manager import SessionAccumulator
from tests.conftest import FIXED_NOW


@pytest.fixture
def accumulator(store, scheduler, tunables, clock):
    return SessionAccumulator(store, scheduler, tunables, clock=clock)


def test_update_is_noop_when_not_running(accumulator, clock):
    accumulator.update(PostureCategory.GOOD, clock.now + 1.0)
    accumulator.increment_alert()
    assert accumulator.good_seconds == 0
    assert accumulator.alert_count == 0


def test_start_twice_is_noop(accumulator):
    first = accumulator.start()
    assert first is not None
    assert accumulator.start() is None
    assert accumulator.session.session_id == first


def test_accumulates_into_buckets(accumulator, clock):
    accumulator.start()
    t = clock.now
    accumulator.update(PostureCategory.GOOD, t + 0.5)
    accumulator.update(PostureCategory.FORWARD_LEAN, t + 1.0)
    accumulator.update(PostureCategory.POOR_POSTURE, t + 1.25)
    accumulator.update(PostureCategory.UNKNOWN, t + 1.5)
    accumulator.update(PostureCategory.GOOD, t + 2.5)

    assert accumulator.good_seconds == pytest.approx(1.5)
    assert accumulator.bad_seconds == pytest.approx(0.75)


def test_stale_gap_contributes_nothing(accumulator, clock):
    accumulator.start()
    t = clock.now
    accumulator.update(PostureCategory.GOOD, t + 0.5)
    accumulator.update(PostureCategory.GOOD, t + 2.5)  # exactly the ceiling
    accumulator.update(PostureCategory.SIDEWAYS_LEAN, t + 30)
    accumulator.update(PostureCategory.GOOD, t + 30.5)

    assert accumulator.good_seconds == pytest.approx(1.0)
    assert accumulator.bad_seconds == 0
    assert accumulator.session.last_sample_time == t + 30.5


def test_resync_skips_interval(accumulator, clock):
    accumulator.start()
    t = clock.now
    accumulator.resync(t + 1.0)
    accumulator.update(PostureCategory.GOOD, t + 1.5)
    assert accumulator.good_seconds == pytest.approx(0.5)


def test_periodic_flush_merges_and_resets(accumulator, store, scheduler, clock):
    accumulator.start()
    t = clock.now
    accumulator.update(PostureCategory.GOOD, t + 1.0)
    accumulator.update(PostureCategory.FORWARD_LEAN, t + 2.0)
    accumulator.increment_alert()

    scheduler.advance(5.0)

    today = store.today
    assert today.good_posture_seconds == pytest.approx(1.0)
    assert today.bad_posture_seconds == pytest.approx(1.0)
    assert today.alert_count == 1
    assert accumulator.good_seconds == 0
    assert accumulator.bad_seconds == 0
    assert accumulator.alert_count == 0
    assert accumulator.is_active
    assert accumulator.session.last_sample_time == t + 2.0
    # next tick is armed
    assert len(scheduler.pending()) == 1


def test_failed_flush_keeps_deltas_for_retry(accumulator, store, persistence, scheduler, clock):
    accumulator.start()
    t = clock.now
    accumulator.update(PostureCategory.GOOD, t + 1.0)

    persistence.fail_writes = True
    scheduler.advance(5.0)
    assert accumulator.good_seconds == pytest.approx(1.0)
    assert store.record_for(store.now()) is None

    persistence.fail_writes = False
    scheduler.advance(5.0)
    assert accumulator.good_seconds == 0
    assert store.today.good_posture_seconds == pytest.approx(1.0)


def test_stop_flushes_then_cancels(accumulator, store, scheduler, clock):
    accumulator.start()
    t = clock.now
    accumulator.update(PostureCategory.SIDEWAYS_LEAN, t + 1.5)

    summary = accumulator.stop()

    assert summary["flushed"] is True
    assert summary["bad_time_minutes"] == pytest.approx(1.5 / 60, abs=0.01)
    assert store.today.bad_posture_seconds == pytest.approx(1.5)
    assert scheduler.pending() == []
    assert accumulator.is_active is False
    assert accumulator.session.start_time is None
    assert accumulator.session.last_sample_time is None


def test_stop_twice_is_idempotent(accumulator, persistence):
    accumulator.start()
    accumulator.stop()
    saves = persistence.save_count

    assert accumulator.stop() is None
    assert persistence.save_count == saves
    assert accumulator.good_seconds == 0
    assert accumulator.bad_seconds == 0
    assert accumulator.is_active is False


def test_summary_uses_session_totals_across_flushes(accumulator, scheduler, clock):
    accumulator.start()
    for _ in range(20):
        clock.now += 0.5
        accumulator.update(PostureCategory.GOOD, clock.now)
        scheduler.advance(0)
    assert accumulator.good_seconds == 0  # flushed at the 10 s tick
    accumulator.update(PostureCategory.GOOD, clock.now + 1.0)
    accumulator.increment_alert()

    summary = accumulator.stop()

    assert summary["good_time_minutes"] == pytest.approx(11.0 / 60, abs=0.01)
    assert summary["alerts"] == 1
    assert summary["good_posture_percentage"] == 100.0


def test_flush_tick_writes_file_before_returning(tmp_path, scheduler, tunables, clock):
    path = tmp_path / "store.json"
    store = DailyHistoryStore(JsonFileHistoryPersistence(str(path)), tunables, now=lambda: FIXED_NOW)
    accumulator = SessionAccumulator(store, scheduler, tunables, clock=clock)
    accumulator.start()
    accumulator.update(PostureCategory.GOOD, clock.now + 1.0)

    scheduler.advance(5.0)

    saved = json.loads(path.read_text())["postureHistory"]
    assert saved[0]["goodPostureSeconds"] == pytest.approx(1.0)
