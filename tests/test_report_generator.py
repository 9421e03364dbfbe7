from datetime import timedelta

import pytest

from models.database import MemoryHistoryPersistence
from models.schemas import DailyRecord
from services.history_store import DailyHistoryStore
from services.report_generator import ReportGenerator
from tests.conftest import FIXED_NOW


def _record(days_ago: int, good: float, bad: float = 0.0, alerts: int = 0) -> DailyRecord:
    record = DailyRecord.for_day(FIXED_NOW - timedelta(days=days_ago))
    record.update_from_session(good, bad, alerts)
    return record


def _store(tunables, *records: DailyRecord) -> DailyHistoryStore:
    raw = [r.model_dump(mode="json", by_alias=True) for r in records]
    return DailyHistoryStore(MemoryHistoryPersistence(raw), tunables, now=lambda: FIXED_NOW)


@pytest.mark.parametrize("score,band", [(100, "good"), (80, "good"), (79, "fair"), (60, "fair"), (59, "poor"), (0, "poor")])
def test_score_band(score, band):
    assert ReportGenerator.score_band(score) == band


@pytest.mark.parametrize("seconds,expected", [(0, "0m"), (59, "0m"), (600, "10m"), (3600, "1h 0m"), (9000, "2h 30m")])
def test_format_total_time(seconds, expected):
    assert ReportGenerator.format_total_time(seconds) == expected


def test_average_ignores_untracked_days():
    records = [_record(0, 80, 20), _record(1, 50, 50), _record(2, 0, 0)]
    assert ReportGenerator.average_score(records) == 65
    assert ReportGenerator.average_score([]) == 0


def test_average_floors():
    assert ReportGenerator.average_score([_record(0, 80, 20), _record(1, 81, 19)]) == 80


def test_streak_counts_back_from_today(tunables):
    store = _store(tunables, _record(0, 10), _record(1, 10), _record(2, 10), _record(4, 10))
    assert ReportGenerator.current_streak(store) == 3


def test_streak_is_zero_without_today(tunables):
    store = _store(tunables, _record(1, 10), _record(2, 10))
    assert ReportGenerator.current_streak(store) == 0


def test_streak_stops_at_empty_day(tunables):
    store = _store(tunables, _record(0, 10), _record(1, 0), _record(2, 10))
    assert ReportGenerator.current_streak(store) == 1


def test_monthly_summary(tunables):
    # FIXED_NOW is 18 October; 20 days back is 28 September
    store = _store(tunables, _record(0, 90, 10), _record(5, 70, 30), _record(20, 10, 90))
    summary = ReportGenerator.monthly_summary(store, 2026, 10)
    assert summary.month == "2026-10"
    assert summary.days_tracked == 2
    assert summary.average_score == 80

    september = ReportGenerator.monthly_summary(store, 2026, 9)
    assert september.days_tracked == 1
    assert september.average_score == 10


def test_monthly_summary_for_december(tunables):
    summary = ReportGenerator.monthly_summary(_store(tunables), 2026, 12)
    assert summary.days_tracked == 0
    assert summary.average_score == 0


def test_recommendations():
    assert ReportGenerator.get_recommendations(0, 0, 0) == [
        "Start a monitoring session to begin tracking your posture."
    ]
    assert ReportGenerator.get_recommendations(95, 0, 3600) == ["Great job! Keep up the good posture."]
    assert len(ReportGenerator.get_recommendations(40, 100, 3600)) == 3
    assert len(ReportGenerator.get_recommendations(70, 1, 3600)) == 1


def test_insights(tunables):
    store = _store(tunables, _record(0, 3000, 600, 3), _record(1, 1800, 1800, 5))
    insights = ReportGenerator.insights(store)

    assert insights.days_tracked == 2
    assert insights.total_monitored_seconds == 7200
    assert insights.total_monitoring_time == "2h 0m"
    assert insights.average_score == (83 + 50) // 2
    assert insights.total_alerts == 8
    assert insights.current_streak == 2
    assert insights.score_improvement == 33
    assert insights.score_improvement_percentage == "+66%"
    assert insights.month.month == "2026-10"
