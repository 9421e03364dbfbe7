from datetime import date, datetime, timedelta
from typing import List, Optional

from models.schemas import DailyRecord, HistoryInsights, MonthlySummary
from services.history_store import DailyHistoryStore


class ReportGenerator:
    """
    Derived statistics over the daily history for the calendar and insights
    views. Only days with monitored time count as tracked.
    """

    GOOD_SCORE = 80  # At or above: "good" day
    FAIR_SCORE = 60  # At or above: "fair" day
    ALERTS_PER_HOUR_WARNING = 6

    @staticmethod
    def tracked(records: List[DailyRecord]) -> List[DailyRecord]:
        return [r for r in records if r.total_monitored_seconds > 0]

    @staticmethod
    def score_band(score: int) -> str:
        if score >= ReportGenerator.GOOD_SCORE:
            return "good"
        if score >= ReportGenerator.FAIR_SCORE:
            return "fair"
        return "poor"

    @staticmethod
    def average_score(records: List[DailyRecord]) -> int:
        tracked = ReportGenerator.tracked(records)
        if not tracked:
            return 0
        return sum(r.score for r in tracked) // len(tracked)

    @staticmethod
    def format_total_time(total_seconds: float) -> str:
        hours = int(total_seconds) // 3600
        minutes = (int(total_seconds) % 3600) // 60
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    @staticmethod
    def current_streak(store: DailyHistoryStore) -> int:
        """Consecutive tracked days ending today."""
        streak = 0
        check = store.now().date()
        while True:
            record = store.record_for(check)
            if record is None or record.total_monitored_seconds <= 0:
                return streak
            streak += 1
            check -= timedelta(days=1)

    @staticmethod
    def monthly_summary(store: DailyHistoryStore, year: int, month: int) -> MonthlySummary:
        first = date(year, month, 1)
        next_month = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        records = ReportGenerator.tracked(store.records_in_range(first, next_month - timedelta(days=1)))
        return MonthlySummary(
            month=f"{year:04d}-{month:02d}",
            days_tracked=len(records),
            average_score=ReportGenerator.average_score(records),
        )

    @staticmethod
    def get_recommendations(average_score: int, total_alerts: int, total_seconds: float) -> List[str]:
        recommendations = []
        if total_seconds <= 0:
            return ["Start a monitoring session to begin tracking your posture."]

        if average_score < ReportGenerator.FAIR_SCORE:
            recommendations.append("Raise your screen to eye level so you don't tilt your head forward.")
            recommendations.append("Take a short break to stand and stretch every 30 minutes.")
        elif average_score < ReportGenerator.GOOD_SCORE:
            recommendations.append("Check that your head stays level when reading; avoid leaning to one side.")

        hours = total_seconds / 3600
        if hours > 0 and total_alerts / hours > ReportGenerator.ALERTS_PER_HOUR_WARNING:
            recommendations.append("Frequent alerts: try chin tucks and shoulder blade squeezes between tasks.")

        if not recommendations:
            recommendations.append("Great job! Keep up the good posture.")
        return recommendations[:3]

    @staticmethod
    def insights(store: DailyHistoryStore, month: Optional[tuple[int, int]] = None) -> HistoryInsights:
        records = store.all_records()
        tracked = ReportGenerator.tracked(records)
        total_seconds = sum(r.total_monitored_seconds for r in records)
        total_alerts = sum(r.alert_count for r in records)
        average = ReportGenerator.average_score(tracked)

        if month is None:
            now: datetime = store.now()
            month = (now.year, now.month)

        return HistoryInsights(
            days_tracked=len(tracked),
            total_monitored_seconds=round(total_seconds, 1),
            total_monitoring_time=ReportGenerator.format_total_time(total_seconds),
            average_score=average,
            total_alerts=total_alerts,
            current_streak=ReportGenerator.current_streak(store),
            score_improvement=store.score_improvement,
            score_improvement_percentage=store.score_improvement_percentage,
            month=ReportGenerator.monthly_summary(store, *month),
            recommendations=ReportGenerator.get_recommendations(average, total_alerts, total_seconds),
        )
