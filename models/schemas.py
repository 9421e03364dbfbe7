from enum import Enum
from typing import List, Optional
from datetime import datetime, date as date_type
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DAY_FORMAT = "%Y-%m-%d"


class PostureCategory(str, Enum):
    UNKNOWN = "unknown"
    GOOD = "good"
    FORWARD_LEAN = "forward_lean"
    SIDEWAYS_LEAN = "sideways_lean"
    POOR_POSTURE = "poor_posture"

    @property
    def is_bad(self) -> bool:
        return self in (PostureCategory.FORWARD_LEAN, PostureCategory.SIDEWAYS_LEAN, PostureCategory.POOR_POSTURE)

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def color(self) -> str:
        if self == PostureCategory.UNKNOWN:
            return "gray"
        return "green" if self == PostureCategory.GOOD else "red"


_DESCRIPTIONS = {
    PostureCategory.UNKNOWN: "Waiting for data...",
    PostureCategory.GOOD: "Good Posture ✓",
    PostureCategory.FORWARD_LEAN: "Leaning Forward",
    PostureCategory.SIDEWAYS_LEAN: "Leaning Sideways",
    PostureCategory.POOR_POSTURE: "Poor Posture",
}


class PostureEvent(str, Enum):
    BAD_POSTURE_ONSET = "bad_posture_onset"
    POSTURE_RECOVERED = "posture_recovered"


class OrientationSample(BaseModel):
    """One headphone attitude reading. Never persisted.

    Strings, booleans and non-finite angles are rejected, so a sample that
    validates is always classifiable.
    """
    pitch: float = Field(strict=True, allow_inf_nan=False)  # radians, forward/back tilt
    roll: float = Field(strict=True, allow_inf_nan=False)   # radians, left/right tilt
    timestamp: datetime = Field(default_factory=datetime.now)


class StatusSnapshot(BaseModel):
    status: str
    category: PostureCategory
    pitch: float
    roll: float
    timestamp: datetime
    is_connected: bool


def day_key(value: datetime) -> str:
    return value.strftime(DAY_FORMAT)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def format_duration(seconds: float) -> str:
    """Format seconds as "X.Xh", "Xm" or "<1m"."""
    hours = seconds / 3600
    minutes = (seconds % 3600) / 60
    if hours >= 1:
        return f"{hours:.1f}h"
    if minutes >= 1:
        return f"{int(minutes)}m"
    return "<1m"


class DailyRecord(BaseModel):
    """Posture totals for one local calendar day. Keyed by its "yyyy-MM-dd" id."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    date: datetime
    total_monitored_seconds: float = 0.0
    good_posture_seconds: float = 0.0
    bad_posture_seconds: float = 0.0
    alert_count: int = 0

    @field_validator("date")
    @classmethod
    def _local_naive(cls, value: datetime) -> datetime:
        # Day boundaries are local; stored values may carry an offset
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value

    @model_validator(mode="after")
    def _total_is_sum(self) -> "DailyRecord":
        self.total_monitored_seconds = self.good_posture_seconds + self.bad_posture_seconds
        return self

    @classmethod
    def for_day(cls, when: datetime) -> "DailyRecord":
        return cls(id=day_key(when), date=start_of_day(when))

    @property
    def day(self) -> date_type:
        return self.date.date()

    @property
    def score(self) -> int:
        """Percentage of monitored time in good posture, 0-100."""
        if self.total_monitored_seconds <= 0:
            return 0
        # half-up, not round()'s half-to-even
        return int(self.good_posture_seconds / self.total_monitored_seconds * 100 + 0.5)

    @property
    def bad_posture_percentage(self) -> float:
        if self.total_monitored_seconds <= 0:
            return 0.0
        return self.bad_posture_seconds / self.total_monitored_seconds * 100

    @property
    def good_posture_duration(self) -> str:
        return format_duration(self.good_posture_seconds)

    def update_from_session(self, good_seconds: float, bad_seconds: float, alerts: int):
        self.good_posture_seconds += good_seconds
        self.bad_posture_seconds += bad_seconds
        # total is never set on its own
        self.total_monitored_seconds = self.good_posture_seconds + self.bad_posture_seconds
        self.alert_count += alerts

    def summary(self) -> dict:
        """Wire form plus the derived values, for API responses."""
        data = self.model_dump(mode="json", by_alias=True)
        data.update({
            "score": self.score,
            "badPosturePercentage": round(self.bad_posture_percentage, 1),
            "goodPostureDuration": self.good_posture_duration,
        })
        return data


class MonthlySummary(BaseModel):
    month: str
    days_tracked: int
    average_score: int


class HistoryInsights(BaseModel):
    days_tracked: int
    total_monitored_seconds: float
    total_monitoring_time: str
    average_score: int
    total_alerts: int
    current_streak: int
    score_improvement: int
    score_improvement_percentage: str
    month: Optional[MonthlySummary] = None
    recommendations: List[str] = []
