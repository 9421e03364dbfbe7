from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

import config as cfg
from models.database import HistoryPersistence, JsonFileHistoryPersistence, PersistenceError
from models.schemas import DailyRecord, day_key
from utils.debug import debug_log


def _debug_log(message: str):
    debug_log(message, tag="STORE")


DayLike = Union[date, datetime]


def _as_date(value: DayLike) -> date:
    return value.date() if isinstance(value, datetime) else value


class DailyHistoryStore:
    """
    One DailyRecord per local calendar day, persisted as a whole collection.

    The only mutator is merge_today(). Every merge prunes records past the
    retention window, sorts newest first and overwrites the stored collection.
    The in-memory collection changes only after the write is confirmed, so a
    failed merge can be retried with the same deltas without double counting.
    """

    def __init__(
        self,
        persistence: Optional[HistoryPersistence] = None,
        tunables: Optional[cfg.Tunables] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.persistence = persistence or JsonFileHistoryPersistence()
        self.tunables = tunables or cfg.DEFAULT_TUNABLES
        self.now = now
        self.records: List[DailyRecord] = self._load()

    def _load(self) -> List[DailyRecord]:
        try:
            raw = self.persistence.load()
        except PersistenceError as e:
            _debug_log(f"Load failed, starting empty: {e}")
            return []

        records = []
        seen = set()
        try:
            for item in raw:
                record = DailyRecord.model_validate(item)
                if record.id in seen:
                    continue
                seen.add(record.id)
                records.append(record)
        except (ValidationError, TypeError) as e:
            # A collection that doesn't decode is treated like a missing one
            _debug_log(f"Stored history is corrupt, starting empty: {e}")
            return []
        records.sort(key=lambda r: r.date, reverse=True)
        _debug_log(f"Loaded {len(records)} daily records")
        return records

    # === WRITE PATH ===

    def _prune_and_sort(self, records: List[DailyRecord]) -> List[DailyRecord]:
        cutoff = self.now() - timedelta(days=self.tunables.retention_days)
        kept = [r for r in records if r.date >= cutoff]
        kept.sort(key=lambda r: r.date, reverse=True)
        return kept

    def _commit(self, records: List[DailyRecord]) -> tuple[bool, str]:
        payload = [r.model_dump(mode="json", by_alias=True) for r in records]
        try:
            success, error = self.persistence.save(payload)
        except PersistenceError as e:
            success, error = False, str(e)
        if not success:
            _debug_log(f"Save failed: {error}")
            return False, error
        self.records = records
        return True, ""

    def merge_today(self, good_delta: float, bad_delta: float, alert_delta: int) -> tuple[bool, str]:
        """Add session deltas to today's record and persist the whole collection."""
        now = self.now()
        key = day_key(now)
        records = [r.model_copy() for r in self.records]

        today = next((r for r in records if r.id == key), None)
        if today is None:
            today = DailyRecord.for_day(now)
            records.append(today)
        today.update_from_session(good_delta, bad_delta, alert_delta)

        return self._commit(self._prune_and_sort(records))

    def replace_all(self, records: List[DailyRecord]) -> tuple[bool, str]:
        unique = {r.id: r for r in records}
        return self._commit(self._prune_and_sort(list(unique.values())))

    def clear_all(self) -> tuple[bool, str]:
        success, error = self.persistence.clear()
        if success:
            self.records = []
        return success, error

    # === READ PATH ===

    def all_records(self) -> List[DailyRecord]:
        return list(self.records)

    def record_for(self, day: DayLike) -> Optional[DailyRecord]:
        key = _as_date(day).strftime("%Y-%m-%d")
        return next((r for r in self.records if r.id == key), None)

    def records_in_range(self, start: DayLike, end: DayLike) -> List[DailyRecord]:
        """Records whose day falls within [start, end], in stored order."""
        first, last = _as_date(start), _as_date(end)
        return [r for r in self.records if first <= r.day <= last]

    @property
    def today(self) -> DailyRecord:
        """Today's record, or an empty unsaved one."""
        now = self.now()
        return self.record_for(now) or DailyRecord.for_day(now)

    @property
    def yesterday(self) -> Optional[DailyRecord]:
        return self.record_for(self.now() - timedelta(days=1))

    @property
    def score_improvement(self) -> int:
        yesterday = self.yesterday
        if yesterday is None:
            return 0
        return self.today.score - yesterday.score

    @property
    def score_improvement_percentage(self) -> str:
        yesterday = self.yesterday
        if yesterday is None or yesterday.score <= 0:
            return "N/A"
        improvement = self.today.score - yesterday.score
        percentage = improvement / yesterday.score * 100
        if improvement > 0:
            return f"+{percentage:.0f}%"
        if improvement < 0:
            return f"{percentage:.0f}%"
        return "0%"
