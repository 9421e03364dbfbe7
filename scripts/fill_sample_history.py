"""
Fill the history store with realistic sample days, for screenshots and UI work.

Usage (from the repository root):
    python -m scripts.fill_sample_history            # 30 days of data
    python -m scripts.fill_sample_history --days 60
    python -m scripts.fill_sample_history --clear    # remove all history
"""

import argparse
import random
from datetime import datetime, timedelta
from typing import List, Optional

import config as cfg
from models.database import JsonFileHistoryPersistence
from models.schemas import DailyRecord
from services.history_store import DailyHistoryStore

SECONDS_PER_ALERT = 300  # Roughly one alert per 5 minutes of bad posture


def generate_sample_records(days: int = 30, now: Optional[datetime] = None,
                            rng: Optional[random.Random] = None) -> List[DailyRecord]:
    now = now or datetime.now()
    rng = rng or random.Random()
    records = []

    for days_ago in range(days):
        base_score = 70 + rng.randint(-15, 25)  # 55-95
        total_seconds = rng.uniform(2.0, 8.0) * 3600

        good_fraction = min(1.0, max(0.0, base_score / 100 + rng.uniform(-0.1, 0.1)))
        good_seconds = total_seconds * good_fraction
        bad_seconds = total_seconds - good_seconds
        alerts = max(0, int(bad_seconds / SECONDS_PER_ALERT) + rng.randint(-2, 2))

        record = DailyRecord.for_day(now - timedelta(days=days_ago))
        record.update_from_session(good_seconds, bad_seconds, alerts)
        records.append(record)

    return records


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Fill or clear the posture history store")
    parser.add_argument("--days", type=int, default=30, help="number of days to generate")
    parser.add_argument("--clear", action="store_true", help="delete all stored history instead")
    parser.add_argument("--file", default=cfg.HISTORY_FILE, help="history store path")
    parser.add_argument("--seed", type=int, default=None, help="random seed for repeatable data")
    args = parser.parse_args(argv)

    store = DailyHistoryStore(JsonFileHistoryPersistence(args.file))

    if args.clear:
        success, error = store.clear_all()
        print("All data cleared" if success else f"Clear failed: {error}")
        return 0 if success else 1

    if args.days < 1:
        parser.error("--days must be at least 1")

    records = generate_sample_records(args.days, rng=random.Random(args.seed))
    success, error = store.replace_all(records)
    if not success:
        print(f"Write failed: {error}")
        return 1

    print(f"Filled {args.file} with {len(store.records)} days of sample data")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
