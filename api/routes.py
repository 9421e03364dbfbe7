from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
import re
from services.history_store import DailyHistoryStore
from services.report_generator import ReportGenerator
import config as cfg

router = APIRouter(prefix="/api")

DAY_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
MONTH_PATTERN = re.compile(r'^(\d{4})-(\d{2})$')


def get_store(request: Request) -> DailyHistoryStore:
    return request.app.state.history_store


def parse_day(value: str) -> date:
    if not value or not DAY_PATTERN.match(value):
        raise HTTPException(status_code=400, detail="Invalid date, expected yyyy-MM-dd")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date, expected yyyy-MM-dd")


def parse_month(value: str) -> tuple[int, int]:
    match = MONTH_PATTERN.match(value or "")
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise HTTPException(status_code=400, detail="Invalid month, expected yyyy-MM")
    return int(match.group(1)), int(match.group(2))


@router.get("/history")
async def list_history(request: Request, start: Optional[str] = None, end: Optional[str] = None):
    """All stored days, newest first, optionally limited to an inclusive date range."""
    store = get_store(request)
    if start is None and end is None:
        records = store.all_records()
    else:
        first = parse_day(start) if start else date.min
        last = parse_day(end) if end else date.max
        if first > last:
            raise HTTPException(status_code=400, detail="start must not be after end")
        records = store.records_in_range(first, last)

    return JSONResponse({
        "records": [
            {**r.summary(), "band": ReportGenerator.score_band(r.score)}
            for r in records
        ]
    })


@router.get("/history/today")
async def today_history(request: Request):
    store = get_store(request)
    today = store.today
    return JSONResponse({
        "record": today.summary(),
        "score_improvement": store.score_improvement,
        "score_improvement_percentage": store.score_improvement_percentage,
    })


@router.get("/history/{day}")
async def day_history(request: Request, day: str):
    record = get_store(request).record_for(parse_day(day))
    if record is None:
        raise HTTPException(status_code=404, detail="No data for this day")
    return JSONResponse({**record.summary(), "band": ReportGenerator.score_band(record.score)})


@router.get("/insights")
async def insights(request: Request, month: Optional[str] = None):
    month_key = parse_month(month) if month else None
    report = ReportGenerator.insights(get_store(request), month_key)
    return JSONResponse(report.model_dump(mode="json"))


@router.delete("/history")
async def clear_history(request: Request):
    """Wipe all stored days. Development only."""
    if cfg.ENVIRONMENT != "development":
        raise HTTPException(status_code=404, detail="Not found")
    success, error = get_store(request).clear_all()
    if not success:
        raise HTTPException(status_code=500, detail=error or "Could not clear history")
    return JSONResponse({"cleared": True})
