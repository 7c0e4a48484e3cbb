from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from workday.settings import get_settings

MIN_SESSION_DURATION = timedelta(minutes=1)


@dataclass(frozen=True)
class SessionMetrics:
    actual_work_minutes: int
    actual_work_hours: float
    completion_percentage: float
    remaining_hours: float
    overtime_hours: float


def normalize_ts(ts: datetime | None) -> datetime:
    if ts is None:
        return datetime.now(timezone.utc)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def normalize_end_time(start_time: datetime, end_time: datetime) -> tuple[datetime, bool]:
    """Return the end time to store and whether it had to be snapped forward."""
    start = normalize_ts(start_time)
    end = normalize_ts(end_time)
    if end - start < MIN_SESSION_DURATION:
        return start + MIN_SESSION_DURATION, True
    return end, False


def pause_minutes(paused_at: datetime, resumed_at: datetime) -> float:
    seconds = (normalize_ts(resumed_at) - normalize_ts(paused_at)).total_seconds()
    return max(0.0, seconds / 60)


def actual_work_minutes(
    *,
    start_time: datetime,
    end_time: datetime | None,
    total_break_minutes: float,
    now: datetime,
) -> int:
    reference = end_time if end_time is not None else now
    elapsed_seconds = (normalize_ts(reference) - normalize_ts(start_time)).total_seconds()
    worked_seconds = elapsed_seconds - max(0.0, total_break_minutes or 0.0) * 60
    return max(0, int(worked_seconds // 60))


def compute_session_metrics(
    *,
    start_time: datetime,
    end_time: datetime | None,
    total_break_minutes: float,
    target_hours: float,
    now: datetime,
) -> SessionMetrics:
    minutes = actual_work_minutes(
        start_time=start_time,
        end_time=end_time,
        total_break_minutes=total_break_minutes,
        now=now,
    )
    hours = minutes / 60
    if target_hours > 0:
        completion = min(100.0, 100 * hours / target_hours)
    else:
        completion = 100.0
    return SessionMetrics(
        actual_work_minutes=minutes,
        actual_work_hours=round(hours, 2),
        completion_percentage=round(completion, 2),
        remaining_hours=round(max(0.0, target_hours - hours), 2),
        overtime_hours=round(max(0.0, hours - target_hours), 2),
    )


@lru_cache
def attendance_timezone() -> ZoneInfo:
    raw_name = (get_settings().attendance_timezone or "").strip() or "UTC"
    try:
        return ZoneInfo(raw_name)
    except ZoneInfoNotFoundError:
        return ZoneInfo("UTC")


def local_day(ts: datetime) -> date:
    return normalize_ts(ts).astimezone(attendance_timezone()).date()
