from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from itertools import combinations
from typing import Any, Iterable, Protocol

from workday.models import (
    AttendanceEventSource,
    AttendanceEventType,
    AttendanceRecordSource,
    AttendanceRecordStatus,
    WorkLocation,
    WorkSessionStatus,
)
from workday.services.session_calc import actual_work_minutes, normalize_ts

PRESENT = "Present"
NOT_STARTED = "Not Started"


class SessionLike(Protocol):
    start_time: datetime
    end_time: datetime | None
    status: WorkSessionStatus
    total_break_minutes: float
    work_location: WorkLocation


class EventLike(Protocol):
    source: AttendanceEventSource
    type: AttendanceEventType
    ts_utc: datetime


@dataclass(frozen=True)
class OriginTimes:
    start: datetime | None
    end: datetime | None


@dataclass(frozen=True)
class ReconciledDay:
    start_day_time: datetime
    end_day_time: datetime | None
    status: AttendanceRecordStatus
    presence: str
    source: AttendanceRecordSource
    has_discrepancy: bool
    discrepancy_minutes: float | None
    worked_hours: float
    overtime_hours: float
    work_location: WorkLocation | None

    def as_record_values(self) -> dict[str, Any]:
        return {
            "start_day_time": self.start_day_time,
            "end_day_time": self.end_day_time,
            "status": self.status,
            "presence": self.presence,
            "source": self.source,
            "has_discrepancy": self.has_discrepancy,
            "discrepancy_minutes": self.discrepancy_minutes,
            "worked_hours": self.worked_hours,
            "overtime_hours": self.overtime_hours,
            "work_location": self.work_location,
        }


def _origin_times(events: Iterable[EventLike], source: AttendanceEventSource, *, latest_in: bool) -> OriginTimes | None:
    ins = [normalize_ts(e.ts_utc) for e in events if e.source == source and e.type == AttendanceEventType.IN]
    outs = [normalize_ts(e.ts_utc) for e in events if e.source == source and e.type == AttendanceEventType.OUT]
    if not ins and not outs:
        return None
    if ins:
        start = max(ins) if latest_in else min(ins)
    else:
        start = None
    end = max(outs) if outs else None
    return OriginTimes(start=start, end=end)


def _max_spread_minutes(values: list[datetime]) -> float:
    spread = 0.0
    for left, right in combinations(values, 2):
        spread = max(spread, abs((left - right).total_seconds()) / 60)
    return spread


def detect_discrepancy(origins: list[OriginTimes], tolerance_minutes: float) -> tuple[bool, float | None]:
    starts = [o.start for o in origins if o.start is not None]
    ends = [o.end for o in origins if o.end is not None]
    if len(starts) < 2 and len(ends) < 2:
        return False, None

    spread = max(_max_spread_minutes(starts), _max_spread_minutes(ends))
    if spread > tolerance_minutes:
        return True, round(spread, 2)
    return False, None


def _span_hours(start: datetime, end: datetime | None) -> float:
    if end is None:
        return 0.0
    return max(0.0, (end - start).total_seconds() / 3600)


def reconcile_day(
    monitoring: SessionLike | None,
    events: list[EventLike],
    *,
    tolerance_minutes: float,
    standard_hours: float,
    now: datetime,
) -> ReconciledDay | None:
    """Collapse every origin for one employee-day into a single attendance view.

    Priority: monitoring session, then admin override, then start-day/biometric events.
    Disagreement between origins only raises the discrepancy flag.
    """
    override = _origin_times(events, AttendanceEventSource.ADMIN_OVERRIDE, latest_in=True)
    start_day = _origin_times(events, AttendanceEventSource.START_DAY, latest_in=False)
    biometric = _origin_times(events, AttendanceEventSource.BIOMETRIC, latest_in=False)

    monitoring_times: OriginTimes | None = None
    if monitoring is not None:
        monitoring_times = OriginTimes(
            start=normalize_ts(monitoring.start_time),
            end=normalize_ts(monitoring.end_time) if monitoring.end_time is not None else None,
        )

    origins = [o for o in (monitoring_times, override, start_day, biometric) if o is not None]
    has_discrepancy, discrepancy_minutes = detect_discrepancy(origins, tolerance_minutes)

    work_location: WorkLocation | None = None
    if monitoring is not None and monitoring_times is not None and monitoring_times.start is not None:
        start = monitoring_times.start
        end = monitoring_times.end
        status = (
            AttendanceRecordStatus.COMPLETED
            if monitoring.status == WorkSessionStatus.COMPLETED
            else AttendanceRecordStatus.ACTIVE
        )
        minutes = actual_work_minutes(
            start_time=monitoring.start_time,
            end_time=monitoring.end_time,
            total_break_minutes=monitoring.total_break_minutes or 0.0,
            now=now,
        )
        worked_hours = minutes / 60
        source = AttendanceRecordSource.MONITORING
        work_location = monitoring.work_location
    elif override is not None and override.start is not None:
        start = override.start
        end = override.end if override.end is not None and override.end >= override.start else None
        status = AttendanceRecordStatus.COMPLETED if end is not None else AttendanceRecordStatus.ACTIVE
        worked_hours = _span_hours(start, end)
        source = AttendanceRecordSource.ADMIN_OVERRIDE
    else:
        present = [o for o in (start_day, biometric) if o is not None and o.start is not None]
        if not present:
            return None

        if biometric is not None and biometric.start is not None and biometric.end is not None:
            start = biometric.start
            end = biometric.end
        else:
            start = min(o.start for o in present if o.start is not None)
            ends = [o.end for o in (start_day, biometric) if o is not None and o.end is not None]
            end = max(ends) if ends else None
        if end is not None and end < start:
            end = None

        if len(present) == 2:
            source = AttendanceRecordSource.BOTH
        elif present[0] is biometric:
            source = AttendanceRecordSource.BIOMETRIC
        else:
            source = AttendanceRecordSource.START_DAY
        status = AttendanceRecordStatus.COMPLETED if end is not None else AttendanceRecordStatus.ACTIVE
        worked_hours = _span_hours(start, end)

    return ReconciledDay(
        start_day_time=start,
        end_day_time=end,
        status=status,
        presence=PRESENT,
        source=source,
        has_discrepancy=has_discrepancy,
        discrepancy_minutes=discrepancy_minutes,
        worked_hours=round(worked_hours, 2),
        overtime_hours=round(max(0.0, worked_hours - standard_hours), 2),
        work_location=work_location,
    )
