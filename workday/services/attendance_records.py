from __future__ import annotations

import calendar
import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from workday.errors import ApiError
from workday.models import AttendanceRecord, AttendanceSourceEvent, Employee, WorkSession
from workday.schemas import AttendanceEventImportRow
from workday.services.reconciler import NOT_STARTED, reconcile_day
from workday.services.session_calc import local_day, normalize_ts
from workday.settings import get_settings

logger = logging.getLogger("workday.attendance_records")


def _load_session(db: Session, *, employee_id: int, day_date: date) -> WorkSession | None:
    return db.scalar(
        select(WorkSession).where(
            WorkSession.employee_id == employee_id,
            WorkSession.session_date == day_date,
        )
    )


def _load_events(db: Session, *, employee_id: int, day_date: date) -> list[AttendanceSourceEvent]:
    return list(
        db.scalars(
            select(AttendanceSourceEvent)
            .where(
                AttendanceSourceEvent.employee_id == employee_id,
                AttendanceSourceEvent.day_date == day_date,
            )
            .order_by(AttendanceSourceEvent.ts_utc.asc(), AttendanceSourceEvent.id.asc())
        ).all()
    )


def get_attendance_record(db: Session, *, employee_id: int, day_date: date) -> AttendanceRecord | None:
    return db.scalar(
        select(AttendanceRecord).where(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.day_date == day_date,
        )
    )


def refresh_attendance_record(
    db: Session,
    *,
    employee_id: int,
    day_date: date,
    now: datetime,
    session: WorkSession | None = None,
) -> AttendanceRecord | None:
    """Rebuild the canonical record for one employee-day inside the caller's transaction."""
    settings = get_settings()
    if session is None:
        session = _load_session(db, employee_id=employee_id, day_date=day_date)
    events = _load_events(db, employee_id=employee_id, day_date=day_date)

    reconciled = reconcile_day(
        session,
        events,
        tolerance_minutes=settings.discrepancy_tolerance_minutes,
        standard_hours=settings.standard_daily_hours,
        now=now,
    )
    record = get_attendance_record(db, employee_id=employee_id, day_date=day_date)

    if reconciled is None:
        if record is not None:
            db.delete(record)
        return None

    if record is None:
        record = AttendanceRecord(employee_id=employee_id, day_date=day_date)
        db.add(record)
    for key, value in reconciled.as_record_values().items():
        setattr(record, key, value)

    if reconciled.has_discrepancy:
        logger.warning(
            "attendance_discrepancy",
            extra={
                "employee_id": employee_id,
                "day_date": day_date.isoformat(),
                "discrepancy_minutes": reconciled.discrepancy_minutes,
                "source": reconciled.source.value,
            },
        )
    return record


def get_day_status(db: Session, *, employee_id: int, day_date: date) -> dict[str, Any]:
    record = get_attendance_record(db, employee_id=employee_id, day_date=day_date)
    if record is None:
        return {"employee_id": employee_id, "day_date": day_date, "presence": NOT_STARTED, "record": None}
    return {"employee_id": employee_id, "day_date": day_date, "presence": record.presence, "record": record}


def import_attendance_events(
    db: Session,
    *,
    rows: list[AttendanceEventImportRow],
    created_by: str,
    now: datetime,
) -> dict[str, int]:
    if not rows:
        return {"imported": 0, "days_refreshed": 0, "discrepancies": 0}

    employee_ids = {row.employee_id for row in rows}
    known_ids = set(db.scalars(select(Employee.id).where(Employee.id.in_(employee_ids))).all())
    missing = sorted(employee_ids - known_ids)
    if missing:
        raise ApiError(
            status_code=404,
            code="EMPLOYEE_NOT_FOUND",
            message=f"Unknown employee ids: {', '.join(str(item) for item in missing)}.",
        )

    affected: set[tuple[int, date]] = set()
    for row in rows:
        ts_utc = normalize_ts(row.ts_utc)
        day_date = row.day_date or local_day(ts_utc)
        db.add(
            AttendanceSourceEvent(
                employee_id=row.employee_id,
                day_date=day_date,
                source=row.source,
                type=row.type,
                ts_utc=ts_utc,
                note=row.note,
                created_by=created_by,
            )
        )
        affected.add((row.employee_id, day_date))

    discrepancies = 0
    try:
        db.flush()
        for employee_id, day_date in sorted(affected):
            record = refresh_attendance_record(db, employee_id=employee_id, day_date=day_date, now=now)
            if record is not None and record.has_discrepancy:
                discrepancies += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "attendance_events_imported",
        extra={"imported": len(rows), "days_refreshed": len(affected), "discrepancies": discrepancies},
    )
    return {"imported": len(rows), "days_refreshed": len(affected), "discrepancies": discrepancies}


def list_attendance_records(
    db: Session,
    *,
    year: int,
    month: int,
    employee_id: int | None = None,
    only_discrepancies: bool = False,
) -> list[AttendanceRecord]:
    start_day = date(year, month, 1)
    end_day = date(year, month, calendar.monthrange(year, month)[1])
    stmt = select(AttendanceRecord).where(
        AttendanceRecord.day_date >= start_day,
        AttendanceRecord.day_date <= end_day,
    )
    if employee_id is not None:
        stmt = stmt.where(AttendanceRecord.employee_id == employee_id)
    if only_discrepancies:
        stmt = stmt.where(AttendanceRecord.has_discrepancy.is_(True))
    stmt = stmt.order_by(AttendanceRecord.day_date.asc(), AttendanceRecord.employee_id.asc())
    return list(db.scalars(stmt).all())
