from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from workday.errors import ApiError
from workday.models import (
    AttendanceRecord,
    AttendanceRecordStatus,
    Employee,
    SalaryAdjustment,
    SalaryProfile,
    WorkingDaysConfig,
)
from workday.schemas import SalaryAdjustmentCreate, SalaryProfileUpsert, WorkingDaysConfigUpsert
from workday.services.salary_calc import (
    AttendanceSummary,
    PayPeriodResult,
    PayPolicy,
    compute_pay_period,
    period_bounds,
    resolve_probation_end,
)
from workday.settings import get_settings

logger = logging.getLogger("workday.payroll")

SALARY_NOT_CONFIGURED = "SALARY_NOT_CONFIGURED"


def _require_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    return employee


def get_salary_profile(db: Session, employee_id: int) -> SalaryProfile | None:
    return db.scalar(
        select(SalaryProfile).where(
            SalaryProfile.employee_id == employee_id,
            SalaryProfile.is_active.is_(True),
        )
    )


def set_salary_profile(db: Session, *, employee_id: int, payload: SalaryProfileUpsert) -> SalaryProfile:
    _require_employee(db, employee_id)
    profile = db.scalar(select(SalaryProfile).where(SalaryProfile.employee_id == employee_id))
    if profile is None:
        profile = SalaryProfile(employee_id=employee_id)
        db.add(profile)

    for key, value in payload.model_dump().items():
        setattr(profile, key, value)
    if profile.probation_end_date is None:
        profile.probation_end_date = resolve_probation_end(profile)

    db.commit()
    db.refresh(profile)
    return profile


def add_adjustment(
    db: Session,
    *,
    employee_id: int,
    payload: SalaryAdjustmentCreate,
    created_by: str,
) -> SalaryAdjustment:
    _require_employee(db, employee_id)
    adjustment = SalaryAdjustment(
        employee_id=employee_id,
        type=payload.type,
        amount=payload.amount,
        percentage=payload.percentage,
        reason=payload.reason.strip(),
        effective_date=payload.effective_date,
        is_recurring=payload.is_recurring,
        expiry_date=payload.expiry_date,
        created_by=created_by,
    )
    db.add(adjustment)
    db.commit()
    db.refresh(adjustment)
    return adjustment


def list_adjustments(db: Session, *, employee_id: int) -> list[SalaryAdjustment]:
    return list(
        db.scalars(
            select(SalaryAdjustment)
            .where(SalaryAdjustment.employee_id == employee_id)
            .order_by(SalaryAdjustment.effective_date.asc(), SalaryAdjustment.id.asc())
        ).all()
    )


def get_working_days_config(db: Session, *, year: int, month: int) -> WorkingDaysConfig | None:
    return db.scalar(
        select(WorkingDaysConfig).where(
            WorkingDaysConfig.year == year,
            WorkingDaysConfig.month == month,
        )
    )


def set_working_days_config(
    db: Session,
    *,
    payload: WorkingDaysConfigUpsert,
    updated_by: str,
) -> WorkingDaysConfig:
    config = get_working_days_config(db, year=payload.year, month=payload.month)
    if config is None:
        config = WorkingDaysConfig(year=payload.year, month=payload.month)
        db.add(config)

    if payload.working_days is not None:
        config.working_days = payload.working_days
    else:
        config.working_days = default_working_days(
            payload.year,
            payload.month,
            [holiday.day for holiday in payload.holidays],
        )
    config.holidays = [
        {"date": holiday.day.isoformat(), "name": holiday.name} for holiday in payload.holidays
    ]
    config.updated_by = updated_by
    db.commit()
    db.refresh(config)
    return config


def default_working_days(year: int, month: int, holidays: list[date] | None = None) -> int:
    period_start, period_end = period_bounds(year, month)
    holiday_set = set(holidays or [])
    count = 0
    cursor = period_start
    while cursor <= period_end:
        # Sunday is the only weekly rest day.
        if cursor.weekday() != 6 and cursor not in holiday_set:
            count += 1
        cursor += timedelta(days=1)
    return count


def resolve_working_days(
    db: Session,
    *,
    year: int,
    month: int,
    override: int | None = None,
) -> int:
    if override is not None:
        return override
    config = get_working_days_config(db, year=year, month=month)
    if config is not None:
        return config.working_days
    return default_working_days(year, month)


def is_attended(record: AttendanceRecord) -> bool:
    if record.status == AttendanceRecordStatus.COMPLETED:
        return True
    return record.status == AttendanceRecordStatus.ACTIVE and (record.worked_hours or 0) > 0


def summarize_attendance(db: Session, *, employee_id: int, year: int, month: int) -> AttendanceSummary:
    period_start, period_end = period_bounds(year, month)
    records = list(
        db.scalars(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.day_date >= period_start,
                AttendanceRecord.day_date <= period_end,
            )
        ).all()
    )
    attended = [record for record in records if is_attended(record)]
    return AttendanceSummary(
        present_days=len(attended),
        total_hours=round(sum(record.worked_hours or 0 for record in attended), 2),
        overtime_hours=round(sum(record.overtime_hours or 0 for record in attended), 2),
        discrepancy_days=sum(1 for record in records if record.has_discrepancy),
    )


def calculate_salary(
    db: Session,
    *,
    employee_id: int,
    year: int,
    month: int,
    working_days: int | None = None,
) -> dict[str, Any]:
    _require_employee(db, employee_id)
    profile = get_salary_profile(db, employee_id)
    if profile is None:
        logger.info("salary_not_configured", extra={"employee_id": employee_id, "year": year, "month": month})
        return {
            "employee_id": employee_id,
            "status": SALARY_NOT_CONFIGURED,
            "message": "No active salary profile for this employee.",
            "result": None,
        }

    resolved_days = resolve_working_days(db, year=year, month=month, override=working_days)
    attendance = summarize_attendance(db, employee_id=employee_id, year=year, month=month)
    result: PayPeriodResult = compute_pay_period(
        profile=profile,
        working_days=resolved_days,
        attendance=attendance,
        adjustments=list_adjustments(db, employee_id=employee_id),
        policy=PayPolicy.from_settings(get_settings()),
        year=year,
        month=month,
    )
    logger.info(
        "salary_calculated",
        extra={
            "employee_id": employee_id,
            "year": year,
            "month": month,
            "working_days": resolved_days,
            "net_pay": str(result.net_pay),
        },
    )
    return {"employee_id": employee_id, "status": "CALCULATED", "message": None, "result": result}


def calculate_bulk_salary(
    db: Session,
    *,
    employee_ids: list[int] | None,
    year: int,
    month: int,
    working_days: int | None = None,
) -> dict[str, Any]:
    if employee_ids:
        target_ids = list(dict.fromkeys(employee_ids))
    else:
        target_ids = list(
            db.scalars(select(Employee.id).where(Employee.is_active.is_(True)).order_by(Employee.id.asc())).all()
        )

    results: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []
    for employee_id in target_ids:
        try:
            results.append(
                calculate_salary(
                    db,
                    employee_id=employee_id,
                    year=year,
                    month=month,
                    working_days=working_days,
                )
            )
        except ApiError as exc:
            errors.append({"employee_id": employee_id, "code": exc.code, "message": exc.message})

    return {"year": year, "month": month, "results": results, "errors": errors}

