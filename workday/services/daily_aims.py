from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from workday.errors import ApiError
from workday.models import AimCompletionStatus, DailyAim, DailyProgress, Employee
from workday.schemas import DailyAimUpsert, DailyProgressUpsert


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def _require_active_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    if not employee.is_active:
        raise ApiError(
            status_code=403,
            code="EMPLOYEE_INACTIVE",
            message="Inactive employee cannot update daily aims or progress.",
        )
    return employee


def _commit_and_refresh(db: Session, obj: DailyAim | DailyProgress) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(obj)


def get_daily_aim(db: Session, *, employee_id: int, day_date: date) -> DailyAim | None:
    return db.scalar(
        select(DailyAim).where(
            DailyAim.employee_id == employee_id,
            DailyAim.day_date == day_date,
        )
    )


def get_daily_progress(db: Session, *, employee_id: int, day_date: date) -> DailyProgress | None:
    return db.scalar(
        select(DailyProgress).where(
            DailyProgress.employee_id == employee_id,
            DailyProgress.day_date == day_date,
        )
    )


def load_end_day_checklist(
    db: Session,
    *,
    employee_id: int,
    day_date: date,
) -> tuple[DailyAim | None, DailyProgress | None]:
    aim = get_daily_aim(db, employee_id=employee_id, day_date=day_date)
    progress = get_daily_progress(db, employee_id=employee_id, day_date=day_date)
    return aim, progress


def ensure_end_day_allowed(aim: DailyAim | None, progress: DailyProgress | None) -> None:
    if aim is None:
        raise ApiError(
            status_code=422,
            code="AIM_NOT_SET",
            message="Set today's aim before ending the day.",
        )
    if aim.completion_status == AimCompletionStatus.PENDING:
        raise ApiError(
            status_code=422,
            code="AIM_NOT_COMPLETED",
            message="Mark today's aim as Completed or MVP Achieved before ending the day.",
        )
    if not _has_text(aim.completion_comment):
        raise ApiError(
            status_code=422,
            code="AIM_COMMENT_MISSING",
            message="Add a completion comment to today's aim before ending the day.",
        )
    if progress is None or not any(
        _has_text(value) for value in (progress.notes, progress.achievements, progress.blockers)
    ):
        raise ApiError(
            status_code=422,
            code="PROGRESS_NOT_SET",
            message="Record today's progress before ending the day.",
        )


def upsert_daily_aim(
    db: Session,
    *,
    employee_id: int,
    day_date: date,
    payload: DailyAimUpsert,
) -> DailyAim:
    _require_active_employee(db, employee_id)
    aim = get_daily_aim(db, employee_id=employee_id, day_date=day_date)
    if aim is None:
        aim = DailyAim(employee_id=employee_id, day_date=day_date)
        db.add(aim)

    aim.aims = payload.aims.strip()
    aim.completion_status = payload.completion_status
    aim.completion_comment = payload.completion_comment.strip() if payload.completion_comment else None
    _commit_and_refresh(db, aim)
    return aim


def upsert_daily_progress(
    db: Session,
    *,
    employee_id: int,
    day_date: date,
    payload: DailyProgressUpsert,
) -> DailyProgress:
    _require_active_employee(db, employee_id)
    progress = get_daily_progress(db, employee_id=employee_id, day_date=day_date)
    if progress is None:
        progress = DailyProgress(employee_id=employee_id, day_date=day_date)
        db.add(progress)

    progress.progress_percentage = payload.progress_percentage
    progress.notes = payload.notes
    progress.achievements = payload.achievements
    progress.blockers = payload.blockers
    _commit_and_refresh(db, progress)
    return progress
