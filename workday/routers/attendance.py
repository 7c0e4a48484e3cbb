from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from workday.db import get_db
from workday.schemas import (
    AttendanceDayStatusRead,
    DailyAimRead,
    DailyAimUpsert,
    DailyProgressRead,
    DailyProgressUpsert,
    EndDayRequest,
    EndDayResponse,
    ProductivityUpdateRequest,
    StartDayRequest,
    StartDayResponse,
    TodaySessionResponse,
    WorkSessionRead,
)
from workday.services.attendance_records import get_day_status
from workday.services.daily_aims import upsert_daily_aim, upsert_daily_progress
from workday.services.session_calc import local_day
from workday.services.work_sessions import (
    end_day,
    get_today_session,
    pause_session,
    resume_session,
    serialize_session,
    start_day,
    update_productivity,
)

router = APIRouter(prefix="/api/employees/{employee_id}", tags=["work-sessions"])


def _mark_employee(request: Request, employee_id: int) -> str | None:
    request.state.actor = "employee"
    request.state.actor_id = str(employee_id)
    request.state.employee_id = employee_id
    return getattr(request.state, "request_id", None)


@router.post("/day/start", response_model=StartDayResponse)
def start_work_day(
    employee_id: int,
    payload: StartDayRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> StartDayResponse:
    request_id = _mark_employee(request, employee_id)
    now = datetime.now(timezone.utc)
    session, message = start_day(db, employee_id=employee_id, payload=payload, now=now, request_id=request_id)
    return StartDayResponse(session=serialize_session(session, now=now), message=message)


@router.post("/day/end", response_model=EndDayResponse)
def end_work_day(
    employee_id: int,
    payload: EndDayRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> EndDayResponse:
    request_id = _mark_employee(request, employee_id)
    outcome = end_day(
        db,
        employee_id=employee_id,
        payload=payload,
        now=datetime.now(timezone.utc),
        request_id=request_id,
    )
    return EndDayResponse(**outcome)


@router.post("/day/pause", response_model=WorkSessionRead)
def pause_work_day(employee_id: int, request: Request, db: Session = Depends(get_db)) -> WorkSessionRead:
    request_id = _mark_employee(request, employee_id)
    now = datetime.now(timezone.utc)
    session = pause_session(db, employee_id=employee_id, now=now, request_id=request_id)
    return serialize_session(session, now=now)


@router.post("/day/resume", response_model=WorkSessionRead)
def resume_work_day(employee_id: int, request: Request, db: Session = Depends(get_db)) -> WorkSessionRead:
    request_id = _mark_employee(request, employee_id)
    now = datetime.now(timezone.utc)
    session = resume_session(db, employee_id=employee_id, now=now, request_id=request_id)
    return serialize_session(session, now=now)


@router.get("/day/today", response_model=TodaySessionResponse)
def today_session(employee_id: int, request: Request, db: Session = Depends(get_db)) -> TodaySessionResponse:
    _mark_employee(request, employee_id)
    now = datetime.now(timezone.utc)
    session = get_today_session(db, employee_id=employee_id, now=now)
    if session is None:
        return TodaySessionResponse(session=None)
    return TodaySessionResponse(session=serialize_session(session, now=now))


@router.patch("/day/productivity", response_model=WorkSessionRead)
def record_productivity(
    employee_id: int,
    payload: ProductivityUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> WorkSessionRead:
    _mark_employee(request, employee_id)
    now = datetime.now(timezone.utc)
    session = update_productivity(db, employee_id=employee_id, payload=payload, now=now)
    return serialize_session(session, now=now)


@router.get("/attendance/today", response_model=AttendanceDayStatusRead)
def today_attendance(employee_id: int, request: Request, db: Session = Depends(get_db)) -> AttendanceDayStatusRead:
    _mark_employee(request, employee_id)
    day_date = local_day(datetime.now(timezone.utc))
    status = get_day_status(db, employee_id=employee_id, day_date=day_date)
    return AttendanceDayStatusRead.model_validate(status, from_attributes=True)


@router.put("/aim/today", response_model=DailyAimRead)
def set_today_aim(
    employee_id: int,
    payload: DailyAimUpsert,
    request: Request,
    db: Session = Depends(get_db),
) -> DailyAimRead:
    _mark_employee(request, employee_id)
    day_date = local_day(datetime.now(timezone.utc))
    aim = upsert_daily_aim(db, employee_id=employee_id, day_date=day_date, payload=payload)
    return DailyAimRead.model_validate(aim)


@router.put("/progress/today", response_model=DailyProgressRead)
def set_today_progress(
    employee_id: int,
    payload: DailyProgressUpsert,
    request: Request,
    db: Session = Depends(get_db),
) -> DailyProgressRead:
    _mark_employee(request, employee_id)
    day_date = local_day(datetime.now(timezone.utc))
    progress = upsert_daily_progress(db, employee_id=employee_id, day_date=day_date, payload=payload)
    return DailyProgressRead.model_validate(progress)
