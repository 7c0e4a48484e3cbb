from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workday.audit import log_employee_event
from workday.errors import ApiError
from workday.models import (
    AttendanceEventSource,
    AttendanceEventType,
    AttendanceSourceEvent,
    Employee,
    WorkLocation,
    WorkSession,
    WorkSessionStatus,
)
from workday.schemas import (
    EndDayRequest,
    ProductivityRead,
    ProductivityUpdateRequest,
    StartDayRequest,
    WorkSessionRead,
)
from workday.services.attendance_records import refresh_attendance_record
from workday.services.daily_aims import ensure_end_day_allowed, load_end_day_checklist
from workday.services.geo import GeoPoint, evaluate_office_location, load_offices, validate_coordinates
from workday.services.payroll import get_salary_profile, resolve_working_days
from workday.services.productivity import productivity_score
from workday.services.providers import (
    DeviceSignalProvider,
    LocationProvider,
    acquire_location,
    collect_signals,
)
from workday.services.salary_calc import PayPolicy, estimate_daily_earnings
from workday.services.session_calc import (
    compute_session_metrics,
    local_day,
    normalize_end_time,
    normalize_ts,
    pause_minutes,
)
from workday.settings import get_settings

logger = logging.getLogger("workday.work_sessions")

_LocatedPayload = TypeVar("_LocatedPayload", StartDayRequest, EndDayRequest)

MIN_TARGET_HOURS = 1.0
MAX_TARGET_HOURS = 12.0

PRODUCTIVITY_FIELDS = (
    "keystroke_count",
    "mouse_activity",
    "active_minutes",
    "idle_minutes",
    "violation_count",
    "work_related_minutes",
    "non_work_minutes",
)


def _require_active_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    if not employee.is_active:
        raise ApiError(
            status_code=403,
            code="EMPLOYEE_INACTIVE",
            message="Inactive employee cannot perform attendance actions.",
        )
    return employee


def get_session_for_day(db: Session, *, employee_id: int, day_date: date) -> WorkSession | None:
    return db.scalar(
        select(WorkSession).where(
            WorkSession.employee_id == employee_id,
            WorkSession.session_date == day_date,
        )
    )


def get_today_session(db: Session, *, employee_id: int, now: datetime | None = None) -> WorkSession | None:
    reference = normalize_ts(now)
    return get_session_for_day(db, employee_id=employee_id, day_date=local_day(reference))


def _require_today_session(db: Session, *, employee_id: int, now: datetime) -> WorkSession:
    session = get_today_session(db, employee_id=employee_id, now=now)
    if session is None:
        raise ApiError(
            status_code=404,
            code="SESSION_NOT_FOUND",
            message="No work session found for today. Start the day first.",
        )
    return session


def _resolve_target_hours(raw: float | None) -> float:
    target = get_settings().default_target_hours if raw is None else raw
    if not MIN_TARGET_HOURS <= target <= MAX_TARGET_HOURS:
        raise ApiError(
            status_code=422,
            code="INVALID_TARGET_HOURS",
            message=f"Target hours must be between {MIN_TARGET_HOURS:g} and {MAX_TARGET_HOURS:g}.",
        )
    return target


def _location_snapshot(point: GeoPoint) -> dict[str, Any] | None:
    if not point.has_coordinates:
        return None
    return point.to_snapshot()


def _check_office_perimeter(point: GeoPoint) -> dict[str, Any]:
    if point.latitude is None and point.longitude is None:
        raise ApiError(
            status_code=422,
            code="LOCATION_REQUIRED",
            message="Location is required to start an office day.",
        )

    check = evaluate_office_location(point, load_offices(get_settings()))
    if not check.within:
        office = check.closest_office
        if office is not None and check.closest_distance_m is not None:
            message = (
                f"You are {round(check.closest_distance_m)} m from {office.name}. "
                f"Office days must start within {office.radius_m:g} m."
            )
        else:
            message = "Your location could not be matched to any office perimeter."
        raise ApiError(
            status_code=422,
            code="LOCATION_TOO_FAR",
            message=message,
            details=check.to_flags(),
        )
    return check.to_flags()


def _append_start_day_event(
    db: Session,
    *,
    session: WorkSession,
    event_type: AttendanceEventType,
    ts_utc: datetime,
) -> None:
    db.add(
        AttendanceSourceEvent(
            employee_id=session.employee_id,
            day_date=session.session_date,
            source=AttendanceEventSource.START_DAY,
            type=event_type,
            ts_utc=ts_utc,
            created_by=f"employee:{session.employee_id}",
        )
    )


def _commit_transition(db: Session, *, session: WorkSession, now: datetime) -> None:
    """Persist a session change and the rebuilt attendance record together."""
    try:
        db.flush()
        refresh_attendance_record(
            db,
            employee_id=session.employee_id,
            day_date=session.session_date,
            now=now,
            session=session,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(session)


def serialize_session(session: WorkSession, *, now: datetime | None = None) -> WorkSessionRead:
    reference = normalize_ts(now)
    metrics = compute_session_metrics(
        start_time=session.start_time,
        end_time=session.end_time,
        total_break_minutes=session.total_break_minutes or 0.0,
        target_hours=session.target_hours,
        now=reference,
    )
    counters = {name: getattr(session, name) or 0 for name in PRODUCTIVITY_FIELDS}
    score = productivity_score(
        keystroke_count=counters["keystroke_count"],
        active_minutes=counters["active_minutes"],
        work_related_minutes=counters["work_related_minutes"],
        violation_count=counters["violation_count"],
        total_minutes=metrics.actual_work_minutes,
    )
    return WorkSessionRead(
        id=session.id,
        employee_id=session.employee_id,
        session_date=session.session_date,
        start_time=session.start_time,
        end_time=session.end_time,
        work_location=session.work_location,
        start_location=session.start_location,
        end_location=session.end_location,
        paused_at=session.paused_at,
        resumed_at=session.resumed_at,
        target_hours=session.target_hours,
        status=session.status,
        total_break_minutes=round(session.total_break_minutes or 0.0, 2),
        notes=session.notes,
        actual_work_minutes=metrics.actual_work_minutes,
        actual_work_hours=metrics.actual_work_hours,
        completion_percentage=metrics.completion_percentage,
        remaining_hours=metrics.remaining_hours,
        overtime_hours=metrics.overtime_hours,
        productivity=ProductivityRead(score=score, **counters),
    )


def start_day(
    db: Session,
    *,
    employee_id: int,
    payload: StartDayRequest,
    now: datetime | None = None,
    request_id: str | None = None,
) -> tuple[WorkSession, str]:
    reference = normalize_ts(now)
    _require_active_employee(db, employee_id)
    day_date = local_day(reference)

    existing = get_session_for_day(db, employee_id=employee_id, day_date=day_date)
    if existing is not None:
        raise ApiError(
            status_code=409,
            code="DAY_ALREADY_STARTED",
            message="A work session already exists for today.",
        )

    target_hours = _resolve_target_hours(payload.target_hours)
    validate_coordinates(payload.latitude, payload.longitude)
    point = GeoPoint(
        latitude=payload.latitude,
        longitude=payload.longitude,
        accuracy_m=payload.accuracy,
        address=payload.address,
    )

    start_location = _location_snapshot(point)
    perimeter: dict[str, Any] | None = None
    if payload.work_location == WorkLocation.OFFICE:
        perimeter = _check_office_perimeter(point)
        start_location = {**(start_location or {}), **perimeter}

    session = WorkSession(
        employee_id=employee_id,
        session_date=day_date,
        start_time=reference,
        end_time=None,
        work_location=payload.work_location,
        start_location=start_location,
        end_location=None,
        target_hours=target_hours,
        status=WorkSessionStatus.ACTIVE,
        total_break_minutes=0.0,
        notes=payload.notes,
        **{name: 0 for name in PRODUCTIVITY_FIELDS},
    )
    db.add(session)
    _append_start_day_event(db, session=session, event_type=AttendanceEventType.IN, ts_utc=reference)

    try:
        _commit_transition(db, session=session, now=reference)
    except IntegrityError as exc:
        logger.warning(
            "work_session_duplicate_start",
            extra={"employee_id": employee_id, "session_date": day_date.isoformat(), "reason": str(exc.orig)},
        )
        raise ApiError(
            status_code=409,
            code="DAY_ALREADY_STARTED",
            message="A work session already exists for today.",
        ) from exc

    logger.info(
        "work_session_started",
        extra={
            "employee_id": employee_id,
            "session_date": day_date.isoformat(),
            "work_location": payload.work_location.value,
            "within_perimeter": perimeter["within_perimeter"] if perimeter else None,
        },
    )
    log_employee_event(
        db,
        employee_id=employee_id,
        action="WORK_DAY_STARTED",
        session_id=session.id,
        details={"work_location": payload.work_location.value, "target_hours": target_hours},
        request_id=request_id,
    )

    if perimeter is not None:
        message = f"Day started at {perimeter['office_name']}."
    else:
        message = f"Day started ({payload.work_location.value})."
    return session, message


def pause_session(
    db: Session,
    *,
    employee_id: int,
    now: datetime | None = None,
    request_id: str | None = None,
) -> WorkSession:
    reference = normalize_ts(now)
    _require_active_employee(db, employee_id)
    session = _require_today_session(db, employee_id=employee_id, now=reference)
    if session.status != WorkSessionStatus.ACTIVE:
        raise ApiError(
            status_code=409,
            code="INVALID_SESSION_STATE",
            message=f"Cannot pause a session that is {session.status.value}.",
        )

    session.paused_at = reference
    session.status = WorkSessionStatus.PAUSED
    _commit_transition(db, session=session, now=reference)

    logger.info("work_session_paused", extra={"employee_id": employee_id, "session_id": session.id})
    log_employee_event(
        db,
        employee_id=employee_id,
        action="WORK_DAY_PAUSED",
        session_id=session.id,
        request_id=request_id,
    )
    return session


def resume_session(
    db: Session,
    *,
    employee_id: int,
    now: datetime | None = None,
    request_id: str | None = None,
) -> WorkSession:
    reference = normalize_ts(now)
    _require_active_employee(db, employee_id)
    session = _require_today_session(db, employee_id=employee_id, now=reference)
    if session.status != WorkSessionStatus.PAUSED or session.paused_at is None:
        raise ApiError(
            status_code=409,
            code="INVALID_SESSION_STATE",
            message=f"Cannot resume a session that is {session.status.value}.",
        )

    break_minutes = pause_minutes(session.paused_at, reference)
    session.total_break_minutes = (session.total_break_minutes or 0.0) + break_minutes
    session.resumed_at = reference
    session.status = WorkSessionStatus.ACTIVE
    _commit_transition(db, session=session, now=reference)

    logger.info(
        "work_session_resumed",
        extra={
            "employee_id": employee_id,
            "session_id": session.id,
            "break_minutes": round(break_minutes, 2),
            "total_break_minutes": round(session.total_break_minutes, 2),
        },
    )
    log_employee_event(
        db,
        employee_id=employee_id,
        action="WORK_DAY_RESUMED",
        session_id=session.id,
        details={"break_minutes": round(break_minutes, 2)},
        request_id=request_id,
    )
    return session


def estimate_earned_amount(db: Session, *, employee_id: int, day_date: date, hours: float) -> Decimal | None:
    profile = get_salary_profile(db, employee_id)
    if profile is None:
        return None
    try:
        working_days = resolve_working_days(db, year=day_date.year, month=day_date.month)
        return estimate_daily_earnings(
            profile,
            working_days=working_days,
            hours=hours,
            policy=PayPolicy.from_settings(get_settings()),
        )
    except ApiError as exc:
        logger.warning(
            "earned_amount_unavailable",
            extra={"employee_id": employee_id, "day_date": day_date.isoformat(), "code": exc.code},
        )
        return None


def end_day(
    db: Session,
    *,
    employee_id: int,
    payload: EndDayRequest,
    now: datetime | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    reference = normalize_ts(now)
    _require_active_employee(db, employee_id)
    session = _require_today_session(db, employee_id=employee_id, now=reference)
    if session.status == WorkSessionStatus.COMPLETED:
        raise ApiError(
            status_code=409,
            code="SESSION_ALREADY_COMPLETED",
            message="Today's work session is already completed.",
        )

    validate_coordinates(payload.latitude, payload.longitude)
    aim, progress = load_end_day_checklist(db, employee_id=employee_id, day_date=session.session_date)
    ensure_end_day_allowed(aim, progress)

    if session.status == WorkSessionStatus.PAUSED and session.paused_at is not None:
        session.total_break_minutes = (session.total_break_minutes or 0.0) + pause_minutes(
            session.paused_at, reference
        )
        session.resumed_at = reference

    end_time, snapped = normalize_end_time(session.start_time, reference)
    if snapped:
        logger.warning(
            "end_time_snapped",
            extra={
                "employee_id": employee_id,
                "session_id": session.id,
                "requested_end": reference.isoformat(),
                "stored_end": end_time.isoformat(),
            },
        )

    end_point = GeoPoint(
        latitude=payload.latitude,
        longitude=payload.longitude,
        accuracy_m=payload.accuracy,
        address=payload.address,
    )
    session.end_time = end_time
    session.end_location = _location_snapshot(end_point)
    if payload.notes is not None:
        session.notes = payload.notes
    session.status = WorkSessionStatus.COMPLETED
    _append_start_day_event(db, session=session, event_type=AttendanceEventType.OUT, ts_utc=end_time)
    _commit_transition(db, session=session, now=reference)

    view = serialize_session(session, now=reference)
    earned_amount = estimate_earned_amount(
        db,
        employee_id=employee_id,
        day_date=session.session_date,
        hours=view.actual_work_hours,
    )

    logger.info(
        "work_session_completed",
        extra={
            "employee_id": employee_id,
            "session_id": session.id,
            "total_hours": view.actual_work_hours,
            "total_break_minutes": round(session.total_break_minutes or 0.0, 2),
            "end_time_snapped": snapped,
        },
    )
    log_employee_event(
        db,
        employee_id=employee_id,
        action="WORK_DAY_ENDED",
        session_id=session.id,
        details={
            "total_hours": view.actual_work_hours,
            "earned_amount": earned_amount,
            "end_time_snapped": snapped,
        },
        request_id=request_id,
    )
    return {
        "total_hours": view.actual_work_hours,
        "earned_amount": earned_amount,
        "session": view,
    }


def update_productivity(
    db: Session,
    *,
    employee_id: int,
    payload: ProductivityUpdateRequest,
    now: datetime | None = None,
) -> WorkSession:
    reference = normalize_ts(now)
    _require_active_employee(db, employee_id)
    session = _require_today_session(db, employee_id=employee_id, now=reference)

    for name, value in payload.model_dump(exclude_none=True).items():
        setattr(session, name, value)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(session)
    return session


def _with_location(payload: _LocatedPayload, point: GeoPoint | None) -> _LocatedPayload:
    if point is None:
        return payload.model_copy(update={"latitude": None, "longitude": None, "accuracy": None})
    return payload.model_copy(
        update={
            "latitude": point.latitude,
            "longitude": point.longitude,
            "accuracy": point.accuracy_m,
            "address": point.address or payload.address,
        }
    )


async def start_day_with_provider(
    db: Session,
    *,
    employee_id: int,
    payload: StartDayRequest,
    provider: LocationProvider,
    now: datetime | None = None,
    request_id: str | None = None,
) -> tuple[WorkSession, str]:
    """Start the day with whatever fix the provider yields in time.

    A timed-out or failed lookup is passed on as "no location", so Home and
    Remote days still start while Office days fail with LOCATION_REQUIRED.
    """
    point = await acquire_location(provider, get_settings().location_timeout_seconds)
    return start_day(
        db,
        employee_id=employee_id,
        payload=_with_location(payload, point),
        now=now,
        request_id=request_id,
    )


async def end_day_with_provider(
    db: Session,
    *,
    employee_id: int,
    payload: EndDayRequest,
    provider: LocationProvider,
    now: datetime | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    point = await acquire_location(provider, get_settings().location_timeout_seconds)
    return end_day(
        db,
        employee_id=employee_id,
        payload=_with_location(payload, point),
        now=now,
        request_id=request_id,
    )


async def sync_productivity(
    db: Session,
    *,
    employee_id: int,
    provider: DeviceSignalProvider,
    now: datetime | None = None,
) -> WorkSession:
    signals = await collect_signals(provider, get_settings().signal_timeout_seconds)
    return update_productivity(db, employee_id=employee_id, payload=signals, now=now)
