from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from workday.audit import log_audit
from workday.db import get_db
from workday.errors import ApiError
from workday.models import AuditActorType, Employee
from workday.schemas import (
    AdminAuthResponse,
    AdminLoginRequest,
    AttendanceImportRequest,
    AttendanceImportResponse,
    AttendanceRecordRead,
    EmployeeCreate,
    EmployeeRead,
    SalaryAdjustmentCreate,
    SalaryAdjustmentRead,
    SalaryBulkCalculateRequest,
    SalaryBulkCalculationResponse,
    SalaryCalculateRequest,
    SalaryCalculationResponse,
    SalaryProfileRead,
    SalaryProfileUpsert,
    WorkingDaysConfigRead,
    WorkingDaysConfigUpsert,
)
from workday.security import (
    create_access_token,
    ensure_login_attempt_allowed,
    register_login_failure,
    register_login_success,
    require_admin,
    verify_admin_credentials,
)
from workday.services.attendance_records import import_attendance_events, list_attendance_records
from workday.services.exports import build_payroll_xlsx_bytes
from workday.services.payroll import (
    add_adjustment,
    calculate_bulk_salary,
    calculate_salary,
    get_salary_profile,
    get_working_days_config,
    list_adjustments,
    set_salary_profile,
    set_working_days_config,
)

router = APIRouter(tags=["admin"])
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def _user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def _admin_audit(
    db: Session,
    request: Request,
    claims: dict[str, Any],
    *,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    log_audit(
        db,
        actor_type=AuditActorType.ADMIN,
        actor_id=str(claims.get("sub") or "admin"),
        action=action,
        success=True,
        entity_type=entity_type,
        entity_id=entity_id,
        ip=_client_ip(request),
        user_agent=_user_agent(request),
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )


@router.post("/api/admin/auth/login", response_model=AdminAuthResponse)
def admin_login(
    payload: AdminLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AdminAuthResponse:
    username = payload.username.strip()
    ip = _client_ip(request)
    request_id = getattr(request.state, "request_id", None)

    if ip:
        ensure_login_attempt_allowed(ip)

    if not verify_admin_credentials(username, payload.password):
        if ip:
            register_login_failure(ip)
        log_audit(
            db,
            actor_type=AuditActorType.SYSTEM,
            actor_id=username or "unknown",
            action="ADMIN_LOGIN_FAIL",
            success=False,
            ip=ip,
            user_agent=_user_agent(request),
            details={"reason": "INVALID_CREDENTIALS"},
            request_id=request_id,
        )
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid credentials.")

    if ip:
        register_login_success(ip)
    access_token, expires_in = create_access_token(username=username)
    request.state.actor = "admin"
    request.state.actor_id = username
    log_audit(
        db,
        actor_type=AuditActorType.ADMIN,
        actor_id=username,
        action="ADMIN_LOGIN_SUCCESS",
        success=True,
        ip=ip,
        user_agent=_user_agent(request),
        request_id=request_id,
    )
    return AdminAuthResponse(access_token=access_token, expires_in=expires_in)


@router.post("/api/admin/employees", response_model=EmployeeRead, status_code=201)
def create_employee(
    payload: EmployeeCreate,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = Employee(full_name=payload.full_name.strip(), is_active=payload.is_active)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    _admin_audit(db, request, claims, action="EMPLOYEE_CREATED", entity_type="employee", entity_id=str(employee.id))
    return EmployeeRead.model_validate(employee)


@router.get("/api/admin/employees", response_model=list[EmployeeRead])
def list_employees(
    include_inactive: bool = Query(default=False),
    _claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[EmployeeRead]:
    stmt = select(Employee).order_by(Employee.id.asc())
    if not include_inactive:
        stmt = stmt.where(Employee.is_active.is_(True))
    return [EmployeeRead.model_validate(item) for item in db.scalars(stmt).all()]


@router.put("/api/admin/employees/{employee_id}/salary-profile", response_model=SalaryProfileRead)
def upsert_salary_profile(
    employee_id: int,
    payload: SalaryProfileUpsert,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SalaryProfileRead:
    profile = set_salary_profile(db, employee_id=employee_id, payload=payload)
    _admin_audit(
        db,
        request,
        claims,
        action="SALARY_PROFILE_SET",
        entity_type="salary_profile",
        entity_id=str(profile.id),
        details={"employee_id": employee_id, "pay_type": profile.pay_type.value, "currency": profile.currency.value},
    )
    return SalaryProfileRead.model_validate(profile)


@router.get("/api/admin/employees/{employee_id}/salary-profile", response_model=SalaryProfileRead)
def read_salary_profile(
    employee_id: int,
    _claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SalaryProfileRead:
    profile = get_salary_profile(db, employee_id)
    if profile is None:
        raise ApiError(
            status_code=404,
            code="SALARY_NOT_CONFIGURED",
            message="No active salary profile for this employee.",
        )
    return SalaryProfileRead.model_validate(profile)


@router.post(
    "/api/admin/employees/{employee_id}/salary-adjustments",
    response_model=SalaryAdjustmentRead,
    status_code=201,
)
def create_salary_adjustment(
    employee_id: int,
    payload: SalaryAdjustmentCreate,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SalaryAdjustmentRead:
    adjustment = add_adjustment(
        db,
        employee_id=employee_id,
        payload=payload,
        created_by=str(claims.get("sub") or "admin"),
    )
    _admin_audit(
        db,
        request,
        claims,
        action="SALARY_ADJUSTMENT_ADDED",
        entity_type="salary_adjustment",
        entity_id=str(adjustment.id),
        details={"employee_id": employee_id, "type": adjustment.type.value},
    )
    return SalaryAdjustmentRead.model_validate(adjustment)


@router.get(
    "/api/admin/employees/{employee_id}/salary-adjustments",
    response_model=list[SalaryAdjustmentRead],
)
def read_salary_adjustments(
    employee_id: int,
    _claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[SalaryAdjustmentRead]:
    return [SalaryAdjustmentRead.model_validate(item) for item in list_adjustments(db, employee_id=employee_id)]


@router.put("/api/admin/working-days", response_model=WorkingDaysConfigRead)
def upsert_working_days(
    payload: WorkingDaysConfigUpsert,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> WorkingDaysConfigRead:
    config = set_working_days_config(db, payload=payload, updated_by=str(claims.get("sub") or "admin"))
    _admin_audit(
        db,
        request,
        claims,
        action="WORKING_DAYS_SET",
        entity_type="working_days_config",
        entity_id=f"{config.year}-{config.month:02d}",
        details={"working_days": config.working_days, "holidays": len(config.holidays or [])},
    )
    return WorkingDaysConfigRead.model_validate(config)


@router.get("/api/admin/working-days", response_model=WorkingDaysConfigRead)
def read_working_days(
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    _claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> WorkingDaysConfigRead:
    config = get_working_days_config(db, year=year, month=month)
    if config is None:
        raise ApiError(
            status_code=404,
            code="WORKING_DAYS_NOT_CONFIGURED",
            message="No working days configuration for this month.",
        )
    return WorkingDaysConfigRead.model_validate(config)


@router.post("/api/admin/employees/{employee_id}/salary/calculate", response_model=SalaryCalculationResponse)
def calculate_employee_salary(
    employee_id: int,
    payload: SalaryCalculateRequest,
    _claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SalaryCalculationResponse:
    outcome = calculate_salary(
        db,
        employee_id=employee_id,
        year=payload.year,
        month=payload.month,
        working_days=payload.working_days,
    )
    return SalaryCalculationResponse.model_validate(outcome, from_attributes=True)


@router.post("/api/admin/salary/calculate-bulk", response_model=SalaryBulkCalculationResponse)
def calculate_salaries_bulk(
    payload: SalaryBulkCalculateRequest,
    _claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SalaryBulkCalculationResponse:
    outcome = calculate_bulk_salary(
        db,
        employee_ids=payload.employee_ids,
        year=payload.year,
        month=payload.month,
        working_days=payload.working_days,
    )
    return SalaryBulkCalculationResponse.model_validate(outcome, from_attributes=True)


@router.get("/api/admin/salary/export.xlsx")
def export_payroll_xlsx(
    request: Request,
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Response:
    content = build_payroll_xlsx_bytes(db, year=year, month=month)
    _admin_audit(
        db,
        request,
        claims,
        action="PAYROLL_EXPORT_XLSX",
        entity_type="export",
        entity_id=f"{year}-{month:02d}",
    )
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="payroll-{year}-{month:02d}.xlsx"'},
    )


@router.post("/api/admin/attendance/import", response_model=AttendanceImportResponse)
def import_attendance(
    payload: AttendanceImportRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AttendanceImportResponse:
    summary = import_attendance_events(
        db,
        rows=payload.rows,
        created_by=str(claims.get("sub") or "admin"),
        now=datetime.now(timezone.utc),
    )
    _admin_audit(db, request, claims, action="ATTENDANCE_EVENTS_IMPORTED", entity_type="attendance", details=summary)
    return AttendanceImportResponse(**summary)


@router.get("/api/admin/attendance/records", response_model=list[AttendanceRecordRead])
def read_attendance_records(
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    employee_id: int | None = Query(default=None, ge=1),
    only_discrepancies: bool = Query(default=False),
    _claims: dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[AttendanceRecordRead]:
    records = list_attendance_records(
        db,
        year=year,
        month=month,
        employee_id=employee_id,
        only_discrepancies=only_discrepancies,
    )
    return [AttendanceRecordRead.model_validate(item) for item in records]
