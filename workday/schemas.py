from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from workday.models import (
    AdjustmentType,
    AimCompletionStatus,
    AttendanceEventSource,
    AttendanceEventType,
    AttendanceRecordSource,
    AttendanceRecordStatus,
    Currency,
    PayType,
    WorkLocation,
    WorkSessionStatus,
)


class EmployeeCreate(BaseModel):
    full_name: str = Field(min_length=2, max_length=255)
    is_active: bool = True


class EmployeeRead(BaseModel):
    id: int
    full_name: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class StartDayRequest(BaseModel):
    work_location: WorkLocation = WorkLocation.OFFICE
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = Field(default=None, ge=0)
    address: str | None = Field(default=None, max_length=500)
    target_hours: float | None = None
    notes: str | None = Field(default=None, max_length=1000)


class EndDayRequest(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = Field(default=None, ge=0)
    address: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=1000)


class ProductivityUpdateRequest(BaseModel):
    keystroke_count: int | None = Field(default=None, ge=0)
    mouse_activity: int | None = Field(default=None, ge=0)
    active_minutes: float | None = Field(default=None, ge=0)
    idle_minutes: float | None = Field(default=None, ge=0)
    violation_count: int | None = Field(default=None, ge=0)
    work_related_minutes: float | None = Field(default=None, ge=0)
    non_work_minutes: float | None = Field(default=None, ge=0)


class ProductivityRead(BaseModel):
    keystroke_count: int
    mouse_activity: int
    active_minutes: float
    idle_minutes: float
    violation_count: int
    work_related_minutes: float
    non_work_minutes: float
    score: float


class WorkSessionRead(BaseModel):
    id: int | None = None
    employee_id: int
    session_date: date
    start_time: datetime
    end_time: datetime | None
    work_location: WorkLocation
    start_location: dict[str, Any] | None = None
    end_location: dict[str, Any] | None = None
    paused_at: datetime | None = None
    resumed_at: datetime | None = None
    target_hours: float
    status: WorkSessionStatus
    total_break_minutes: float
    notes: str | None = None
    actual_work_minutes: int
    actual_work_hours: float
    completion_percentage: float
    remaining_hours: float
    overtime_hours: float
    productivity: ProductivityRead


class StartDayResponse(BaseModel):
    session: WorkSessionRead
    message: str


class EndDayResponse(BaseModel):
    total_hours: float
    earned_amount: Decimal | None = None
    session: WorkSessionRead


class TodaySessionResponse(BaseModel):
    session: WorkSessionRead | None = None


class DailyAimUpsert(BaseModel):
    aims: str = Field(min_length=1, max_length=5000)
    completion_status: AimCompletionStatus = AimCompletionStatus.PENDING
    completion_comment: str | None = Field(default=None, max_length=500)


class DailyAimRead(BaseModel):
    employee_id: int
    day_date: date
    aims: str
    completion_status: AimCompletionStatus
    completion_comment: str | None = None

    model_config = ConfigDict(from_attributes=True)


class DailyProgressUpsert(BaseModel):
    progress_percentage: int = Field(default=0, ge=0, le=100)
    notes: str | None = Field(default=None, max_length=5000)
    achievements: str | None = Field(default=None, max_length=5000)
    blockers: str | None = Field(default=None, max_length=5000)


class DailyProgressRead(BaseModel):
    employee_id: int
    day_date: date
    progress_percentage: int
    notes: str | None = None
    achievements: str | None = None
    blockers: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceRecordRead(BaseModel):
    employee_id: int
    day_date: date
    start_day_time: datetime
    end_day_time: datetime | None = None
    status: AttendanceRecordStatus
    presence: str
    source: AttendanceRecordSource
    has_discrepancy: bool
    discrepancy_minutes: float | None = None
    worked_hours: float
    overtime_hours: float
    work_location: WorkLocation | None = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceDayStatusRead(BaseModel):
    employee_id: int
    day_date: date
    presence: str
    record: AttendanceRecordRead | None = None


class AttendanceEventImportRow(BaseModel):
    employee_id: int = Field(ge=1)
    source: AttendanceEventSource
    type: AttendanceEventType
    ts_utc: datetime
    day_date: date | None = None
    note: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _validate_source(self) -> "AttendanceEventImportRow":
        if self.source == AttendanceEventSource.START_DAY:
            raise ValueError("START_DAY events are recorded by the work session flow only.")
        return self


class AttendanceImportRequest(BaseModel):
    rows: list[AttendanceEventImportRow] = Field(min_length=1, max_length=5000)


class AttendanceImportResponse(BaseModel):
    imported: int
    days_refreshed: int
    discrepancies: int


class SalaryProfileUpsert(BaseModel):
    base_salary: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    currency: Currency = Currency.USD
    pay_type: PayType = PayType.MONTHLY
    housing_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    transport_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    medical_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    other_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    tax_deduction: Decimal = Field(default=Decimal("0"), ge=0)
    insurance_deduction: Decimal = Field(default=Decimal("0"), ge=0)
    provident_fund_deduction: Decimal = Field(default=Decimal("0"), ge=0)
    loan_deduction: Decimal = Field(default=Decimal("0"), ge=0)
    other_deduction: Decimal = Field(default=Decimal("0"), ge=0)
    joining_date: date | None = None
    probation_months: int = Field(default=3, ge=0, le=24)
    probation_end_date: date | None = None
    bank_details: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class SalaryProfileRead(SalaryProfileUpsert):
    id: int
    employee_id: int

    model_config = ConfigDict(from_attributes=True)


class SalaryAdjustmentCreate(BaseModel):
    type: AdjustmentType
    amount: Decimal | None = Field(default=None, ge=0)
    percentage: float | None = Field(default=None, ge=0, le=100)
    reason: str = Field(min_length=1, max_length=200)
    effective_date: date
    is_recurring: bool = False
    expiry_date: date | None = None

    @model_validator(mode="after")
    def _validate_value(self) -> "SalaryAdjustmentCreate":
        if (self.amount is None) == (self.percentage is None):
            raise ValueError("Provide either amount or percentage.")
        if self.expiry_date is not None and self.expiry_date < self.effective_date:
            raise ValueError("expiry_date cannot be before effective_date.")
        return self


class SalaryAdjustmentRead(BaseModel):
    id: int
    employee_id: int
    type: AdjustmentType
    amount: Decimal | None = None
    percentage: float | None = None
    reason: str
    effective_date: date
    is_recurring: bool
    expiry_date: date | None = None
    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HolidayEntry(BaseModel):
    day: date
    name: str = Field(min_length=1, max_length=200)


class WorkingDaysConfigUpsert(BaseModel):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    working_days: int | None = Field(default=None, ge=0, le=31)
    holidays: list[HolidayEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_holidays(self) -> "WorkingDaysConfigUpsert":
        for holiday in self.holidays:
            if holiday.day.year != self.year or holiday.day.month != self.month:
                raise ValueError("Holidays must fall inside the configured month.")
        return self


class WorkingDaysConfigRead(BaseModel):
    year: int
    month: int
    working_days: int
    holidays: list[dict[str, Any]]
    updated_by: str

    model_config = ConfigDict(from_attributes=True)


class SalaryCalculateRequest(BaseModel):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    working_days: int | None = Field(default=None, ge=0, le=31)


class SalaryBulkCalculateRequest(SalaryCalculateRequest):
    employee_ids: list[int] | None = None


class AttendanceSummaryRead(BaseModel):
    present_days: int
    total_hours: float
    overtime_hours: float
    discrepancy_days: int

    model_config = ConfigDict(from_attributes=True)


class PayLineItemRead(BaseModel):
    category: str
    label: str
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PayPeriodResultRead(BaseModel):
    year: int
    month: int
    period_start: date
    period_end: date
    currency: Currency
    pay_type: PayType
    working_days: int
    daily_wage: Decimal
    hourly_rate: Decimal
    attendance: AttendanceSummaryRead
    attendance_rate: float
    base_pay: Decimal
    total_allowances: Decimal
    total_additions: Decimal
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    on_probation: bool
    probation_end_date: date | None = None
    line_items: list[PayLineItemRead]

    model_config = ConfigDict(from_attributes=True)


class SalaryCalculationResponse(BaseModel):
    employee_id: int
    status: Literal["CALCULATED", "SALARY_NOT_CONFIGURED"]
    message: str | None = None
    result: PayPeriodResultRead | None = None


class SalaryBulkError(BaseModel):
    employee_id: int
    code: str
    message: str


class SalaryBulkCalculationResponse(BaseModel):
    year: int
    month: int
    results: list[SalaryCalculationResponse]
    errors: list[SalaryBulkError]


class AdminLoginRequest(BaseModel):
    username: str
    password: str


class AdminAuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
