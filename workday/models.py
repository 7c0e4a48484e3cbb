from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workday.db import Base


def _enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class WorkLocation(str, enum.Enum):
    OFFICE = "Office"
    HOME = "Home"
    REMOTE = "Remote"


class WorkSessionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class AttendanceEventType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class AttendanceEventSource(str, enum.Enum):
    START_DAY = "START_DAY"
    BIOMETRIC = "BIOMETRIC"
    ADMIN_OVERRIDE = "ADMIN_OVERRIDE"


class AttendanceRecordSource(str, enum.Enum):
    MONITORING = "MONITORING"
    START_DAY = "START_DAY"
    BIOMETRIC = "BIOMETRIC"
    BOTH = "BOTH"
    ADMIN_OVERRIDE = "ADMIN_OVERRIDE"


class AttendanceRecordStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class AimCompletionStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    MVP_ACHIEVED = "MVP Achieved"


class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    INR = "INR"
    CAD = "CAD"
    AUD = "AUD"


class PayType(str, enum.Enum):
    MONTHLY = "Monthly"
    ANNUAL = "Annual"
    HOURLY = "Hourly"


class AdjustmentType(str, enum.Enum):
    BONUS = "Bonus"
    INCREMENT = "Increment"
    OVERTIME = "Overtime"
    DEDUCTION = "Deduction"
    COMMISSION = "Commission"


class AuditActorType(str, enum.Enum):
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    SYSTEM = "SYSTEM"


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    work_sessions: Mapped[list[WorkSession]] = relationship(back_populates="employee")
    salary_profile: Mapped[SalaryProfile | None] = relationship(back_populates="employee", uselist=False)


class WorkSession(Base):
    __tablename__ = "work_sessions"
    __table_args__ = (
        UniqueConstraint("employee_id", "session_date", name="uq_work_sessions_employee_date"),
        CheckConstraint("target_hours >= 1 AND target_hours <= 12", name="ck_work_sessions_target_hours"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    work_location: Mapped[WorkLocation] = mapped_column(
        _enum_column(WorkLocation, "work_location"),
        nullable=False,
        default=WorkLocation.OFFICE,
    )
    start_location: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    end_location: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    target_hours: Mapped[float] = mapped_column(Float, nullable=False, default=8.0, server_default=text("8"))
    status: Mapped[WorkSessionStatus] = mapped_column(
        _enum_column(WorkSessionStatus, "work_session_status"),
        nullable=False,
        default=WorkSessionStatus.ACTIVE,
        index=True,
    )
    total_break_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))

    keystroke_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    mouse_activity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    active_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    idle_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    violation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    work_related_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    non_work_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee] = relationship(back_populates="work_sessions")


class AttendanceSourceEvent(Base):
    __tablename__ = "attendance_source_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    source: Mapped[AttendanceEventSource] = mapped_column(
        _enum_column(AttendanceEventSource, "attendance_event_source"),
        nullable=False,
    )
    type: Mapped[AttendanceEventType] = mapped_column(
        _enum_column(AttendanceEventType, "attendance_event_type"),
        nullable=False,
    )
    ts_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="system")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("employee_id", "day_date", name="uq_attendance_records_employee_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_day_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_day_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[AttendanceRecordStatus] = mapped_column(
        _enum_column(AttendanceRecordStatus, "attendance_record_status"),
        nullable=False,
    )
    presence: Mapped[str] = mapped_column(String(32), nullable=False, default="Present")
    source: Mapped[AttendanceRecordSource] = mapped_column(
        _enum_column(AttendanceRecordSource, "attendance_record_source"),
        nullable=False,
    )
    has_discrepancy: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
        index=True,
    )
    discrepancy_minutes: Mapped[float | None] = mapped_column(Float, nullable=True)
    worked_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    work_location: Mapped[WorkLocation | None] = mapped_column(
        _enum_column(WorkLocation, "work_location"),
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class DailyAim(Base):
    __tablename__ = "daily_aims"
    __table_args__ = (
        UniqueConstraint("employee_id", "day_date", name="uq_daily_aims_employee_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    day_date: Mapped[date] = mapped_column(Date, nullable=False)
    aims: Mapped[str] = mapped_column(Text, nullable=False)
    completion_status: Mapped[AimCompletionStatus] = mapped_column(
        _enum_column(AimCompletionStatus, "aim_completion_status"),
        nullable=False,
        default=AimCompletionStatus.PENDING,
    )
    completion_comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class DailyProgress(Base):
    __tablename__ = "daily_progress"
    __table_args__ = (
        UniqueConstraint("employee_id", "day_date", name="uq_daily_progress_employee_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    day_date: Mapped[date] = mapped_column(Date, nullable=False)
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    achievements: Mapped[str | None] = mapped_column(Text, nullable=True)
    blockers: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class SalaryProfile(Base):
    __tablename__ = "salary_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    base_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(
        _enum_column(Currency, "salary_currency"),
        nullable=False,
        default=Currency.USD,
    )
    pay_type: Mapped[PayType] = mapped_column(
        _enum_column(PayType, "salary_pay_type"),
        nullable=False,
        default=PayType.MONTHLY,
    )
    housing_allowance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    transport_allowance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    medical_allowance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    other_allowance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    tax_deduction: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    insurance_deduction: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    provident_fund_deduction: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    loan_deduction: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    other_deduction: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    joining_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    probation_months: Mapped[int] = mapped_column(Integer, nullable=False, default=3, server_default=text("3"))
    probation_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    bank_details: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee] = relationship(back_populates="salary_profile")


class SalaryAdjustment(Base):
    __tablename__ = "salary_adjustments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[AdjustmentType] = mapped_column(
        _enum_column(AdjustmentType, "salary_adjustment_type"),
        nullable=False,
    )
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class WorkingDaysConfig(Base):
    __tablename__ = "working_days_configs"
    __table_args__ = (
        UniqueConstraint("year", "month", name="uq_working_days_configs_year_month"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    working_days: Mapped[int] = mapped_column(Integer, nullable=False)
    holidays: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )
    updated_by: Mapped[str] = mapped_column(String(255), nullable=False, default="system")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        _enum_column(AuditActorType, "audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )
