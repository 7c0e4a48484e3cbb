from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from workday.errors import ApiError
from workday.models import AdjustmentType, Currency, PayType
from workday.settings import Settings

CENT = Decimal("0.01")
ZERO = Decimal("0")

EARNING_ADJUSTMENTS = frozenset(
    {
        AdjustmentType.BONUS,
        AdjustmentType.INCREMENT,
        AdjustmentType.OVERTIME,
        AdjustmentType.COMMISSION,
    }
)


class ProfileLike(Protocol):
    base_salary: Decimal
    currency: Currency
    pay_type: PayType
    housing_allowance: Decimal
    transport_allowance: Decimal
    medical_allowance: Decimal
    other_allowance: Decimal
    tax_deduction: Decimal
    insurance_deduction: Decimal
    provident_fund_deduction: Decimal
    loan_deduction: Decimal
    other_deduction: Decimal
    joining_date: date | None
    probation_months: int
    probation_end_date: date | None


class AdjustmentLike(Protocol):
    type: AdjustmentType
    amount: Decimal | None
    percentage: float | None
    reason: str
    effective_date: date
    is_recurring: bool
    expiry_date: date | None


@dataclass(frozen=True)
class PayPolicy:
    standard_daily_hours: float = 8.0
    overtime_multiplier: float = 0.0
    perfect_attendance_bonus_percent: float | None = None
    perfect_attendance_rate_threshold: float = 100.0
    poor_attendance_penalty_percent: float | None = None
    poor_attendance_rate_threshold: float = 80.0

    @classmethod
    def from_settings(cls, settings: Settings) -> PayPolicy:
        return cls(
            standard_daily_hours=settings.standard_daily_hours,
            overtime_multiplier=settings.overtime_multiplier,
            perfect_attendance_bonus_percent=settings.perfect_attendance_bonus_percent,
            perfect_attendance_rate_threshold=settings.perfect_attendance_rate_threshold,
            poor_attendance_penalty_percent=settings.poor_attendance_penalty_percent,
            poor_attendance_rate_threshold=settings.poor_attendance_rate_threshold,
        )


@dataclass(frozen=True)
class AttendanceSummary:
    present_days: int = 0
    total_hours: float = 0.0
    overtime_hours: float = 0.0
    discrepancy_days: int = 0


@dataclass(frozen=True)
class PayLineItem:
    category: str
    label: str
    amount: Decimal


@dataclass(frozen=True)
class PayPeriodResult:
    year: int
    month: int
    period_start: date
    period_end: date
    currency: Currency
    pay_type: PayType
    working_days: int
    daily_wage: Decimal
    hourly_rate: Decimal
    attendance: AttendanceSummary
    attendance_rate: float
    base_pay: Decimal
    total_allowances: Decimal
    total_additions: Decimal
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    on_probation: bool
    probation_end_date: date | None
    line_items: list[PayLineItem] = field(default_factory=list)


def money(value: Decimal | float | int | None) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _as_decimal(value: Decimal | float | int | None) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def period_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise ApiError(status_code=422, code="INVALID_PERIOD", message="Month must be within 1..12.")
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def resolve_probation_end(profile: ProfileLike) -> date | None:
    if profile.probation_end_date is not None:
        return profile.probation_end_date
    if profile.joining_date is None:
        return None
    return add_months(profile.joining_date, max(0, profile.probation_months or 0))


def monthly_salary(profile: ProfileLike) -> Decimal:
    base = _as_decimal(profile.base_salary)
    if profile.pay_type == PayType.ANNUAL:
        return base / 12
    return base


def wage_rates(profile: ProfileLike, working_days: int, standard_daily_hours: float) -> tuple[Decimal, Decimal]:
    """Return (daily_wage, hourly_rate) for the profile's pay type."""
    if working_days <= 0:
        raise ApiError(
            status_code=422,
            code="INVALID_WORKING_DAYS",
            message="Working days for the period must be greater than zero.",
        )
    standard = _as_decimal(standard_daily_hours) if standard_daily_hours > 0 else Decimal("8")
    if profile.pay_type == PayType.HOURLY:
        hourly = _as_decimal(profile.base_salary)
        return hourly * standard, hourly
    daily = monthly_salary(profile) / Decimal(working_days)
    return daily, daily / standard


def adjustment_applies(adjustment: AdjustmentLike, period_start: date, period_end: date) -> bool:
    if adjustment.is_recurring:
        if adjustment.effective_date > period_end:
            return False
        if adjustment.expiry_date is not None and adjustment.expiry_date < period_start:
            return False
        return True
    return period_start <= adjustment.effective_date <= period_end


def adjustment_value(adjustment: AdjustmentLike, base_pay: Decimal) -> Decimal:
    if adjustment.amount is not None:
        return _as_decimal(adjustment.amount)
    if adjustment.percentage is not None:
        return base_pay * _as_decimal(adjustment.percentage) / 100
    return ZERO


def estimate_daily_earnings(
    profile: ProfileLike,
    *,
    working_days: int,
    hours: float,
    policy: PayPolicy,
) -> Decimal:
    daily_wage, hourly_rate = wage_rates(profile, working_days, policy.standard_daily_hours)
    standard = _as_decimal(policy.standard_daily_hours)
    worked = _as_decimal(max(0.0, hours))
    if policy.overtime_multiplier > 0:
        regular = min(worked, standard)
        overtime = max(ZERO, worked - standard)
        earned = regular / standard * daily_wage + overtime * hourly_rate * _as_decimal(policy.overtime_multiplier)
    else:
        earned = worked / standard * daily_wage
    return money(earned)


def compute_pay_period(
    *,
    profile: ProfileLike,
    working_days: int,
    attendance: AttendanceSummary,
    adjustments: Iterable[AdjustmentLike],
    policy: PayPolicy,
    year: int,
    month: int,
) -> PayPeriodResult:
    period_start, period_end = period_bounds(year, month)
    daily_wage, hourly_rate = wage_rates(profile, working_days, policy.standard_daily_hours)

    if profile.pay_type == PayType.HOURLY:
        # Overtime hours are paid once, at the multiplier, below.
        paid_hours = attendance.total_hours
        if policy.overtime_multiplier > 0:
            paid_hours = max(0.0, attendance.total_hours - attendance.overtime_hours)
        base_pay = hourly_rate * _as_decimal(paid_hours)
    else:
        base_pay = daily_wage * attendance.present_days

    line_items: list[PayLineItem] = [PayLineItem("earning", "Base pay", money(base_pay))]

    allowances = {
        "Housing allowance": profile.housing_allowance,
        "Transport allowance": profile.transport_allowance,
        "Medical allowance": profile.medical_allowance,
        "Other allowance": profile.other_allowance,
    }
    total_allowances = ZERO
    for label, value in allowances.items():
        amount = _as_decimal(value)
        if amount:
            total_allowances += amount
            line_items.append(PayLineItem("allowance", label, money(amount)))

    total_additions = ZERO
    total_deductions = ZERO
    for adjustment in adjustments:
        if not adjustment_applies(adjustment, period_start, period_end):
            continue
        value = adjustment_value(adjustment, base_pay)
        label = f"{adjustment.type.value}: {adjustment.reason}"
        if adjustment.type in EARNING_ADJUSTMENTS:
            total_additions += value
            line_items.append(PayLineItem("addition", label, money(value)))
        else:
            total_deductions += value
            line_items.append(PayLineItem("deduction", label, money(value)))

    statutory = {
        "Tax": profile.tax_deduction,
        "Insurance": profile.insurance_deduction,
        "Provident fund": profile.provident_fund_deduction,
        "Loan": profile.loan_deduction,
        "Other deduction": profile.other_deduction,
    }
    for label, value in statutory.items():
        amount = _as_decimal(value)
        if amount:
            total_deductions += amount
            line_items.append(PayLineItem("deduction", label, money(amount)))

    attendance_rate = min(100.0, attendance.present_days / working_days * 100)

    if policy.overtime_multiplier > 0 and attendance.overtime_hours > 0:
        overtime_pay = (
            _as_decimal(attendance.overtime_hours) * hourly_rate * _as_decimal(policy.overtime_multiplier)
        )
        total_additions += overtime_pay
        line_items.append(PayLineItem("addition", "Automatic overtime", money(overtime_pay)))

    if (
        policy.perfect_attendance_bonus_percent is not None
        and attendance_rate >= policy.perfect_attendance_rate_threshold
    ):
        bonus = base_pay * _as_decimal(policy.perfect_attendance_bonus_percent) / 100
        total_additions += bonus
        line_items.append(PayLineItem("addition", "Perfect attendance bonus", money(bonus)))

    if (
        policy.poor_attendance_penalty_percent is not None
        and attendance_rate < policy.poor_attendance_rate_threshold
    ):
        penalty = base_pay * _as_decimal(policy.poor_attendance_penalty_percent) / 100
        total_deductions += penalty
        line_items.append(PayLineItem("deduction", "Poor attendance penalty", money(penalty)))

    gross_pay = money(base_pay) + money(total_allowances) + money(total_additions)
    total_deductions = money(total_deductions)
    probation_end = resolve_probation_end(profile)

    return PayPeriodResult(
        year=year,
        month=month,
        period_start=period_start,
        period_end=period_end,
        currency=profile.currency,
        pay_type=profile.pay_type,
        working_days=working_days,
        daily_wage=money(daily_wage),
        hourly_rate=money(hourly_rate),
        attendance=attendance,
        attendance_rate=round(attendance_rate, 2),
        base_pay=money(base_pay),
        total_allowances=money(total_allowances),
        total_additions=money(total_additions),
        gross_pay=gross_pay,
        total_deductions=total_deductions,
        net_pay=gross_pay - total_deductions,
        on_probation=probation_end is not None and period_start <= probation_end,
        probation_end_date=probation_end,
        line_items=line_items,
    )
