import unittest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from workday.errors import ApiError
from workday.models import AdjustmentType, Currency, PayType
from workday.services.salary_calc import (
    AttendanceSummary,
    PayPolicy,
    add_months,
    adjustment_applies,
    compute_pay_period,
    estimate_daily_earnings,
    money,
    resolve_probation_end,
)


def _profile(**overrides):  # type: ignore[no-untyped-def]
    values = {
        "base_salary": Decimal("66000"),
        "currency": Currency.INR,
        "pay_type": PayType.MONTHLY,
        "housing_allowance": Decimal("0"),
        "transport_allowance": Decimal("0"),
        "medical_allowance": Decimal("0"),
        "other_allowance": Decimal("0"),
        "tax_deduction": Decimal("0"),
        "insurance_deduction": Decimal("0"),
        "provident_fund_deduction": Decimal("0"),
        "loan_deduction": Decimal("0"),
        "other_deduction": Decimal("0"),
        "joining_date": None,
        "probation_months": 0,
        "probation_end_date": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _adjustment(adjustment_type: AdjustmentType, **overrides):  # type: ignore[no-untyped-def]
    values = {
        "type": adjustment_type,
        "amount": None,
        "percentage": None,
        "reason": "test",
        "effective_date": date(2026, 3, 10),
        "is_recurring": False,
        "expiry_date": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _compute(profile, *, present_days=20, total_hours=160.0, overtime_hours=0.0, adjustments=(), policy=None, working_days=22):  # type: ignore[no-untyped-def]
    return compute_pay_period(
        profile=profile,
        working_days=working_days,
        attendance=AttendanceSummary(
            present_days=present_days,
            total_hours=total_hours,
            overtime_hours=overtime_hours,
        ),
        adjustments=list(adjustments),
        policy=policy or PayPolicy(),
        year=2026,
        month=3,
    )


class SalaryCalcTests(unittest.TestCase):
    def test_base_pay_is_prorated_by_attended_days(self) -> None:
        result = _compute(_profile())

        self.assertEqual(result.daily_wage, Decimal("3000.00"))
        self.assertEqual(result.base_pay, Decimal("60000.00"))
        self.assertEqual(result.net_pay, Decimal("60000.00"))
        self.assertEqual(result.attendance_rate, 90.91)
        self.assertEqual(result.period_start, date(2026, 3, 1))
        self.assertEqual(result.period_end, date(2026, 3, 31))

    def test_allowances_and_statutory_deductions(self) -> None:
        profile = _profile(
            housing_allowance=Decimal("5000"),
            transport_allowance=Decimal("1500.50"),
            tax_deduction=Decimal("2000"),
            loan_deduction=Decimal("500"),
        )
        result = _compute(profile)

        self.assertEqual(result.total_allowances, Decimal("6500.50"))
        self.assertEqual(result.gross_pay, Decimal("66500.50"))
        self.assertEqual(result.total_deductions, Decimal("2500.00"))
        self.assertEqual(result.net_pay, Decimal("64000.50"))
        labels = [item.label for item in result.line_items]
        self.assertIn("Housing allowance", labels)
        self.assertNotIn("Medical allowance", labels)

    def test_adjustments_respect_their_windows(self) -> None:
        adjustments = [
            _adjustment(AdjustmentType.BONUS, amount=Decimal("1000")),
            _adjustment(AdjustmentType.BONUS, amount=Decimal("700"), effective_date=date(2026, 2, 10)),
            _adjustment(
                AdjustmentType.INCREMENT,
                amount=Decimal("250"),
                effective_date=date(2026, 1, 1),
                is_recurring=True,
            ),
            _adjustment(
                AdjustmentType.COMMISSION,
                amount=Decimal("900"),
                effective_date=date(2025, 10, 1),
                is_recurring=True,
                expiry_date=date(2026, 2, 28),
            ),
            _adjustment(AdjustmentType.DEDUCTION, percentage=10.0),
        ]
        result = _compute(_profile(), adjustments=adjustments)

        self.assertEqual(result.total_additions, Decimal("1250.00"))
        self.assertEqual(result.total_deductions, Decimal("6000.00"))
        self.assertEqual(result.net_pay, Decimal("55250.00"))

    def test_adjustment_applies_for_future_recurring(self) -> None:
        future = _adjustment(AdjustmentType.BONUS, amount=Decimal("1"), effective_date=date(2026, 4, 1), is_recurring=True)
        self.assertFalse(adjustment_applies(future, date(2026, 3, 1), date(2026, 3, 31)))

    def test_zero_working_days_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            _compute(_profile(), working_days=0)
        self.assertEqual(ctx.exception.code, "INVALID_WORKING_DAYS")

    def test_hourly_pay_uses_total_hours(self) -> None:
        result = _compute(_profile(base_salary=Decimal("20"), pay_type=PayType.HOURLY), total_hours=100.0)

        self.assertEqual(result.hourly_rate, Decimal("20.00"))
        self.assertEqual(result.daily_wage, Decimal("160.00"))
        self.assertEqual(result.base_pay, Decimal("2000.00"))

    def test_annual_salary_is_spread_over_twelve_months(self) -> None:
        result = _compute(_profile(base_salary=Decimal("792000"), pay_type=PayType.ANNUAL), present_days=22)
        self.assertEqual(result.base_pay, Decimal("66000.00"))

    def test_policy_hooks_are_off_by_default(self) -> None:
        result = _compute(_profile(), present_days=5, overtime_hours=4.0)
        self.assertEqual(result.total_additions, Decimal("0.00"))
        self.assertEqual(result.total_deductions, Decimal("0.00"))

    def test_perfect_attendance_bonus_and_overtime_multiplier(self) -> None:
        policy = PayPolicy(overtime_multiplier=1.5, perfect_attendance_bonus_percent=5.0)
        result = _compute(_profile(), present_days=22, overtime_hours=2.0, policy=policy)

        # 2h * (3000 / 8) * 1.5 + 5% of 66000
        self.assertEqual(result.total_additions, Decimal("4425.00"))
        self.assertEqual(result.net_pay, Decimal("70425.00"))

    def test_poor_attendance_penalty(self) -> None:
        policy = PayPolicy(poor_attendance_penalty_percent=10.0, poor_attendance_rate_threshold=80.0)
        result = _compute(_profile(), present_days=10, policy=policy)

        self.assertEqual(result.base_pay, Decimal("30000.00"))
        self.assertEqual(result.total_deductions, Decimal("3000.00"))

    def test_probation_end_is_derived_from_joining_date(self) -> None:
        profile = _profile(joining_date=date(2026, 1, 31), probation_months=1)
        self.assertEqual(resolve_probation_end(profile), date(2026, 2, 28))
        self.assertFalse(_compute(profile).on_probation)

        profile = _profile(joining_date=date(2026, 1, 15), probation_months=3)
        self.assertTrue(_compute(profile).on_probation)

    def test_add_months_crosses_year(self) -> None:
        self.assertEqual(add_months(date(2025, 11, 30), 3), date(2026, 2, 28))

    def test_money_rounds_half_up(self) -> None:
        self.assertEqual(money(Decimal("2.345")), Decimal("2.35"))
        self.assertEqual(money(None), Decimal("0"))

    def test_estimate_daily_earnings(self) -> None:
        profile = _profile()
        self.assertEqual(
            estimate_daily_earnings(profile, working_days=22, hours=4.0, policy=PayPolicy()),
            Decimal("1500.00"),
        )
        self.assertEqual(
            estimate_daily_earnings(profile, working_days=22, hours=10.0, policy=PayPolicy(overtime_multiplier=1.5)),
            Decimal("4125.00"),
        )

    def test_single_day_period_matches_daily_estimate(self) -> None:
        policy = PayPolicy(overtime_multiplier=1.5)
        cases = [
            (_profile(base_salary=Decimal("10"), pay_type=PayType.HOURLY), Decimal("110.00")),
            (_profile(), Decimal("4125.00")),
        ]
        for profile, expected in cases:
            with self.subTest(pay_type=profile.pay_type):
                daily = estimate_daily_earnings(profile, working_days=22, hours=10.0, policy=policy)
                period = _compute(profile, present_days=1, total_hours=10.0, overtime_hours=2.0, policy=policy)

                self.assertEqual(daily, expected)
                self.assertEqual(period.gross_pay, daily)

    def test_hourly_overtime_without_multiplier_is_paid_at_base_rate(self) -> None:
        profile = _profile(base_salary=Decimal("10"), pay_type=PayType.HOURLY)
        period = _compute(profile, present_days=1, total_hours=10.0, overtime_hours=2.0)

        self.assertEqual(period.base_pay, Decimal("100.00"))
        self.assertEqual(period.total_additions, Decimal("0.00"))


if __name__ == "__main__":
    unittest.main()
