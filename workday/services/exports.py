from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy import select
from sqlalchemy.orm import Session

from workday.errors import ApiError
from workday.models import AttendanceRecord, Employee
from workday.services.attendance_records import list_attendance_records
from workday.services.payroll import SALARY_NOT_CONFIGURED, calculate_salary
from workday.services.salary_calc import PayPeriodResult

PAYROLL_HEADERS = [
    "Employee ID",
    "Employee",
    "Status",
    "Currency",
    "Working Days",
    "Present Days",
    "Attendance Rate %",
    "Total Hours",
    "Overtime Hours",
    "Daily Wage",
    "Base Pay",
    "Allowances",
    "Additions",
    "Gross Pay",
    "Deductions",
    "Net Pay",
    "Probation",
]

ATTENDANCE_HEADERS = [
    "Employee ID",
    "Date",
    "Start",
    "End",
    "Status",
    "Source",
    "Worked Hours",
    "Overtime Hours",
    "Discrepancy (min)",
]

HEADER_FILL = PatternFill(fill_type="solid", fgColor="0B4F73")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F7FBFE")
WARNING_FILL = PatternFill(fill_type="solid", fgColor="FFF3CD")
ALERT_FILL = PatternFill(fill_type="solid", fgColor="FDE2E4")

HEADER_FONT = Font(bold=True, color="FFFFFF")
TITLE_FONT = Font(bold=True, color="0B4F73", size=14)

THIN_SIDE = Side(style="thin", color="D5E2EC")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)


@dataclass(frozen=True)
class PayrollRow:
    employee_id: int
    employee_name: str
    status: str
    result: PayPeriodResult | None


def _to_excel_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _money_cell(value: Decimal) -> float:
    return float(value)


def _style_header(ws: Worksheet, row: int) -> None:
    for cell in ws[row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet) -> None:
    for column_cells in ws.iter_cols(min_row=1, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        max_len = 0
        col_letter = get_column_letter(column_cells[0].column)
        for cell in column_cells:
            if cell.coordinate in ws.merged_cells:
                continue
            value = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(value))
        ws.column_dimensions[col_letter].width = min(max_len + 2, 45)


def _merge_title(ws: Worksheet, text: str, width: int) -> None:
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=width)
    cell = ws.cell(row=1, column=1, value=text)
    cell.font = TITLE_FONT
    cell.alignment = Alignment(horizontal="left", vertical="center")


def _payroll_values(row: PayrollRow) -> list[object]:
    result = row.result
    if result is None:
        return [row.employee_id, row.employee_name, row.status] + [None] * (len(PAYROLL_HEADERS) - 3)
    return [
        row.employee_id,
        row.employee_name,
        row.status,
        result.currency.value,
        result.working_days,
        result.attendance.present_days,
        result.attendance_rate,
        result.attendance.total_hours,
        result.attendance.overtime_hours,
        _money_cell(result.daily_wage),
        _money_cell(result.base_pay),
        _money_cell(result.total_allowances),
        _money_cell(result.total_additions),
        _money_cell(result.gross_pay),
        _money_cell(result.total_deductions),
        _money_cell(result.net_pay),
        "Yes" if result.on_probation else "No",
    ]


def build_payroll_workbook(
    *,
    year: int,
    month: int,
    rows: list[PayrollRow],
    records: list[AttendanceRecord],
) -> Workbook:
    workbook = Workbook()
    payroll_ws = workbook.active
    payroll_ws.title = "Payroll"
    _merge_title(payroll_ws, f"Payroll {year}-{month:02d}", len(PAYROLL_HEADERS))
    payroll_ws.append(PAYROLL_HEADERS)
    _style_header(payroll_ws, 2)

    for index, row in enumerate(rows):
        payroll_ws.append(_payroll_values(row))
        excel_row = payroll_ws.max_row
        if row.status == SALARY_NOT_CONFIGURED:
            fill = WARNING_FILL
        elif index % 2 == 1:
            fill = ZEBRA_FILL
        else:
            fill = None
        for cell in payroll_ws[excel_row]:
            cell.border = THIN_BORDER
            if fill is not None:
                cell.fill = fill
    payroll_ws.freeze_panes = "C3"
    _auto_width(payroll_ws)

    attendance_ws = workbook.create_sheet("Attendance")
    attendance_ws.append(ATTENDANCE_HEADERS)
    _style_header(attendance_ws, 1)
    for record in records:
        attendance_ws.append(
            [
                record.employee_id,
                record.day_date,
                _to_excel_datetime(record.start_day_time),
                _to_excel_datetime(record.end_day_time),
                record.status.value,
                record.source.value,
                record.worked_hours,
                record.overtime_hours,
                record.discrepancy_minutes,
            ]
        )
        if record.has_discrepancy:
            for cell in attendance_ws[attendance_ws.max_row]:
                cell.fill = ALERT_FILL
    attendance_ws.freeze_panes = "A2"
    _auto_width(attendance_ws)
    return workbook


def build_payroll_xlsx_bytes(db: Session, *, year: int, month: int) -> bytes:
    employees = list(
        db.scalars(select(Employee).where(Employee.is_active.is_(True)).order_by(Employee.id.asc())).all()
    )
    rows: list[PayrollRow] = []
    for employee in employees:
        try:
            outcome = calculate_salary(db, employee_id=employee.id, year=year, month=month)
        except ApiError as exc:
            rows.append(PayrollRow(employee.id, employee.full_name, exc.code, None))
            continue
        rows.append(PayrollRow(employee.id, employee.full_name, outcome["status"], outcome["result"]))

    workbook = build_payroll_workbook(
        year=year,
        month=month,
        rows=rows,
        records=list_attendance_records(db, year=year, month=month),
    )
    stream = BytesIO()
    workbook.save(stream)
    return stream.getvalue()
