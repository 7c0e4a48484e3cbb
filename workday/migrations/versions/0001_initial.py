"""Initial workday schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

work_location = postgresql.ENUM("Office", "Home", "Remote", name="work_location", create_type=False)
work_session_status = postgresql.ENUM(
    "active",
    "paused",
    "completed",
    name="work_session_status",
    create_type=False,
)
attendance_event_type = postgresql.ENUM("IN", "OUT", name="attendance_event_type", create_type=False)
attendance_event_source = postgresql.ENUM(
    "START_DAY",
    "BIOMETRIC",
    "ADMIN_OVERRIDE",
    name="attendance_event_source",
    create_type=False,
)
attendance_record_source = postgresql.ENUM(
    "MONITORING",
    "START_DAY",
    "BIOMETRIC",
    "BOTH",
    "ADMIN_OVERRIDE",
    name="attendance_record_source",
    create_type=False,
)
attendance_record_status = postgresql.ENUM(
    "ACTIVE",
    "COMPLETED",
    name="attendance_record_status",
    create_type=False,
)
aim_completion_status = postgresql.ENUM(
    "Pending",
    "Completed",
    "MVP Achieved",
    name="aim_completion_status",
    create_type=False,
)
salary_currency = postgresql.ENUM("USD", "EUR", "GBP", "INR", "CAD", "AUD", name="salary_currency", create_type=False)
salary_pay_type = postgresql.ENUM("Monthly", "Annual", "Hourly", name="salary_pay_type", create_type=False)
salary_adjustment_type = postgresql.ENUM(
    "Bonus",
    "Increment",
    "Overtime",
    "Deduction",
    "Commission",
    name="salary_adjustment_type",
    create_type=False,
)
audit_actor_type = postgresql.ENUM("ADMIN", "EMPLOYEE", "SYSTEM", name="audit_actor_type", create_type=False)

ALL_ENUMS = (
    work_location,
    work_session_status,
    attendance_event_type,
    attendance_event_source,
    attendance_record_source,
    attendance_record_status,
    aim_completion_status,
    salary_currency,
    salary_pay_type,
    salary_adjustment_type,
    audit_actor_type,
)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _money(name: str, *, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.Numeric(12, 2), nullable=True)
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default=sa.text("0"))


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
    )

    op.create_table(
        "work_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("work_location", work_location, nullable=False),
        sa.Column("start_location", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("end_location", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("target_hours", sa.Float(), nullable=False, server_default=sa.text("8")),
        sa.Column("status", work_session_status, nullable=False),
        sa.Column("total_break_minutes", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("keystroke_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("mouse_activity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("active_minutes", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("idle_minutes", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("violation_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("work_related_minutes", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("non_work_minutes", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "session_date", name="uq_work_sessions_employee_date"),
        sa.CheckConstraint("target_hours >= 1 AND target_hours <= 12", name="ck_work_sessions_target_hours"),
    )
    op.create_index("ix_work_sessions_employee_id", "work_sessions", ["employee_id"])
    op.create_index("ix_work_sessions_session_date", "work_sessions", ["session_date"])
    op.create_index("ix_work_sessions_status", "work_sessions", ["status"])

    op.create_table(
        "attendance_source_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("source", attendance_event_source, nullable=False),
        sa.Column("type", attendance_event_type, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_attendance_source_events_employee_id", "attendance_source_events", ["employee_id"])
    op.create_index("ix_attendance_source_events_day_date", "attendance_source_events", ["day_date"])

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("start_day_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_day_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", attendance_record_status, nullable=False),
        sa.Column("presence", sa.String(length=32), nullable=False),
        sa.Column("source", attendance_record_source, nullable=False),
        sa.Column("has_discrepancy", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("discrepancy_minutes", sa.Float(), nullable=True),
        sa.Column("worked_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("overtime_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("work_location", work_location, nullable=True),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_attendance_records_employee_day"),
    )
    op.create_index("ix_attendance_records_employee_id", "attendance_records", ["employee_id"])
    op.create_index("ix_attendance_records_day_date", "attendance_records", ["day_date"])
    op.create_index("ix_attendance_records_has_discrepancy", "attendance_records", ["has_discrepancy"])

    op.create_table(
        "daily_aims",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("aims", sa.Text(), nullable=False),
        sa.Column("completion_status", aim_completion_status, nullable=False),
        sa.Column("completion_comment", sa.String(length=500), nullable=True),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_daily_aims_employee_day"),
    )

    op.create_table(
        "daily_progress",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("achievements", sa.Text(), nullable=True),
        sa.Column("blockers", sa.Text(), nullable=True),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_daily_progress_employee_day"),
    )

    op.create_table(
        "salary_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("base_salary", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", salary_currency, nullable=False),
        sa.Column("pay_type", salary_pay_type, nullable=False),
        _money("housing_allowance"),
        _money("transport_allowance"),
        _money("medical_allowance"),
        _money("other_allowance"),
        _money("tax_deduction"),
        _money("insurance_deduction"),
        _money("provident_fund_deduction"),
        _money("loan_deduction"),
        _money("other_deduction"),
        sa.Column("joining_date", sa.Date(), nullable=True),
        sa.Column("probation_months", sa.Integer(), nullable=False, server_default=sa.text("3")),
        sa.Column("probation_end_date", sa.Date(), nullable=True),
        sa.Column(
            "bank_details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", name="uq_salary_profiles_employee_id"),
    )

    op.create_table(
        "salary_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("type", salary_adjustment_type, nullable=False),
        _money("amount", nullable=True),
        sa.Column("percentage", sa.Float(), nullable=True),
        sa.Column("reason", sa.String(length=200), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_salary_adjustments_employee_id", "salary_adjustments", ["employee_id"])
    op.create_index("ix_salary_adjustments_effective_date", "salary_adjustments", ["effective_date"])

    op.create_table(
        "working_days_configs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("working_days", sa.Integer(), nullable=False),
        sa.Column(
            "holidays",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("updated_by", sa.String(length=255), nullable=False),
        _timestamp("updated_at"),
        sa.UniqueConstraint("year", "month", name="uq_working_days_configs_year_month"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _timestamp("ts_utc"),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("working_days_configs")
    op.drop_index("ix_salary_adjustments_effective_date", table_name="salary_adjustments")
    op.drop_index("ix_salary_adjustments_employee_id", table_name="salary_adjustments")
    op.drop_table("salary_adjustments")
    op.drop_table("salary_profiles")
    op.drop_table("daily_progress")
    op.drop_table("daily_aims")
    op.drop_index("ix_attendance_records_has_discrepancy", table_name="attendance_records")
    op.drop_index("ix_attendance_records_day_date", table_name="attendance_records")
    op.drop_index("ix_attendance_records_employee_id", table_name="attendance_records")
    op.drop_table("attendance_records")
    op.drop_index("ix_attendance_source_events_day_date", table_name="attendance_source_events")
    op.drop_index("ix_attendance_source_events_employee_id", table_name="attendance_source_events")
    op.drop_table("attendance_source_events")
    op.drop_index("ix_work_sessions_status", table_name="work_sessions")
    op.drop_index("ix_work_sessions_session_date", table_name="work_sessions")
    op.drop_index("ix_work_sessions_employee_id", table_name="work_sessions")
    op.drop_table("work_sessions")
    op.drop_table("employees")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
