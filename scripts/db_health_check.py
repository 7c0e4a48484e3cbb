#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import create_engine, text

from workday.settings import get_settings

EXPECTED_HEAD = "0001_initial"


def run() -> dict:
    database_url = get_settings().database_url
    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append({"name": name, "status": status, "details": details})

    with engine.connect() as conn:
        tables = set(
            conn.execute(
                text(
                    """
                    select table_name
                    from information_schema.tables
                    where table_schema='public'
                    """
                )
            ).scalars()
        )

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0] for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        if "work_sessions" in tables:
            short_sessions = conn.execute(
                text(
                    """
                    select id
                    from work_sessions
                    where end_time is not null
                      and end_time < start_time + interval '1 minute'
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "work_session_min_duration",
                "fail" if short_sessions else "ok",
                {"sample_ids": [row[0] for row in short_sessions]},
            )

            stale_open_sessions = conn.execute(
                text(
                    """
                    select id, employee_id, session_date
                    from work_sessions
                    where status <> 'completed'
                      and session_date < current_date - 1
                    order by session_date asc
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "stale_open_sessions",
                "warn" if stale_open_sessions else "ok",
                {"rows": [[row[0], row[1], str(row[2])] for row in stale_open_sessions]},
            )

        if "attendance_records" in tables:
            discrepancy_count = conn.execute(
                text("select count(*) from attendance_records where has_discrepancy = true")
            ).scalar()
            add(
                "attendance_discrepancies",
                "warn" if discrepancy_count else "ok",
                {"count": int(discrepancy_count or 0)},
            )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
