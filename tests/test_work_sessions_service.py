import asyncio
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from workday.errors import ApiError
from workday.models import (
    AimCompletionStatus,
    AttendanceEventType,
    AttendanceSourceEvent,
    DailyAim,
    DailyProgress,
    Employee,
    WorkLocation,
    WorkSession,
    WorkSessionStatus,
)
from workday.schemas import EndDayRequest, ProductivityUpdateRequest, StartDayRequest
from workday.services.geo import GeoPoint
from workday.services.providers import StaticLocationProvider, StaticSignalProvider
from workday.services.session_calc import local_day
from workday.services.work_sessions import (
    end_day,
    end_day_with_provider,
    pause_session,
    resume_session,
    start_day,
    start_day_with_provider,
    sync_productivity,
    update_productivity,
)
from workday.settings import get_settings

NOW = datetime(2026, 3, 2, 4, 0, tzinfo=timezone.utc)
OFFICE_LAT = 19.1628987
OFFICE_LON = 72.8355871


class FakeDB:
    def __init__(self, *, employee: Employee | None, scalar_results: list[object | None] | None = None):
        self._employee = employee
        self._scalar_results = list(scalar_results or [])
        self.added: list[object] = []
        self.committed = False
        self.rolled_back = False
        self.commit_error: Exception | None = None

    def get(self, _model, _ident):  # type: ignore[no-untyped-def]
        return self._employee

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        if not self._scalar_results:
            return None
        return self._scalar_results.pop(0)

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def flush(self) -> None:
        return

    def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.committed = True

    def rollback(self) -> None:
        self.rolled_back = True

    def refresh(self, _obj: object) -> None:
        return


def _employee(active: bool = True) -> Employee:
    return Employee(id=7, full_name="Asha Rao", is_active=active)


def _session(*, status: WorkSessionStatus = WorkSessionStatus.ACTIVE, start: datetime | None = None) -> WorkSession:
    start_time = start or NOW - timedelta(hours=8)
    return WorkSession(
        id=11,
        employee_id=7,
        session_date=local_day(start_time),
        start_time=start_time,
        end_time=None,
        work_location=WorkLocation.HOME,
        start_location=None,
        end_location=None,
        paused_at=None,
        resumed_at=None,
        target_hours=8.0,
        status=status,
        total_break_minutes=0.0,
        notes=None,
    )


@patch("workday.services.work_sessions.log_employee_event")
@patch("workday.services.work_sessions.refresh_attendance_record")
class StartDayTests(unittest.TestCase):
    def test_home_start_succeeds_far_from_office(self, refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee())
        payload = StartDayRequest(work_location=WorkLocation.HOME, latitude=OFFICE_LAT + 0.045, longitude=OFFICE_LON)

        session, message = start_day(fake_db, employee_id=7, payload=payload, now=NOW)  # type: ignore[arg-type]

        self.assertTrue(fake_db.committed)
        self.assertEqual(session.status, WorkSessionStatus.ACTIVE)
        self.assertEqual(session.start_time, NOW)
        self.assertEqual(session.target_hours, 8.0)
        self.assertEqual(session.total_break_minutes, 0.0)
        self.assertIn("Home", message)
        events = [item for item in fake_db.added if isinstance(item, AttendanceSourceEvent)]
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].type, AttendanceEventType.IN)
        refresh_mock.assert_called_once()

    def test_office_start_far_from_office_is_rejected(self, refresh_mock, audit_mock) -> None:
        fake_db = FakeDB(employee=_employee())
        payload = StartDayRequest(work_location=WorkLocation.OFFICE, latitude=OFFICE_LAT + 0.045, longitude=OFFICE_LON)

        with self.assertRaises(ApiError) as ctx:
            start_day(fake_db, employee_id=7, payload=payload, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "LOCATION_TOO_FAR")
        self.assertFalse(ctx.exception.details["within_perimeter"])  # type: ignore[index]
        self.assertGreater(ctx.exception.details["distance_m"], 4900)  # type: ignore[index]
        self.assertEqual(fake_db.added, [])
        self.assertFalse(fake_db.committed)
        refresh_mock.assert_not_called()
        audit_mock.assert_not_called()

    def test_office_start_inside_perimeter_records_flags(self, _refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee())
        payload = StartDayRequest(
            work_location=WorkLocation.OFFICE,
            latitude=OFFICE_LAT + 0.001,
            longitude=OFFICE_LON,
            accuracy=12.0,
        )

        session, message = start_day(fake_db, employee_id=7, payload=payload, now=NOW)  # type: ignore[arg-type]

        self.assertTrue(session.start_location["within_perimeter"])  # type: ignore[index]
        self.assertEqual(session.start_location["office_id"], "main")  # type: ignore[index]
        self.assertEqual(session.start_location["accuracy"], 12.0)  # type: ignore[index]
        self.assertIn("Main Office", message)

    def test_office_start_without_coordinates_requires_location(self, _refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee())

        with self.assertRaises(ApiError) as ctx:
            start_day(fake_db, employee_id=7, payload=StartDayRequest(), now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "LOCATION_REQUIRED")

    def test_second_start_same_day_is_rejected(self, _refresh_mock, audit_mock) -> None:
        payload = StartDayRequest(work_location=WorkLocation.REMOTE)
        for status in (WorkSessionStatus.ACTIVE, WorkSessionStatus.PAUSED, WorkSessionStatus.COMPLETED):
            with self.subTest(status=status):
                existing = _session(status=status)
                fake_db = FakeDB(employee=_employee(), scalar_results=[existing])

                with self.assertRaises(ApiError) as ctx:
                    start_day(fake_db, employee_id=7, payload=payload, now=NOW)  # type: ignore[arg-type]

                self.assertEqual(ctx.exception.code, "DAY_ALREADY_STARTED")
                self.assertEqual(ctx.exception.status_code, 409)
                self.assertEqual(existing.status, status)
                self.assertEqual(fake_db.added, [])
                self.assertFalse(fake_db.committed)
        audit_mock.assert_not_called()

    def test_concurrent_start_maps_integrity_error(self, _refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee())
        fake_db.commit_error = IntegrityError("insert", {}, Exception("uq_work_sessions_employee_date"))
        payload = StartDayRequest(work_location=WorkLocation.REMOTE)

        with self.assertRaises(ApiError) as ctx:
            start_day(fake_db, employee_id=7, payload=payload, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "DAY_ALREADY_STARTED")
        self.assertTrue(fake_db.rolled_back)

    def test_target_hours_out_of_range(self, _refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee())
        payload = StartDayRequest(work_location=WorkLocation.HOME, target_hours=13)

        with self.assertRaises(ApiError) as ctx:
            start_day(fake_db, employee_id=7, payload=payload, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "INVALID_TARGET_HOURS")

    def test_inactive_employee_cannot_start(self, _refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee(active=False))

        with self.assertRaises(ApiError) as ctx:
            start_day(fake_db, employee_id=7, payload=StartDayRequest(work_location=WorkLocation.HOME), now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "EMPLOYEE_INACTIVE")


@patch("workday.services.work_sessions.log_employee_event")
@patch("workday.services.work_sessions.refresh_attendance_record")
class PauseResumeTests(unittest.TestCase):
    def test_pause_then_resume_accumulates_break(self, _refresh_mock, _audit_mock) -> None:
        session = _session(start=NOW - timedelta(hours=2))
        fake_db = FakeDB(employee=_employee(), scalar_results=[session, session])

        pause_session(fake_db, employee_id=7, now=NOW)  # type: ignore[arg-type]
        self.assertEqual(session.status, WorkSessionStatus.PAUSED)
        self.assertEqual(session.paused_at, NOW)

        resume_session(fake_db, employee_id=7, now=NOW + timedelta(minutes=15))  # type: ignore[arg-type]
        self.assertEqual(session.status, WorkSessionStatus.ACTIVE)
        self.assertEqual(session.total_break_minutes, 15.0)
        self.assertEqual(session.resumed_at, NOW + timedelta(minutes=15))

    def test_pause_requires_active_session(self, _refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee(), scalar_results=[_session(status=WorkSessionStatus.PAUSED)])

        with self.assertRaises(ApiError) as ctx:
            pause_session(fake_db, employee_id=7, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "INVALID_SESSION_STATE")

    def test_resume_requires_paused_session(self, _refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee(), scalar_results=[_session()])

        with self.assertRaises(ApiError) as ctx:
            resume_session(fake_db, employee_id=7, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "INVALID_SESSION_STATE")

    def test_pause_without_session(self, _refresh_mock, _audit_mock) -> None:
        fake_db = FakeDB(employee=_employee())

        with self.assertRaises(ApiError) as ctx:
            pause_session(fake_db, employee_id=7, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "SESSION_NOT_FOUND")


@patch("workday.services.work_sessions.get_salary_profile", return_value=None)
@patch("workday.services.work_sessions.log_employee_event")
@patch("workday.services.work_sessions.refresh_attendance_record")
class EndDayTests(unittest.TestCase):
    def _checklist(self, status: AimCompletionStatus = AimCompletionStatus.COMPLETED):  # type: ignore[no-untyped-def]
        aim = DailyAim(employee_id=7, aims="Ship payroll export", completion_status=status, completion_comment="Done")
        progress = DailyProgress(employee_id=7, progress_percentage=100, notes="Export merged")
        return aim, progress

    def test_pending_aim_blocks_end_day(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        session = _session()
        fake_db = FakeDB(employee=_employee(), scalar_results=[session])

        with patch(
            "workday.services.work_sessions.load_end_day_checklist",
            return_value=self._checklist(AimCompletionStatus.PENDING),
        ):
            with self.assertRaises(ApiError) as ctx:
                end_day(fake_db, employee_id=7, payload=EndDayRequest(), now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "AIM_NOT_COMPLETED")
        self.assertEqual(session.status, WorkSessionStatus.ACTIVE)
        self.assertIsNone(session.end_time)
        self.assertFalse(fake_db.committed)

    def test_end_day_completes_session(self, refresh_mock, _audit_mock, _profile_mock) -> None:
        session = _session(start=NOW - timedelta(hours=8, minutes=30))
        session.total_break_minutes = 30.0
        fake_db = FakeDB(employee=_employee(), scalar_results=[session])

        with patch("workday.services.work_sessions.load_end_day_checklist", return_value=self._checklist()):
            outcome = end_day(fake_db, employee_id=7, payload=EndDayRequest(notes="wrap up"), now=NOW)  # type: ignore[arg-type]

        self.assertEqual(session.status, WorkSessionStatus.COMPLETED)
        self.assertEqual(session.end_time, NOW)
        self.assertEqual(session.notes, "wrap up")
        self.assertEqual(outcome["total_hours"], 8.0)
        self.assertIsNone(outcome["earned_amount"])
        self.assertEqual(outcome["session"].completion_percentage, 100.0)
        events = [item for item in fake_db.added if isinstance(item, AttendanceSourceEvent)]
        self.assertEqual([event.type for event in events], [AttendanceEventType.OUT])
        refresh_mock.assert_called_once()

    def test_end_day_snaps_micro_session(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        session = _session(start=NOW - timedelta(seconds=30))
        fake_db = FakeDB(employee=_employee(), scalar_results=[session])

        with patch("workday.services.work_sessions.load_end_day_checklist", return_value=self._checklist()):
            outcome = end_day(fake_db, employee_id=7, payload=EndDayRequest(), now=NOW)  # type: ignore[arg-type]

        self.assertEqual(session.end_time, session.start_time + timedelta(minutes=1))
        self.assertEqual(outcome["session"].actual_work_minutes, 1)

    def test_end_day_while_paused_closes_the_break(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        session = _session(status=WorkSessionStatus.PAUSED, start=NOW - timedelta(hours=4))
        session.paused_at = NOW - timedelta(minutes=20)
        fake_db = FakeDB(employee=_employee(), scalar_results=[session])

        with patch("workday.services.work_sessions.load_end_day_checklist", return_value=self._checklist()):
            end_day(fake_db, employee_id=7, payload=EndDayRequest(), now=NOW)  # type: ignore[arg-type]

        self.assertEqual(session.total_break_minutes, 20.0)
        self.assertEqual(session.status, WorkSessionStatus.COMPLETED)

    def test_completed_session_cannot_end_again(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        fake_db = FakeDB(employee=_employee(), scalar_results=[_session(status=WorkSessionStatus.COMPLETED)])

        with self.assertRaises(ApiError) as ctx:
            end_day(fake_db, employee_id=7, payload=EndDayRequest(), now=NOW)  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "SESSION_ALREADY_COMPLETED")

    def test_storage_failure_rolls_back(self, refresh_mock, _audit_mock, _profile_mock) -> None:
        session = _session()
        fake_db = FakeDB(employee=_employee(), scalar_results=[session])
        refresh_mock.side_effect = RuntimeError("db down")

        with patch("workday.services.work_sessions.load_end_day_checklist", return_value=self._checklist()):
            with self.assertRaises(RuntimeError):
                end_day(fake_db, employee_id=7, payload=EndDayRequest(), now=NOW)  # type: ignore[arg-type]

        self.assertTrue(fake_db.rolled_back)
        self.assertFalse(fake_db.committed)


class ProductivityUpdateTests(unittest.TestCase):
    def test_only_provided_counters_change(self) -> None:
        session = _session()
        session.keystroke_count = 100
        session.violation_count = 1
        fake_db = FakeDB(employee=_employee(), scalar_results=[session])

        update_productivity(
            fake_db,  # type: ignore[arg-type]
            employee_id=7,
            payload=ProductivityUpdateRequest(keystroke_count=900, active_minutes=120),
            now=NOW,
        )

        self.assertEqual(session.keystroke_count, 900)
        self.assertEqual(session.active_minutes, 120)
        self.assertEqual(session.violation_count, 1)
        self.assertTrue(fake_db.committed)


class _SlowLocationProvider:
    async def current_location(self) -> GeoPoint | None:
        await asyncio.sleep(1)
        return GeoPoint(latitude=OFFICE_LAT, longitude=OFFICE_LON)


@patch("workday.services.work_sessions.get_salary_profile", return_value=None)
@patch("workday.services.work_sessions.log_employee_event")
@patch("workday.services.work_sessions.refresh_attendance_record")
class ProviderEntryPointTests(unittest.TestCase):
    def setUp(self) -> None:
        self._timeout = patch.object(get_settings(), "location_timeout_seconds", 0.01)
        self._timeout.start()

    def tearDown(self) -> None:
        self._timeout.stop()

    def test_location_timeout_still_starts_home_day(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        fake_db = FakeDB(employee=_employee())
        payload = StartDayRequest(work_location=WorkLocation.HOME, latitude=1.0, longitude=1.0)

        session, _message = asyncio.run(
            start_day_with_provider(
                fake_db,  # type: ignore[arg-type]
                employee_id=7,
                payload=payload,
                provider=_SlowLocationProvider(),
                now=NOW,
            )
        )

        self.assertEqual(session.status, WorkSessionStatus.ACTIVE)
        self.assertIsNone(session.start_location)
        self.assertTrue(fake_db.committed)

    def test_location_timeout_blocks_office_day(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        fake_db = FakeDB(employee=_employee())

        with self.assertRaises(ApiError) as ctx:
            asyncio.run(
                start_day_with_provider(
                    fake_db,  # type: ignore[arg-type]
                    employee_id=7,
                    payload=StartDayRequest(work_location=WorkLocation.OFFICE),
                    provider=_SlowLocationProvider(),
                    now=NOW,
                )
            )

        self.assertEqual(ctx.exception.code, "LOCATION_REQUIRED")
        self.assertFalse(fake_db.committed)

    def test_provider_fix_is_used_for_office_day(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        fake_db = FakeDB(employee=_employee())
        provider = StaticLocationProvider(GeoPoint(latitude=OFFICE_LAT + 0.001, longitude=OFFICE_LON, accuracy_m=9.0))

        session, _message = asyncio.run(
            start_day_with_provider(
                fake_db,  # type: ignore[arg-type]
                employee_id=7,
                payload=StartDayRequest(work_location=WorkLocation.OFFICE),
                provider=provider,
                now=NOW,
            )
        )

        self.assertTrue(session.start_location["within_perimeter"])  # type: ignore[index]
        self.assertEqual(session.start_location["accuracy"], 9.0)  # type: ignore[index]

    def test_end_day_without_location_completes(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        session = _session()
        fake_db = FakeDB(employee=_employee(), scalar_results=[session])
        aim = DailyAim(employee_id=7, aims="Ship", completion_status=AimCompletionStatus.COMPLETED, completion_comment="Done")
        progress = DailyProgress(employee_id=7, progress_percentage=100, notes="Shipped")

        with patch("workday.services.work_sessions.load_end_day_checklist", return_value=(aim, progress)):
            outcome = asyncio.run(
                end_day_with_provider(
                    fake_db,  # type: ignore[arg-type]
                    employee_id=7,
                    payload=EndDayRequest(),
                    provider=_SlowLocationProvider(),
                    now=NOW,
                )
            )

        self.assertEqual(session.status, WorkSessionStatus.COMPLETED)
        self.assertIsNone(session.end_location)
        self.assertEqual(outcome["total_hours"], 8.0)

    def test_device_signals_update_today_session(self, _refresh_mock, _audit_mock, _profile_mock) -> None:
        session = _session()
        session.violation_count = 2
        fake_db = FakeDB(employee=_employee(), scalar_results=[session])
        provider = StaticSignalProvider(ProductivityUpdateRequest(keystroke_count=1500, work_related_minutes=300))

        asyncio.run(sync_productivity(fake_db, employee_id=7, provider=provider, now=NOW))  # type: ignore[arg-type]

        self.assertEqual(session.keystroke_count, 1500)
        self.assertEqual(session.work_related_minutes, 300)
        self.assertEqual(session.violation_count, 2)
        self.assertTrue(fake_db.committed)


if __name__ == "__main__":
    unittest.main()
