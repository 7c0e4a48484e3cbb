import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from workday.models import (
    AttendanceEventSource,
    AttendanceEventType,
    AttendanceRecordSource,
    AttendanceRecordStatus,
    WorkLocation,
    WorkSessionStatus,
)
from workday.services.reconciler import PRESENT, OriginTimes, detect_discrepancy, reconcile_day

T0 = datetime(2026, 3, 2, 3, 30, tzinfo=timezone.utc)
NOW = T0 + timedelta(hours=12)


def _event(source: AttendanceEventSource, event_type: AttendanceEventType, ts: datetime) -> SimpleNamespace:
    return SimpleNamespace(source=source, type=event_type, ts_utc=ts)


def _session(start: datetime, end: datetime | None, *, breaks: float = 0.0) -> SimpleNamespace:
    return SimpleNamespace(
        start_time=start,
        end_time=end,
        status=WorkSessionStatus.COMPLETED if end is not None else WorkSessionStatus.ACTIVE,
        total_break_minutes=breaks,
        work_location=WorkLocation.HOME,
    )


def _reconcile(monitoring, events):  # type: ignore[no-untyped-def]
    return reconcile_day(monitoring, events, tolerance_minutes=2.0, standard_hours=8.0, now=NOW)


class ReconcilerTests(unittest.TestCase):
    def test_no_origins_returns_none(self) -> None:
        self.assertIsNone(_reconcile(None, []))

    def test_start_day_and_biometric_agreeing_is_both_without_discrepancy(self) -> None:
        events = [
            _event(AttendanceEventSource.START_DAY, AttendanceEventType.IN, T0),
            _event(AttendanceEventSource.BIOMETRIC, AttendanceEventType.IN, T0 + timedelta(minutes=1)),
            _event(AttendanceEventSource.BIOMETRIC, AttendanceEventType.OUT, T0 + timedelta(hours=9)),
        ]
        day = _reconcile(None, events)

        self.assertIsNotNone(day)
        self.assertEqual(day.source, AttendanceRecordSource.BOTH)  # type: ignore[union-attr]
        self.assertFalse(day.has_discrepancy)  # type: ignore[union-attr]
        self.assertEqual(day.presence, PRESENT)  # type: ignore[union-attr]
        self.assertEqual(day.status, AttendanceRecordStatus.COMPLETED)  # type: ignore[union-attr]
        self.assertEqual(day.start_day_time, T0 + timedelta(minutes=1))  # type: ignore[union-attr]

    def test_origins_more_than_tolerance_apart_flag_discrepancy(self) -> None:
        events = [
            _event(AttendanceEventSource.START_DAY, AttendanceEventType.IN, T0),
            _event(AttendanceEventSource.BIOMETRIC, AttendanceEventType.IN, T0 + timedelta(minutes=5)),
        ]
        day = _reconcile(None, events)

        self.assertTrue(day.has_discrepancy)  # type: ignore[union-attr]
        self.assertEqual(day.discrepancy_minutes, 5.0)  # type: ignore[union-attr]
        self.assertEqual(day.start_day_time, T0)  # type: ignore[union-attr]
        self.assertEqual(day.status, AttendanceRecordStatus.ACTIVE)  # type: ignore[union-attr]

    def test_monitoring_session_takes_priority(self) -> None:
        monitoring = _session(T0, T0 + timedelta(hours=9), breaks=60)
        events = [
            _event(AttendanceEventSource.BIOMETRIC, AttendanceEventType.IN, T0 + timedelta(minutes=10)),
            _event(AttendanceEventSource.BIOMETRIC, AttendanceEventType.OUT, T0 + timedelta(hours=9)),
        ]
        day = _reconcile(monitoring, events)

        self.assertEqual(day.source, AttendanceRecordSource.MONITORING)  # type: ignore[union-attr]
        self.assertEqual(day.start_day_time, T0)  # type: ignore[union-attr]
        self.assertEqual(day.worked_hours, 8.0)  # type: ignore[union-attr]
        self.assertEqual(day.overtime_hours, 0.0)  # type: ignore[union-attr]
        self.assertEqual(day.work_location, WorkLocation.HOME)  # type: ignore[union-attr]
        self.assertTrue(day.has_discrepancy)  # type: ignore[union-attr]

    def test_admin_override_wins_over_events_and_uses_latest_in(self) -> None:
        events = [
            _event(AttendanceEventSource.BIOMETRIC, AttendanceEventType.IN, T0),
            _event(AttendanceEventSource.ADMIN_OVERRIDE, AttendanceEventType.IN, T0),
            _event(AttendanceEventSource.ADMIN_OVERRIDE, AttendanceEventType.IN, T0 + timedelta(minutes=30)),
            _event(AttendanceEventSource.ADMIN_OVERRIDE, AttendanceEventType.OUT, T0 + timedelta(hours=10, minutes=30)),
        ]
        day = _reconcile(None, events)

        self.assertEqual(day.source, AttendanceRecordSource.ADMIN_OVERRIDE)  # type: ignore[union-attr]
        self.assertEqual(day.start_day_time, T0 + timedelta(minutes=30))  # type: ignore[union-attr]
        self.assertEqual(day.worked_hours, 10.0)  # type: ignore[union-attr]
        self.assertEqual(day.overtime_hours, 2.0)  # type: ignore[union-attr]

    def test_out_without_in_is_not_attendance(self) -> None:
        events = [_event(AttendanceEventSource.BIOMETRIC, AttendanceEventType.OUT, T0)]
        self.assertIsNone(_reconcile(None, events))

    def test_detect_discrepancy_within_tolerance(self) -> None:
        origins = [
            OriginTimes(start=T0, end=T0 + timedelta(hours=8)),
            OriginTimes(start=T0 + timedelta(minutes=2), end=T0 + timedelta(hours=8, minutes=1)),
        ]
        self.assertEqual(detect_discrepancy(origins, 2.0), (False, None))
        self.assertEqual(detect_discrepancy(origins[:1], 2.0), (False, None))


if __name__ == "__main__":
    unittest.main()
