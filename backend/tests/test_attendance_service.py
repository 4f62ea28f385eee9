"""Salesman attendance: login/logout sessions and the per-day fold."""

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from bizmanager.models import Attendance
from bizmanager.services import attendance_service
from bizmanager.services.attendance_service import AttendanceError

MORNING = datetime(2026, 10, 19, 8, 0)


def _record(day, login, logout=None, hours=0, salesman_id=1):
    return SimpleNamespace(
        work_date=day,
        login_time=login,
        logout_time=logout,
        total_hours=hours,
        salesman_id=salesman_id,
    )


def test_login_then_logout_records_hours(db_session, salesman):
    entry = attendance_service.record_login(salesman.id, now=MORNING)
    assert entry.work_date == date(2026, 10, 19)
    assert entry.logout_time is None
    assert entry.total_hours == 0

    closed = attendance_service.record_logout(salesman.id, now=datetime(2026, 10, 19, 16, 20))
    assert closed.id == entry.id
    assert closed.total_hours == 8.33
    assert closed.logout_time == datetime(2026, 10, 19, 16, 20)


def test_second_login_while_open_is_rejected(db_session, salesman):
    attendance_service.record_login(salesman.id, now=MORNING)
    with pytest.raises(AttendanceError) as exc:
        attendance_service.record_login(salesman.id, now=datetime(2026, 10, 19, 9, 0))
    assert str(exc.value) == "Salesman is already logged in"
    assert db_session.query(Attendance).count() == 1


def test_logout_without_open_session(db_session, salesman):
    with pytest.raises(AttendanceError) as exc:
        attendance_service.record_logout(salesman.id, now=MORNING)
    assert str(exc.value) == "No open attendance session for today"


def test_yesterdays_open_session_does_not_block_today(db_session, salesman):
    attendance_service.record_login(salesman.id, now=datetime(2026, 10, 18, 9, 0))
    attendance_service.record_login(salesman.id, now=MORNING)
    assert db_session.query(Attendance).count() == 2


def test_attendance_only_for_salesmen(db_session, customer):
    with pytest.raises(AttendanceError) as exc:
        attendance_service.record_login(customer.id, now=MORNING)
    assert str(exc.value) == "Attendance is only recorded for salesmen"

    with pytest.raises(AttendanceError) as exc:
        attendance_service.record_login(999999, now=MORNING)
    assert str(exc.value) == "Salesman not found"


def test_get_attendance_groups_sessions(db_session, salesman):
    attendance_service.record_login(salesman.id, now=MORNING)
    attendance_service.record_logout(salesman.id, now=datetime(2026, 10, 19, 12, 0))
    attendance_service.record_login(salesman.id, now=datetime(2026, 10, 19, 13, 0))
    attendance_service.record_logout(salesman.id, now=datetime(2026, 10, 19, 17, 30))
    attendance_service.record_login(salesman.id, now=datetime(2026, 10, 17, 10, 0))

    rows = attendance_service.get_attendance(salesman.id)

    assert [r["date"] for r in rows] == ["2026-10-19", "2026-10-17"]
    assert rows[0]["total_hours"] == 8.5
    assert rows[0]["sessions"] == 2
    assert rows[0]["login_time"] == "2026-10-19T08:00:00Z"
    assert rows[0]["logout_time"] == "2026-10-19T17:30:00Z"
    assert rows[1]["logout_time"] is None
    assert rows[1]["total_hours"] == 0


def test_group_attendance_by_day_keeps_extremes():
    day = date(2026, 10, 19)
    rows = attendance_service.group_attendance_by_day([
        _record(day, datetime(2026, 10, 19, 13, 0), datetime(2026, 10, 19, 18, 0), 5),
        _record(day, datetime(2026, 10, 19, 7, 30), datetime(2026, 10, 19, 11, 0), 3.5),
        _record(day, datetime(2026, 10, 19, 19, 0)),
    ])

    assert len(rows) == 1
    assert rows[0]["login_time"] == "2026-10-19T07:30:00Z"
    assert rows[0]["logout_time"] == "2026-10-19T18:00:00Z"
    assert rows[0]["total_hours"] == 8.5
    assert rows[0]["sessions"] == 3


def test_group_attendance_by_day_empty():
    assert attendance_service.group_attendance_by_day([]) == []
