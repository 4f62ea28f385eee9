# Overview: Service-layer operations for salesman attendance; login/logout sessions and daily totals.

"""
Attendance Service

A salesman opens a session at login and closes it at logout. Sessions are
keyed by the UTC day of the login; a day may hold several sessions.

Only one session per day may be open at a time. Logout closes today's open
session and fixes total_hours; closed sessions are not edited again.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Attendance, User, ROLE_SALESMAN
from ..time_utils import to_utc_z, utcnow


class AttendanceError(Exception):
    """Raised for invalid attendance operations."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _require_salesman(salesman_id: int) -> User:
    user = db.session.get(User, salesman_id)
    if user is None:
        raise AttendanceError("Salesman not found", details={"salesman_id": salesman_id})
    if user.role != ROLE_SALESMAN:
        raise AttendanceError("Attendance is only recorded for salesmen", details={"salesman_id": salesman_id})
    return user


def _open_session(salesman_id: int, day) -> Attendance | None:
    return (
        db.session.query(Attendance)
        .filter_by(salesman_id=salesman_id, work_date=day, logout_time=None)
        .order_by(Attendance.login_time)
        .first()
    )


def _commit(message: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise AttendanceError(message) from exc


def record_login(salesman_id: int, *, now: datetime | None = None) -> Attendance:
    now = now or utcnow()
    _require_salesman(salesman_id)
    if _open_session(salesman_id, now.date()):
        raise AttendanceError("Salesman is already logged in", details={"salesman_id": salesman_id})

    entry = Attendance(
        salesman_id=salesman_id,
        work_date=now.date(),
        login_time=now,
        logout_time=None,
        total_hours=0,
    )
    db.session.add(entry)
    _commit("Failed to record login")
    current_app.logger.info("Salesman %s logged in at %s", salesman_id, to_utc_z(now))
    return entry


def record_logout(salesman_id: int, *, now: datetime | None = None) -> Attendance:
    now = now or utcnow()
    _require_salesman(salesman_id)
    entry = _open_session(salesman_id, now.date())
    if entry is None:
        raise AttendanceError("No open attendance session for today", details={"salesman_id": salesman_id})

    entry.logout_time = now
    entry.total_hours = round((now - entry.login_time).total_seconds() / 3600, 2)
    _commit("Failed to record logout")
    current_app.logger.info("Salesman %s logged out after %s hours", salesman_id, entry.total_hours)
    return entry


def group_attendance_by_day(records) -> list[dict]:
    """
    Fold sessions into one row per day, newest day first.

    total_hours is summed, login_time is the earliest login and logout_time
    the latest logout (None while no session of that day is closed).
    """
    days: dict = {}
    for record in records:
        row = days.get(record.work_date)
        if row is None:
            row = days[record.work_date] = {
                "date": record.work_date.isoformat(),
                "salesman_id": record.salesman_id,
                "total_hours": 0.0,
                "login_time": record.login_time,
                "logout_time": record.logout_time,
                "sessions": 0,
            }
        row["sessions"] += 1
        row["total_hours"] += record.total_hours or 0
        if record.login_time < row["login_time"]:
            row["login_time"] = record.login_time
        if record.logout_time and (row["logout_time"] is None or record.logout_time > row["logout_time"]):
            row["logout_time"] = record.logout_time

    rows = []
    for day in sorted(days, reverse=True):
        row = days[day]
        row["total_hours"] = round(row["total_hours"], 2)
        row["login_time"] = to_utc_z(row["login_time"])
        row["logout_time"] = to_utc_z(row["logout_time"])
        rows.append(row)
    return rows


def get_attendance(salesman_id: int) -> list[dict]:
    try:
        records = db.session.query(Attendance).filter_by(salesman_id=salesman_id).all()
    except SQLAlchemyError as exc:
        raise AttendanceError("Failed to fetch attendance") from exc
    return group_attendance_by_day(records)
