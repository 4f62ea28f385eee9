from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Attendance(db.Model):
    """
    One salesman work session, opened at login and closed at logout.

    - work_date: UTC calendar day of the login
    - total_hours: set on logout, rounded to 2 decimals; 0 while open
    """
    __tablename__ = "attendance"
    __table_args__ = (
        db.Index("ix_attendance_salesman_date", "salesman_id", "work_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salesman_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    work_date = db.Column(db.Date, nullable=False)

    login_time = db.Column(db.DateTime(timezone=True), nullable=False)
    logout_time = db.Column(db.DateTime(timezone=True), nullable=True)
    total_hours = db.Column(db.Float, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Attendance id={self.id} salesman={self.salesman_id} date={self.work_date}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salesman_id": self.salesman_id,
            "date": self.work_date.isoformat(),
            "login_time": to_utc_z(self.login_time),
            "logout_time": to_utc_z(self.logout_time),
            "total_hours": self.total_hours or 0,
        }
