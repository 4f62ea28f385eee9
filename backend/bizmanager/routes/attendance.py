# Overview: Flask API routes for salesman attendance (login/logout sessions and daily history).

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_principal, require_role
from ..models import ROLE_ADMIN, ROLE_SALESMAN
from ..services import attendance_service
from ..services.attendance_service import AttendanceError


attendance_bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")


def _attendance_error(e: AttendanceError, action: str):
    if str(e) == "Salesman not found":
        return jsonify({"error": str(e)}), 404
    if e.details:
        return jsonify({"error": str(e), "details": e.details}), 400
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


@attendance_bp.post("/login")
@require_principal
@require_role(ROLE_SALESMAN)
def login_route():
    try:
        entry = attendance_service.record_login(g.current_user.id)
    except AttendanceError as e:
        return _attendance_error(e, "record login")
    return jsonify(entry.to_dict()), 201


@attendance_bp.post("/logout")
@require_principal
@require_role(ROLE_SALESMAN)
def logout_route():
    try:
        entry = attendance_service.record_logout(g.current_user.id)
    except AttendanceError as e:
        return _attendance_error(e, "record logout")
    return jsonify(entry.to_dict()), 200


@attendance_bp.get("/salesmen/<int:salesman_id>")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def salesman_attendance_route(salesman_id: int):
    """Daily attendance, newest first. Salesmen may only read their own."""
    if g.current_user.role == ROLE_SALESMAN and g.current_user.id != salesman_id:
        return jsonify({"error": "Forbidden"}), 403
    try:
        rows = attendance_service.get_attendance(salesman_id)
    except AttendanceError as e:
        return _attendance_error(e, "fetch attendance")
    return jsonify({
        "records": rows,
        "count": len(rows),
        "total_hours": round(sum(r["total_hours"] for r in rows), 2),
    }), 200
