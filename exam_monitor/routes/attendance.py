"""
Attendance Routes - per-student status, toilet, extra time and transfers
"""
from flask import Blueprint, request, jsonify
from exam_monitor.services.attendance_ledger import get_attendance_ledger
from exam_monitor.services.transfer_coordinator import get_transfer_coordinator
from exam_monitor.utils.request_utils import json_body

attendance_bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")


@attendance_bp.route("/<attendance_id>/status", methods=["PATCH"])
def update_status(attendance_id):
    """Set a record to absent, present or finished"""
    data = json_body()

    status = data.get("status")
    if not status:
        return jsonify({"error": "Missing required field: status"}), 400

    record = get_attendance_ledger().set_status(attendance_id, status)

    return jsonify({"success": True, "attendance": record.to_dict(include_student=True)}), 200


@attendance_bp.route("/<attendance_id>/toilet", methods=["PATCH"])
def toggle_toilet(attendance_id):
    """Flip the out-of-room flag, or set it with {"isOnToilet": bool}"""
    data = json_body()

    desired = data.get("isOnToilet")
    if desired is not None and not isinstance(desired, bool):
        return jsonify({"error": "isOnToilet must be a boolean"}), 400

    record = get_attendance_ledger().toggle_toilet(attendance_id, desired=desired)

    return jsonify({"success": True, "attendance": record.to_dict(include_student=True)}), 200


@attendance_bp.route("/<attendance_id>/addTime", methods=["PATCH"])
def add_extra_time(attendance_id):
    data = json_body()

    if "minutesToAdd" not in data:
        return jsonify({"error": "Missing required field: minutesToAdd"}), 400

    record = get_attendance_ledger().add_extra_time(attendance_id, data["minutesToAdd"])

    return jsonify({"success": True, "attendance": record.to_dict(include_student=True)}), 200


@attendance_bp.route("/transfer", methods=["POST"])
def transfer_student():
    """Move a student's live record to another active exam"""
    data = json_body()

    for field in ["attendanceId", "targetExamId"]:
        if not data.get(field):
            return jsonify({"error": f"Missing required field: {field}"}), 400

    record = get_transfer_coordinator().transfer(
        data["attendanceId"],
        data["targetExamId"],
        actor_id=data.get("actorId"),
    )

    return jsonify({"success": True, "attendance": record.to_dict(include_student=True)}), 200


@attendance_bp.route("/add-student", methods=["POST"])
def add_student():
    """Add a student (by ID number) to an exam"""
    data = json_body()

    for field in ["examId", "studentIdNumber"]:
        if not data.get(field):
            return jsonify({"error": f"Missing required field: {field}"}), 400

    exam, record = get_attendance_ledger().add_student(
        data["examId"],
        str(data["studentIdNumber"]),
        actor_id=data.get("actorId"),
    )

    return jsonify({
        "success": True,
        "exam": exam.to_dict(),
        "attendance": record.to_dict(include_student=True) if record else None,
    }), 201
