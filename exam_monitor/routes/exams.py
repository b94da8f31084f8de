"""
Exam Routes - scheduling, lifecycle, closest exam lookup and lecturer calls
"""
from flask import Blueprint, request, jsonify
from exam_monitor.services.exam_catalog import get_exam_catalog
from exam_monitor.services.session_resolver import get_session_resolver
from exam_monitor.services.attendance_ledger import get_attendance_ledger
from exam_monitor.utils.request_utils import json_body

exams_bp = Blueprint("exams", __name__, url_prefix="/api/exams")


# ==================== CRUD ====================

@exams_bp.route("", methods=["POST"])
def create_exam():
    """Schedule a new exam"""
    data = json_body()

    exam = get_exam_catalog().create_exam(data, actor_id=data.get("actorId"))

    return jsonify({"success": True, "exam": exam.to_dict()}), 201


@exams_bp.route("", methods=["GET"])
def list_exams():
    """List exams, optionally by status"""
    exams = get_exam_catalog().list_exams(status=request.args.get("status"))
    return jsonify({"exams": [e.to_dict() for e in exams]}), 200


@exams_bp.route("/<exam_id>", methods=["GET"])
def get_exam(exam_id):
    exam = get_exam_catalog().get_exam(exam_id)
    return jsonify({"exam": exam.to_dict()}), 200


@exams_bp.route("/<exam_id>", methods=["PUT"])
def update_exam(exam_id):
    """Update exam details; absent fields keep their value"""
    data = json_body()

    exam = get_exam_catalog().update_exam(exam_id, data, actor_id=data.get("actorId"))

    return jsonify({"success": True, "exam": exam.to_dict()}), 200


@exams_bp.route("/<exam_id>", methods=["PATCH"])
def finish_exam(exam_id):
    """Mark an exam as finished"""
    data = json_body()

    exam = get_exam_catalog().finish_exam(exam_id, actor_id=data.get("actorId"))

    return jsonify({"success": True, "exam": exam.to_dict()}), 200


@exams_bp.route("/<exam_id>", methods=["DELETE"])
def delete_exam(exam_id):
    data = json_body()

    get_exam_catalog().delete_exam(exam_id, actor_id=data.get("actorId") or request.args.get("actorId"))

    return jsonify({"success": True, "message": "Exam deleted successfully"}), 200


# ==================== Lifecycle ====================

@exams_bp.route("/activate", methods=["POST"])
def activate_exam():
    """Start an exam and create its attendance records"""
    data = json_body()

    exam_id = data.get("examId")
    if not exam_id:
        return jsonify({"error": "Missing required field: examId"}), 400

    exam, records = get_exam_catalog().activate_exam(exam_id, actor_id=data.get("actorId"))

    return jsonify({
        "exam": exam.to_dict(),
        "attendanceRecords": [r.to_dict(include_student=True) for r in records],
    }), 200


@exams_bp.route("/closest", methods=["GET"])
def closest_exam():
    """The exam a supervisor should be looking at right now"""
    supervisor_id = request.args.get("supervisorId")
    if not supervisor_id:
        return jsonify({"error": "Missing required parameter: supervisorId"}), 400

    exam = get_session_resolver().resolve_for_supervisor(supervisor_id)

    return jsonify({"closestExam": exam.to_dict() if exam else None}), 200


@exams_bp.route("/<exam_id>/addTime", methods=["PATCH"])
def add_exam_time(exam_id):
    """Extend the exam duration for everyone"""
    data = json_body()

    if "minutesToAdd" not in data:
        return jsonify({"error": "Missing required field: minutesToAdd"}), 400

    exam = get_exam_catalog().add_exam_time(exam_id, data["minutesToAdd"], actor_id=data.get("actorId"))

    return jsonify({"success": True, "exam": exam.to_dict()}), 200


# ==================== Lecturer Call ====================

@exams_bp.route("/<exam_id>/call-lecturer", methods=["POST"])
def call_lecturer(exam_id):
    data = json_body()

    lecturer_id = data.get("lecturerId")
    if not lecturer_id:
        return jsonify({"error": "Missing required field: lecturerId"}), 400

    exam = get_exam_catalog().call_lecturer(exam_id, lecturer_id, actor_id=data.get("actorId"))

    return jsonify({"success": True, "exam": exam.to_dict()}), 200


@exams_bp.route("/<exam_id>/call-lecturer", methods=["DELETE"])
def cancel_lecturer_call(exam_id):
    data = json_body()

    exam = get_exam_catalog().cancel_lecturer_call(exam_id, actor_id=data.get("actorId"))

    return jsonify({"success": True, "exam": exam.to_dict()}), 200


# ==================== Queries ====================

@exams_bp.route("/student", methods=["GET"])
def exams_for_student():
    student_id = request.args.get("studentId")
    if not student_id:
        return jsonify({"error": "Missing required parameter: studentId"}), 400

    exams = get_exam_catalog().list_exams_for_student(student_id)
    return jsonify({"exams": [e.to_dict() for e in exams]}), 200


@exams_bp.route("/lecturer", methods=["GET"])
def exams_for_lecturer():
    lecturer_id = request.args.get("lecturerId")
    if not lecturer_id:
        return jsonify({"error": "Missing required parameter: lecturerId"}), 400

    exams = get_exam_catalog().list_exams_for_lecturer(lecturer_id)
    return jsonify({"exams": [e.to_dict() for e in exams]}), 200


@exams_bp.route("/<exam_id>/related-active", methods=["GET"])
def related_active_exams(exam_id):
    """Active exams of the same course, i.e. where a student can be transferred"""
    exams = get_exam_catalog().list_related_active_exams(exam_id)
    return jsonify({"exams": [e.to_dict() for e in exams]}), 200


@exams_bp.route("/<exam_id>/attendance", methods=["GET"])
def exam_attendance(exam_id):
    records = get_attendance_ledger().list_for_exam(exam_id)
    return jsonify({"attendanceRecords": [r.to_dict(include_student=True) for r in records]}), 200
