"""
Reporting Routes - exam incident reports
"""
from flask import Blueprint, request, jsonify
from exam_monitor.services.reporting import get_reporting_service
from exam_monitor.utils.request_utils import json_body

reporting_bp = Blueprint("reporting", __name__, url_prefix="/api/exams")


@reporting_bp.route("/<exam_id>/reporting", methods=["GET"])
def list_reports(exam_id):
    """All reports for an exam, newest first"""
    reports = get_reporting_service().list_reports(exam_id, student_id=request.args.get("studentId"))
    return jsonify({"success": True, "data": [r.to_dict() for r in reports]}), 200


@reporting_bp.route("/<exam_id>/reporting", methods=["POST"])
def create_general_report(exam_id):
    data = json_body()

    if not data.get("eventType"):
        return jsonify({"error": "Missing required field: eventType"}), 400

    report = get_reporting_service().create_report(
        exam_id,
        data["eventType"],
        description=data.get("description"),
        supervisor_id=data.get("userId"),
    )

    return jsonify({"message": "Report created successfully", "report": report.to_dict()}), 201


@reporting_bp.route("/<exam_id>/reporting/<student_id>", methods=["POST"])
def create_student_report(exam_id, student_id):
    data = json_body()

    if not data.get("eventType"):
        return jsonify({"error": "Missing required field: eventType"}), 400

    report = get_reporting_service().create_report(
        exam_id,
        data["eventType"],
        description=data.get("description"),
        supervisor_id=data.get("userId"),
        student_id=student_id,
    )

    return jsonify({"message": "Report created successfully", "report": report.to_dict()}), 201
