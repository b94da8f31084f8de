"""
Message Routes - per-exam staff messages and read receipts
"""
from flask import Blueprint, jsonify
from exam_monitor.services.messaging import get_messaging_service
from exam_monitor.utils.request_utils import json_body

messages_bp = Blueprint("messages", __name__, url_prefix="/api/exams")


@messages_bp.route("/<exam_id>/messages", methods=["GET"])
def list_messages(exam_id):
    """Exam messages, oldest first"""
    messages = get_messaging_service().list_messages(exam_id)
    return jsonify({"success": True, "messages": [m.to_dict() for m in messages]}), 200


@messages_bp.route("/<exam_id>/messages", methods=["POST"])
def send_message(exam_id):
    data = json_body()

    for field in ["senderId", "message"]:
        if not data.get(field):
            return jsonify({"error": f"Missing required field: {field}"}), 400

    message = get_messaging_service().send_message(
        exam_id,
        data["senderId"],
        data["message"],
        message_type=data.get("messageType"),
    )

    return jsonify({"success": True, "message": message.to_dict()}), 201


@messages_bp.route("/<exam_id>/messages/<message_id>/read", methods=["PATCH", "POST"])
def mark_message_read(exam_id, message_id):
    data = json_body()

    if not data.get("userId"):
        return jsonify({"error": "Missing required field: userId"}), 400

    message = get_messaging_service().mark_read(exam_id, message_id, data["userId"])

    return jsonify({"success": True, "message": "Message marked as read", "data": message.to_dict()}), 200
