"""
User Routes - identity directory maintenance
"""
from flask import Blueprint, request, jsonify
from exam_monitor.services.identity_directory import get_identity_directory
from exam_monitor.utils.request_utils import json_body

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.route("", methods=["POST"])
def create_user():
    data = json_body()

    for field in ["idNumber", "name", "role"]:
        if not data.get(field):
            return jsonify({"error": f"Missing required field: {field}"}), 400

    user = get_identity_directory().create_user(str(data["idNumber"]), data["name"], data["role"])

    return jsonify({"success": True, "user": user.to_dict()}), 201


@users_bp.route("", methods=["GET"])
def list_users():
    users = get_identity_directory().list_users(role=request.args.get("role"))
    return jsonify({"users": [u.to_dict() for u in users]}), 200
