"""
Admin Routes - audit log monitoring
"""
from flask import Blueprint, request, jsonify
from exam_monitor.services.audit_sink import get_audit_sink

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/audit-logs", methods=["GET"])
def get_audit_logs():
    """Paginated audit events, newest first"""
    try:
        page = int(request.args.get("page", 1))
        limit = int(request.args.get("limit", 50))
    except ValueError:
        return jsonify({"error": "page and limit must be integers"}), 400

    result = get_audit_sink().list_logs(page=page, limit=limit, action_type=request.args.get("actionType"))

    return jsonify({"success": True, **result}), 200
