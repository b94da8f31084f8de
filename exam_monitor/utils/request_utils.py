"""
Request helpers shared by the route blueprints
"""
from typing import Any, Dict
from flask import request
from exam_monitor.errors import ValidationError


def json_body() -> Dict[str, Any]:
    """
    The request's JSON object, or {} when there is no parseable body.

    Raises:
        ValidationError: when the body is JSON but not an object
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
