"""
Error taxonomy for the exam monitoring core.

Services raise these; the application factory registers a single handler
that renders them as JSON with the matching HTTP status.
"""
from typing import Any, Dict, Optional


class ExamMonitorError(Exception):
    """Base class for errors surfaced to API callers"""
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.message}
        payload.update(self.details)
        return payload


class ValidationError(ExamMonitorError):
    """Bad or missing input, raised before any write"""
    status_code = 400


class NotFoundError(ExamMonitorError):
    """Unknown exam, attendance record or identity"""
    status_code = 404


class ConflictError(ExamMonitorError):
    """Room/time overlap, occupied toilet, duplicate record or double transfer"""
    status_code = 409


class StateError(ExamMonitorError):
    """Illegal lifecycle transition"""
    status_code = 409
