"""
Audit Sink - fire-and-forget emission of state-changing actions

Events are written after the primary change has committed. A failure here is
logged and swallowed: auditing must never roll back or fail the operation
that triggered it.
"""
import logging
from typing import Optional, Dict, Any
from sqlalchemy.exc import SQLAlchemyError
from exam_monitor import db
from exam_monitor.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditSink:
    """
    Writes audit events to the audit_logs table.

    Usage:
        audit = get_audit_sink()
        audit.emit(AuditActionType.EXAM_FINISHED, "Exam finished", user_id=actor_id, exam_id=exam.id)
    """

    def emit(
        self,
        action_type: str,
        description: str,
        user_id: Optional[str] = None,
        exam_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Record an event. Returns False instead of raising on failure."""
        try:
            entry = AuditLog(
                action_type=action_type,
                description=description,
                user_id=user_id,
                exam_id=exam_id,
                details=details or {},
            )
            db.session.add(entry)
            db.session.commit()
            logger.info(f"[Audit] {action_type} exam={exam_id} user={user_id}")
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"[Audit] Failed to record {action_type}: {e}")
            return False

    def list_logs(self, page: int = 1, limit: int = 50, action_type: Optional[str] = None) -> Dict[str, Any]:
        """Newest-first page of audit events"""
        page = max(1, page)
        limit = max(1, min(limit, 200))

        query = AuditLog.query
        if action_type and action_type != "ALL":
            query = query.filter_by(action_type=action_type)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return {
            "logs": [log.to_dict() for log in logs],
            "pagination": {
                "currentPage": page,
                "totalPages": (total + limit - 1) // limit,
                "totalLogs": total,
                "logsPerPage": limit,
            },
        }


# ============================================================================
# Singleton
# ============================================================================

_audit_sink: Optional[AuditSink] = None


def get_audit_sink() -> AuditSink:
    """Get or create audit sink singleton"""
    global _audit_sink
    if _audit_sink is None:
        _audit_sink = AuditSink()
    return _audit_sink
