"""
AuditLog Model - durable record of state-changing actions for admin monitoring
"""
from exam_monitor import db
from exam_monitor.utils.time_utils import utcnow, isoformat
import uuid


def generate_uuid():
    return str(uuid.uuid4())


class AuditActionType:
    """Action type constants written by the audit sink"""
    EXAM_CREATED = "EXAM_CREATED"
    EXAM_UPDATED = "EXAM_UPDATED"
    EXAM_DELETED = "EXAM_DELETED"
    EXAM_STARTED = "EXAM_STARTED"
    EXAM_FINISHED = "EXAM_FINISHED"
    EXAM_TIME_ADDED = "EXAM_TIME_ADDED"
    LECTURER_CALLED = "LECTURER_CALLED"
    LECTURER_CALL_CANCELLED = "LECTURER_CALL_CANCELLED"
    STUDENT_ADDED = "STUDENT_ADDED"
    STUDENT_TRANSFERRED = "STUDENT_TRANSFERRED"
    GENERAL_REPORT = "GENERAL_REPORT"
    STUDENT_REPORT = "STUDENT_REPORT"
    MESSAGE_SENT = "MESSAGE_SENT"


class AuditLog(db.Model):
    """One audit event"""
    __tablename__ = "audit_logs"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    action_type = db.Column(db.String(50), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)

    # No foreign keys: the log outlives the exams and users it mentions
    user_id = db.Column(db.String(36), nullable=True, index=True)
    exam_id = db.Column(db.String(36), nullable=True)

    details = db.Column(db.JSON, default=dict)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "actionType": self.action_type,
            "description": self.description,
            "userId": self.user_id,
            "examId": self.exam_id,
            "details": self.details or {},
            "createdAt": isoformat(self.created_at),
        }
