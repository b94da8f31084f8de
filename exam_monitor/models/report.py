"""
Report Model - incidents and events logged by supervisors during an exam
"""
from exam_monitor import db
from exam_monitor.utils.time_utils import utcnow, isoformat
import uuid


def generate_uuid():
    return str(uuid.uuid4())


class Report(db.Model):
    """General exam report, or one tied to a specific student"""
    __tablename__ = "reports"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    exam_id = db.Column(db.String(36), db.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    supervisor_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)

    event_type = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    # Relationships
    student = db.relationship("User", foreign_keys=[student_id])
    supervisor = db.relationship("User", foreign_keys=[supervisor_id])

    def to_dict(self):
        return {
            "id": self.id,
            "examId": self.exam_id,
            "studentId": self.student_id,
            "student": {"name": self.student.name, "idNumber": self.student.id_number} if self.student else None,
            "supervisorId": self.supervisor_id,
            "supervisor": {"name": self.supervisor.name} if self.supervisor else None,
            "eventType": self.event_type,
            "description": self.description or "",
            "createdAt": isoformat(self.created_at),
        }
