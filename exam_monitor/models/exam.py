"""
Exam Models - proctoring sessions and their staff/student roster
"""
from exam_monitor import db
from exam_monitor.utils.time_utils import utcnow, format_date, format_time, isoformat
import uuid


def generate_uuid():
    return str(uuid.uuid4())


EXAM_STATUSES = ("scheduled", "active", "finished")
# Exams in these states still hold their room
ROOM_HOLDING_STATUSES = ("scheduled", "active")


class Exam(db.Model):
    """One scheduled proctoring session in a room"""
    __tablename__ = "exams"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    course_name = db.Column(db.String(255), nullable=False)
    course_code = db.Column(db.Integer, nullable=False, index=True)

    # Wall-clock schedule in the reference timezone
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    location = db.Column(db.String(100), nullable=False, index=True)

    # Set from start/end at creation, then only moved by time extensions
    duration_minutes = db.Column(db.Integer, nullable=True)

    rules = db.Column(db.JSON, default=list)  # [{id, label, icon, allowed}]
    checklist = db.Column(db.JSON, default=list)  # [{id, description, isDone}]

    # Status: scheduled, active, finished
    status = db.Column(db.String(20), nullable=False, default="scheduled", index=True)
    actual_start_time = db.Column(db.DateTime, nullable=True)

    # "Please come to the room" flag, current value only
    called_lecturer_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    lecturer_called_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    members = db.relationship(
        "ExamMember",
        backref="exam",
        cascade="all, delete-orphan",
        order_by="ExamMember.position",
    )

    def member_ids(self, role):
        return [m.user_id for m in self.members if m.role == role]

    @property
    def lecturer_ids(self):
        return self.member_ids("lecturer")

    @property
    def supervisor_ids(self):
        return self.member_ids("supervisor")

    @property
    def student_ids(self):
        return self.member_ids("student")

    def set_members(self, role, user_ids):
        """Replace the roster for one role, keeping the given order"""
        existing = {m.user_id: m for m in self.members if m.role == role}
        kept = []
        for user_id in dict.fromkeys(user_ids):
            member = existing.pop(user_id, None) or ExamMember(user_id=user_id, role=role)
            member.position = len(kept)
            kept.append(member)
        # Members left in `existing` are orphaned and deleted on flush
        self.members = [m for m in self.members if m.role != role] + kept

    def to_dict(self):
        return {
            "id": self.id,
            "courseName": self.course_name,
            "courseCode": self.course_code,
            "date": format_date(self.date),
            "startTime": format_time(self.start_time),
            "endTime": format_time(self.end_time),
            "location": self.location,
            "durationMinutes": self.duration_minutes,
            "lecturers": self.lecturer_ids,
            "supervisors": self.supervisor_ids,
            "students": self.student_ids,
            "rules": self.rules or [],
            "checklist": self.checklist or [],
            "status": self.status,
            "actualStartTime": isoformat(self.actual_start_time),
            "calledLecturer": self.called_lecturer_id,
            "lecturerCalledAt": isoformat(self.lecturer_called_at),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class ExamMember(db.Model):
    """Join table: lecturers, supervisors and students assigned to an exam"""
    __tablename__ = "exam_members"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    exam_id = db.Column(db.String(36), db.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False)  # lecturer, supervisor, student
    position = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint("exam_id", "user_id", "role", name="unique_exam_member_role"),
        db.Index("ix_exam_members_user_role", "user_id", "role"),
    )
