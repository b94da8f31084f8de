"""
Attendance Model - one student's presence record within one exam
"""
from exam_monitor import db
from exam_monitor.utils.time_utils import utcnow, isoformat
import uuid


def generate_uuid():
    return str(uuid.uuid4())


# Statuses a supervisor may set directly; "transferred" only comes from a transfer
SETTABLE_STATUSES = ("absent", "present", "finished")


class Attendance(db.Model):
    """Attendance record for a student in an exam instance"""
    __tablename__ = "attendance"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    exam_id = db.Column(db.String(36), db.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    # Seat/roll number, append-only per exam
    student_num_in_exam = db.Column(db.Integer, nullable=False)

    # Status: absent, present, finished, transferred
    attendance_status = db.Column(db.String(20), nullable=False, default="absent")
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)
    is_on_toilet = db.Column(db.Boolean, nullable=False, default=False)
    extra_time_minutes = db.Column(db.Integer, nullable=False, default=0)

    # Transfer chain: source keeps where it went, destination keeps where it came from
    transferred_at = db.Column(db.DateTime, nullable=True)
    transferred_to_exam_id = db.Column(
        db.String(36), db.ForeignKey("exams.id", ondelete="SET NULL"), nullable=True
    )
    transferred_from_attendance_id = db.Column(
        db.String(36), db.ForeignKey("attendance.id", ondelete="SET NULL"), nullable=True
    )

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint("exam_id", "student_num_in_exam", name="unique_exam_seat"),
        # One live record per (exam, student)
        db.Index(
            "uq_attendance_live_student",
            "exam_id",
            "student_id",
            unique=True,
            sqlite_where=db.text("attendance_status != 'transferred'"),
            postgresql_where=db.text("attendance_status != 'transferred'"),
        ),
        # At most one student out of the room per exam
        db.Index(
            "uq_attendance_one_on_toilet",
            "exam_id",
            unique=True,
            sqlite_where=db.text("is_on_toilet = 1"),
            postgresql_where=db.text("is_on_toilet"),
        ),
    )

    # Relationships
    student = db.relationship("User", foreign_keys=[student_id])

    def to_dict(self, include_student=False):
        result = {
            "id": self.id,
            "examId": self.exam_id,
            "studentId": self.student_id,
            "studentNumInExam": self.student_num_in_exam,
            "attendanceStatus": self.attendance_status,
            "startTime": isoformat(self.start_time),
            "endTime": isoformat(self.end_time),
            "isOnToilet": bool(self.is_on_toilet),
            "extraTimeMinutes": self.extra_time_minutes or 0,
            "transferredAt": isoformat(self.transferred_at),
            "transferredToExamId": self.transferred_to_exam_id,
            "transferredFromAttendanceId": self.transferred_from_attendance_id,
        }

        if include_student and self.student:
            result["student"] = {
                "id": self.student.id,
                "name": self.student.name,
                "idNumber": self.student.id_number,
            }

        return result
