"""
Attendance Ledger - per-student attendance records within an exam

Handles:
- Idempotent activation batch (one absent record per roster student)
- Status changes with their timestamp side effects
- Toilet exclusivity: at most one student out of the room per exam
- Per-student extra time via SQL-level increments
- Late addition of a student to a running exam
"""
import logging
from typing import List, Optional
from sqlalchemy import update, select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import aliased
from exam_monitor import db
from exam_monitor.errors import ConflictError, NotFoundError, StateError, ValidationError
from exam_monitor.models.attendance import Attendance, SETTABLE_STATUSES
from exam_monitor.models.exam import Exam, ExamMember
from exam_monitor.models.audit_log import AuditActionType
from exam_monitor.services.audit_sink import get_audit_sink
from exam_monitor.services.identity_directory import get_identity_directory
from exam_monitor.utils.time_utils import utcnow
from exam_monitor.validators.exam_validator import parse_positive_minutes

logger = logging.getLogger(__name__)

SEAT_ALLOCATION_ATTEMPTS = 3


class AttendanceLedger:
    """
    Attendance record lifecycle.

    Usage:
        ledger = get_attendance_ledger()
        records = ledger.activate(exam_id)
        ledger.set_status(records[0].id, "present")
        ledger.toggle_toilet(records[0].id)
    """

    def __init__(self):
        self.audit = get_audit_sink()
        self.directory = get_identity_directory()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_record(self, attendance_id: str) -> Attendance:
        record = db.session.get(Attendance, attendance_id) if attendance_id else None
        if not record:
            raise NotFoundError("Attendance record not found", {"attendanceId": attendance_id})
        return record

    def list_for_exam(self, exam_id: str) -> List[Attendance]:
        self._get_exam(exam_id)
        return self._records(exam_id)

    def live_record(self, exam_id: str, student_id: str) -> Optional[Attendance]:
        return Attendance.query.filter(
            Attendance.exam_id == exam_id,
            Attendance.student_id == student_id,
            Attendance.attendance_status != "transferred",
        ).first()

    def next_seat(self, exam_id: str) -> int:
        """Next ordinal for the exam. Seats are never reused."""
        current = db.session.execute(
            select(func.max(Attendance.student_num_in_exam)).where(Attendance.exam_id == exam_id)
        ).scalar()
        return (current or 0) + 1

    # =========================================================================
    # Activation
    # =========================================================================

    def activate(self, exam_id: str) -> List[Attendance]:
        """
        Materialize the exam's attendance records.

        Existing records are returned unchanged. When two activations race,
        the loser hits the (exam, seat) unique constraint and returns the
        winner's records.
        """
        exam = self._get_exam(exam_id)

        existing = self._records(exam.id)
        if existing:
            logger.info(f"[Ledger] Exam {exam.id} already has {len(existing)} records")
            return existing

        records = [
            Attendance(
                exam_id=exam.id,
                student_id=student_id,
                student_num_in_exam=seat,
                attendance_status="absent",
                is_on_toilet=False,
                extra_time_minutes=0,
            )
            for seat, student_id in enumerate(exam.student_ids, start=1)
        ]
        if not records:
            return []

        try:
            db.session.add_all(records)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.warning(f"[Ledger] Concurrent activation of exam {exam_id}, returning existing records")
            return self._records(exam_id)
        except SQLAlchemyError:
            db.session.rollback()
            raise

        logger.info(f"[Ledger] Created {len(records)} attendance records for exam {exam.id}")
        return self._records(exam.id)

    # =========================================================================
    # Record operations
    # =========================================================================

    def set_status(self, attendance_id: str, status: str) -> Attendance:
        """
        Move a record to absent, present or finished.

        present  -> start_time = now, back in the room
        absent   -> start/end cleared, back in the room
        finished -> end_time = now, back in the room
        """
        if status not in SETTABLE_STATUSES:
            raise ValidationError(
                f"Invalid status: {status}. Allowed: {', '.join(SETTABLE_STATUSES)}",
                {"status": status},
            )

        record = self.get_record(attendance_id)
        if record.attendance_status == "transferred":
            raise StateError("Record was transferred and is closed", {"attendanceId": record.id})

        now = utcnow()
        values = {"attendance_status": status, "is_on_toilet": False}
        if status == "present":
            values["start_time"] = now
        elif status == "absent":
            values["start_time"] = None
            values["end_time"] = None
        else:
            values["end_time"] = now

        result = self._execute(
            update(Attendance)
            .where(Attendance.id == record.id, Attendance.attendance_status != "transferred")
            .values(**values)
        )
        if result.rowcount != 1:
            raise StateError("Record was transferred and is closed", {"attendanceId": record.id})

        logger.info(f"[Ledger] Record {record.id} -> {status}")
        return self.get_record(attendance_id)

    def toggle_toilet(self, attendance_id: str, desired: Optional[bool] = None) -> Attendance:
        """
        Flip (or explicitly set) the out-of-room flag.

        Going out is a single conditional UPDATE that only matches when no
        sibling record in the same exam is out, so two concurrent requests
        cannot both succeed.

        Raises:
            StateError: going out while not present
            ConflictError: another student in this exam is already out
        """
        record = self.get_record(attendance_id)
        if desired is None:
            desired = not record.is_on_toilet
        if bool(record.is_on_toilet) == desired:
            return record

        if not desired:
            self._execute(
                update(Attendance).where(Attendance.id == record.id).values(is_on_toilet=False)
            )
            return self.get_record(attendance_id)

        if record.attendance_status != "present":
            raise StateError(
                "Only a present student can leave the room",
                {"attendanceId": record.id, "attendanceStatus": record.attendance_status},
            )

        exam_id = record.exam_id
        sibling = aliased(Attendance)
        someone_out = (
            select(sibling.id)
            .where(sibling.exam_id == exam_id, sibling.is_on_toilet.is_(True), sibling.id != record.id)
            .exists()
        )

        try:
            result = self._execute(
                update(Attendance)
                .where(
                    Attendance.id == record.id,
                    Attendance.attendance_status == "present",
                    ~someone_out,
                )
                .values(is_on_toilet=True)
            )
            matched = result.rowcount == 1
        except IntegrityError:
            # The partial unique index caught a concurrent exit
            matched = False

        if not matched:
            record = self.get_record(attendance_id)
            if record.is_on_toilet:
                return record
            if record.attendance_status != "present":
                raise StateError(
                    "Only a present student can leave the room",
                    {"attendanceId": record.id, "attendanceStatus": record.attendance_status},
                )
            raise ConflictError(
                "Another student is already out of the room",
                {"occupiedBy": self._occupant(exam_id)},
            )

        logger.info(f"[Ledger] Record {record.id} left the room")
        return self.get_record(attendance_id)

    def add_extra_time(self, attendance_id: str, minutes) -> Attendance:
        minutes = parse_positive_minutes(minutes)
        record = self.get_record(attendance_id)
        if record.attendance_status == "transferred":
            raise StateError("Record was transferred and is closed", {"attendanceId": record.id})

        result = self._execute(
            update(Attendance)
            .where(Attendance.id == record.id, Attendance.attendance_status != "transferred")
            .values(extra_time_minutes=func.coalesce(Attendance.extra_time_minutes, 0) + minutes)
        )
        if result.rowcount != 1:
            raise StateError("Record was transferred and is closed", {"attendanceId": record.id})

        return self.get_record(attendance_id)

    def add_student(self, exam_id: str, student_id_number: str, actor_id: Optional[str] = None):
        """
        Add a student to an exam's roster and, once the exam has a ledger,
        give them the next seat.

        Returns:
            (Exam, Attendance or None): None while the exam is still scheduled
        """
        exam = self._get_exam(exam_id)
        if exam.status == "finished":
            raise StateError("Cannot add a student to a finished exam", {"examId": exam.id})

        student = self.directory.resolve_one(student_id_number, "student")
        if self.live_record(exam.id, student.id):
            raise ConflictError("Student is already in this exam", {"studentId": student.id})

        if student.id not in exam.student_ids:
            exam.members.append(
                ExamMember(user_id=student.id, role="student", position=len(exam.student_ids))
            )
            try:
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                raise

        record = None
        if exam.status == "active":
            record = self._append_record(exam.id, student.id)

        self.audit.emit(
            AuditActionType.STUDENT_ADDED,
            f"Student {student.name} added to exam {exam.course_name}",
            user_id=actor_id,
            exam_id=exam.id,
            details={"studentId": student.id, "seat": record.student_num_in_exam if record else None},
        )
        return self._get_exam(exam.id), record

    # =========================================================================
    # Internals
    # =========================================================================

    def _append_record(self, exam_id: str, student_id: str) -> Attendance:
        for _ in range(SEAT_ALLOCATION_ATTEMPTS):
            record = Attendance(
                exam_id=exam_id,
                student_id=student_id,
                student_num_in_exam=self.next_seat(exam_id),
                attendance_status="absent",
            )
            try:
                db.session.add(record)
                db.session.commit()
                return record
            except IntegrityError:
                db.session.rollback()
                if self.live_record(exam_id, student_id):
                    raise ConflictError("Student is already in this exam", {"studentId": student_id})
            except SQLAlchemyError:
                db.session.rollback()
                raise

        raise ConflictError("Could not allocate a seat, please retry", {"examId": exam_id})

    def _occupant(self, exam_id: str) -> Optional[dict]:
        out = Attendance.query.filter(Attendance.exam_id == exam_id, Attendance.is_on_toilet.is_(True)).first()
        if not out:
            return None
        return {
            "attendanceId": out.id,
            "studentId": out.student_id,
            "studentName": out.student.name if out.student else None,
            "studentNumInExam": out.student_num_in_exam,
        }

    def _execute(self, statement):
        """Run a single UPDATE and commit it"""
        try:
            result = db.session.execute(statement.execution_options(synchronize_session=False))
            db.session.commit()
            return result
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def _get_exam(self, exam_id: str) -> Exam:
        exam = db.session.get(Exam, exam_id) if exam_id else None
        if not exam:
            raise NotFoundError("Exam not found", {"examId": exam_id})
        return exam

    def _records(self, exam_id: str) -> List[Attendance]:
        return (
            Attendance.query.filter_by(exam_id=exam_id)
            .order_by(Attendance.student_num_in_exam.asc())
            .all()
        )


_ledger: Optional[AttendanceLedger] = None


def get_attendance_ledger() -> AttendanceLedger:
    """Get or create attendance ledger singleton"""
    global _ledger
    if _ledger is None:
        _ledger = AttendanceLedger()
    return _ledger
