"""
Exam Catalog - exam scheduling, room/time exclusivity and lifecycle

Owns Exam entities:
- create/update with the room/time non-overlap check done under a room lock
- delete with cascade of the exam's attendance records, reports and messages
- lifecycle transitions scheduled -> active -> finished
- exam-level time extension and the "call lecturer" flag
"""
import logging
from datetime import date, time
from typing import Dict, List, Optional, Tuple
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from exam_monitor import db
from exam_monitor.errors import ConflictError, NotFoundError, StateError, ValidationError
from exam_monitor.models.exam import Exam, ExamMember, EXAM_STATUSES, ROOM_HOLDING_STATUSES
from exam_monitor.models.attendance import Attendance
from exam_monitor.models.report import Report
from exam_monitor.models.communication import Communication, MessageRead
from exam_monitor.models.audit_log import AuditActionType
from exam_monitor.services.attendance_ledger import get_attendance_ledger
from exam_monitor.services.audit_sink import get_audit_sink
from exam_monitor.services.identity_directory import get_identity_directory
from exam_monitor.services.room_lock import location_key, room_day_lock
from exam_monitor.utils.time_utils import utcnow, format_date, format_time
from exam_monitor.validators.exam_validator import ExamDescriptor, get_exam_validator, parse_positive_minutes

logger = logging.getLogger(__name__)


class ExamCatalog:
    """
    Exam CRUD and lifecycle.

    Usage:
        catalog = get_exam_catalog()
        exam = catalog.create_exam(payload, actor_id=admin_id)
        exam, records = catalog.activate_exam(exam.id, actor_id=supervisor_id)
        catalog.finish_exam(exam.id, actor_id=supervisor_id)
    """

    def __init__(self):
        self.validator = get_exam_validator()
        self.directory = get_identity_directory()
        self.audit = get_audit_sink()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_exam(self, exam_id: str) -> Exam:
        exam = db.session.get(Exam, exam_id) if exam_id else None
        if not exam:
            raise NotFoundError("Exam not found", {"examId": exam_id})
        return exam

    def list_exams(self, status: Optional[str] = None) -> List[Exam]:
        query = Exam.query
        if status:
            if status not in EXAM_STATUSES:
                raise ValidationError(f"Invalid status: {status}", {"allowed": list(EXAM_STATUSES)})
            query = query.filter_by(status=status)
        return query.order_by(Exam.date.asc(), Exam.start_time.asc()).all()

    def list_exams_for_member(self, user_id: str, role: str) -> List[Exam]:
        return (
            Exam.query.join(ExamMember)
            .filter(ExamMember.user_id == user_id, ExamMember.role == role)
            .order_by(Exam.date.asc(), Exam.start_time.asc())
            .all()
        )

    def list_exams_for_student(self, student_id: str) -> List[Exam]:
        return self.list_exams_for_member(student_id, "student")

    def list_exams_for_lecturer(self, lecturer_id: str) -> List[Exam]:
        return self.list_exams_for_member(lecturer_id, "lecturer")

    def list_related_active_exams(self, exam_id: str) -> List[Exam]:
        """Other active exams of the same course: the possible transfer targets"""
        exam = self.get_exam(exam_id)
        return (
            Exam.query.filter(
                Exam.course_code == exam.course_code,
                Exam.status == "active",
                Exam.id != exam.id,
            )
            .order_by(Exam.location.asc())
            .all()
        )

    def find_conflicts(
        self,
        location: str,
        day: date,
        start: time,
        end: time,
        exclude_id: Optional[str] = None,
    ) -> List[Exam]:
        """Room-holding exams at the same place and day whose [start, end) overlaps"""
        query = Exam.query.filter(
            func.lower(Exam.location) == location_key(location),
            Exam.date == day,
            Exam.status.in_(ROOM_HOLDING_STATUSES),
            Exam.start_time < end,
            Exam.end_time > start,
        )
        if exclude_id:
            query = query.filter(Exam.id != exclude_id)
        return query.order_by(Exam.start_time.asc()).all()

    # =========================================================================
    # Create / Update / Delete
    # =========================================================================

    def create_exam(self, payload: Dict, actor_id: Optional[str] = None) -> Exam:
        desc = self.validator.validate(payload, partial=False)
        duration = self.validator.validate_time_range(desc.start_time, desc.end_time)
        roster = self._resolve_roster(desc)

        exam = Exam(
            course_name=desc.course_name,
            course_code=desc.course_code,
            date=desc.date,
            start_time=desc.start_time,
            end_time=desc.end_time,
            location=desc.location,
            duration_minutes=duration,
            rules=desc.rules,
            checklist=desc.checklist,
            status="scheduled",
        )
        for role, user_ids in roster.items():
            exam.set_members(role, user_ids)

        self._save_checked(exam, exclude_id=None)
        logger.info(f"[Catalog] Created exam {exam.id} ({exam.course_name}) at {exam.location}")

        self.audit.emit(
            AuditActionType.EXAM_CREATED,
            f"Exam {exam.course_name} created",
            user_id=actor_id,
            exam_id=exam.id,
            details={"location": exam.location, "date": format_date(exam.date)},
        )
        return exam

    def update_exam(self, exam_id: str, payload: Dict, actor_id: Optional[str] = None) -> Exam:
        exam = self.get_exam(exam_id)
        desc = self.validator.validate(payload, partial=True)

        start = desc.start_time if desc.has("start_time") else exam.start_time
        end = desc.end_time if desc.has("end_time") else exam.end_time
        duration = self.validator.validate_time_range(start, end)
        times_changed = start != exam.start_time or end != exam.end_time
        roster = self._resolve_roster(desc)

        for name in ("course_name", "course_code", "date", "start_time", "end_time", "location", "rules", "checklist"):
            if desc.has(name):
                setattr(exam, name, getattr(desc, name))
        # Duration follows the schedule only when the schedule itself moves
        if times_changed and duration is not None:
            exam.duration_minutes = duration
        for role, user_ids in roster.items():
            exam.set_members(role, user_ids)

        self._save_checked(exam, exclude_id=exam.id)
        logger.info(f"[Catalog] Updated exam {exam.id}")

        self.audit.emit(
            AuditActionType.EXAM_UPDATED,
            f"Exam {exam.course_name} updated",
            user_id=actor_id,
            exam_id=exam.id,
        )
        return exam

    def delete_exam(self, exam_id: str, actor_id: Optional[str] = None) -> None:
        """Remove an exam with its roster, attendance records, reports and messages"""
        exam = self.get_exam(exam_id)
        course_name = exam.course_name

        try:
            record_ids = [r.id for r in db.session.query(Attendance.id).filter(Attendance.exam_id == exam.id)]

            # Detach transfer links held by records in other exams
            db.session.execute(
                update(Attendance)
                .where(Attendance.transferred_to_exam_id == exam.id)
                .values(transferred_to_exam_id=None)
                .execution_options(synchronize_session=False)
            )
            if record_ids:
                db.session.execute(
                    update(Attendance)
                    .where(Attendance.transferred_from_attendance_id.in_(record_ids))
                    .values(transferred_from_attendance_id=None)
                    .execution_options(synchronize_session=False)
                )

            Attendance.query.filter(Attendance.exam_id == exam.id).delete(synchronize_session=False)
            Report.query.filter(Report.exam_id == exam.id).delete(synchronize_session=False)
            message_ids = select(Communication.id).where(Communication.exam_id == exam.id)
            MessageRead.query.filter(MessageRead.communication_id.in_(message_ids)).delete(synchronize_session=False)
            Communication.query.filter(Communication.exam_id == exam.id).delete(synchronize_session=False)
            db.session.delete(exam)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        logger.info(f"[Catalog] Deleted exam {exam_id} and {len(record_ids)} attendance records")
        self.audit.emit(
            AuditActionType.EXAM_DELETED,
            f"Exam {course_name} deleted",
            user_id=actor_id,
            exam_id=exam_id,
            details={"attendanceRecords": len(record_ids)},
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def activate_exam(self, exam_id: str, actor_id: Optional[str] = None) -> Tuple[Exam, List[Attendance]]:
        """
        scheduled -> active, then materialize the attendance ledger.

        Re-activating an active exam is a no-op that returns current state,
        so client retries are safe. A finished exam cannot be reopened.
        """
        exam = self.get_exam(exam_id)
        if exam.status == "finished":
            raise StateError("Exam already finished", {"examId": exam.id, "status": exam.status})

        transitioned = False
        if exam.status == "scheduled":
            try:
                result = db.session.execute(
                    update(Exam)
                    .where(Exam.id == exam.id, Exam.status == "scheduled")
                    .values(status="active", actual_start_time=utcnow())
                    .execution_options(synchronize_session=False)
                )
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                raise
            transitioned = result.rowcount == 1

        records = get_attendance_ledger().activate(exam.id)
        exam = self.get_exam(exam_id)

        if transitioned:
            logger.info(f"[Catalog] Exam {exam.id} activated with {len(records)} students")
            self.audit.emit(
                AuditActionType.EXAM_STARTED,
                f"Exam {exam.course_name} started in {exam.location}",
                user_id=actor_id,
                exam_id=exam.id,
                details={"students": len(records)},
            )
        return exam, records

    def finish_exam(self, exam_id: str, actor_id: Optional[str] = None) -> Exam:
        """Mark an exam finished. Finishing a finished exam is a no-op."""
        exam = self.get_exam(exam_id)
        if exam.status == "finished":
            return exam

        previous = exam.status
        exam.status = "finished"
        self._commit()

        logger.info(f"[Catalog] Exam {exam.id} finished (was {previous})")
        self.audit.emit(
            AuditActionType.EXAM_FINISHED,
            f"Exam {exam.course_name} finished",
            user_id=actor_id,
            exam_id=exam.id,
            details={"previousStatus": previous},
        )
        return exam

    def add_exam_time(self, exam_id: str, minutes, actor_id: Optional[str] = None) -> Exam:
        """Extend the whole exam; atomic increment of duration_minutes"""
        minutes = parse_positive_minutes(minutes)
        exam = self.get_exam(exam_id)
        if exam.status == "finished":
            raise StateError("Cannot add time to a finished exam", {"examId": exam.id})

        try:
            db.session.execute(
                update(Exam)
                .where(Exam.id == exam.id)
                .values(duration_minutes=func.coalesce(Exam.duration_minutes, 0) + minutes)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        exam = self.get_exam(exam_id)
        self.audit.emit(
            AuditActionType.EXAM_TIME_ADDED,
            f"Added {minutes} minutes to exam {exam.course_name}",
            user_id=actor_id,
            exam_id=exam.id,
            details={"minutes": minutes, "durationMinutes": exam.duration_minutes},
        )
        return exam

    def call_lecturer(self, exam_id: str, lecturer_id: str, actor_id: Optional[str] = None) -> Exam:
        """Flag one of the exam's lecturers as requested in the room"""
        exam = self.get_exam(exam_id)
        lecturer = self.directory.get_user(lecturer_id)
        if not lecturer or lecturer.role != "lecturer":
            raise ValidationError("Lecturer not found or invalid role", {"lecturerId": lecturer_id})
        if lecturer.id not in exam.lecturer_ids:
            raise ValidationError("This lecturer is not assigned to this exam", {"lecturerId": lecturer_id})

        exam.called_lecturer_id = lecturer.id
        exam.lecturer_called_at = utcnow()
        self._commit()

        self.audit.emit(
            AuditActionType.LECTURER_CALLED,
            f"Lecturer {lecturer.name} called to {exam.location}",
            user_id=actor_id,
            exam_id=exam.id,
            details={"lecturerId": lecturer.id},
        )
        return exam

    def cancel_lecturer_call(self, exam_id: str, actor_id: Optional[str] = None) -> Exam:
        exam = self.get_exam(exam_id)
        if exam.called_lecturer_id is None:
            return exam

        exam.called_lecturer_id = None
        exam.lecturer_called_at = None
        self._commit()

        self.audit.emit(
            AuditActionType.LECTURER_CALL_CANCELLED,
            "Lecturer call cancelled",
            user_id=actor_id,
            exam_id=exam.id,
        )
        return exam

    # =========================================================================
    # Internals
    # =========================================================================

    def _resolve_roster(self, desc: ExamDescriptor) -> Dict[str, List[str]]:
        """
        Map roster ID numbers to user IDs, reporting every unresolved
        identifier across all roles in one NotFoundError.
        """
        resolved = {}
        missing = {}
        for role, id_numbers in desc.roster.items():
            try:
                resolved[role] = [u.id for u in self.directory.resolve(id_numbers, role)]
            except NotFoundError as e:
                missing[role] = e.details["missing"]

        if missing:
            listed = "; ".join(f"{role}: {', '.join(nums)}" for role, nums in missing.items())
            raise NotFoundError(f"Unknown ID numbers ({listed})", {"missing": missing})
        return resolved

    def _save_checked(self, exam: Exam, exclude_id: Optional[str]) -> None:
        """Persist `exam`, enforcing room/time exclusivity atomically with the write"""
        if exam.status not in ROOM_HOLDING_STATUSES:
            db.session.add(exam)
            self._commit()
            return

        location, day, start, end = exam.location, exam.date, exam.start_time, exam.end_time
        with room_day_lock(location, day):
            with db.session.no_autoflush:
                conflicts = self.find_conflicts(location, day, start, end, exclude_id=exclude_id)
            if conflicts:
                db.session.rollback()
                logger.warning(f"[Catalog] Room conflict at {location} on {day}: {[c.id for c in conflicts]}")
                raise ConflictError(
                    "There is already an exam in this location during the selected time range",
                    {
                        "conflicts": [
                            {
                                "id": c.id,
                                "courseName": c.course_name,
                                "startTime": format_time(c.start_time),
                                "endTime": format_time(c.end_time),
                                "status": c.status,
                            }
                            for c in conflicts
                        ]
                    },
                )
            db.session.add(exam)
            self._commit()

    def _commit(self) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise


_catalog: Optional[ExamCatalog] = None


def get_exam_catalog() -> ExamCatalog:
    """Get or create exam catalog singleton"""
    global _catalog
    if _catalog is None:
        _catalog = ExamCatalog()
    return _catalog
