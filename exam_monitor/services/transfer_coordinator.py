"""
Transfer Coordinator - moves a student's live attendance between active exams

The source record is closed (status "transferred") and a new absent record is
opened in the target exam in a single transaction. Either both rows are
written or neither is.
"""
import logging
from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from exam_monitor import db
from exam_monitor.errors import ConflictError, StateError, ValidationError
from exam_monitor.models.attendance import Attendance
from exam_monitor.models.audit_log import AuditActionType
from exam_monitor.services.attendance_ledger import get_attendance_ledger, SEAT_ALLOCATION_ATTEMPTS
from exam_monitor.services.audit_sink import get_audit_sink
from exam_monitor.services.exam_catalog import get_exam_catalog
from exam_monitor.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class TransferCoordinator:
    """
    Usage:
        new_record = get_transfer_coordinator().transfer(attendance_id, target_exam_id, actor_id)
    """

    def __init__(self):
        self.ledger = get_attendance_ledger()
        self.catalog = get_exam_catalog()
        self.audit = get_audit_sink()

    def transfer(self, attendance_id: str, target_exam_id: str, actor_id: Optional[str] = None) -> Attendance:
        """
        Raises:
            ValidationError: missing target, or target is the record's own exam
            NotFoundError: unknown record or target exam
            StateError: target exam is not active
            ConflictError: record already transferred, or student already live in target
        """
        if not target_exam_id:
            raise ValidationError("Missing required field: targetExamId")

        source = self.ledger.get_record(attendance_id)
        source_id = source.id
        source_exam_id = source.exam_id
        student_id = source.student_id

        if source_exam_id == target_exam_id:
            raise ValidationError("Student is already in this exam", {"examId": target_exam_id})
        if source.attendance_status == "transferred":
            raise ConflictError(
                "Student has already been transferred",
                {"attendanceId": source_id, "transferredToExamId": source.transferred_to_exam_id},
            )

        target = self.catalog.get_exam(target_exam_id)
        if target.status != "active":
            raise StateError("Target exam is not active", {"examId": target.id, "status": target.status})
        if self.ledger.live_record(target.id, student_id):
            raise ConflictError("Student is already in the target exam", {"studentId": student_id})

        new_record = None
        for attempt in range(1, SEAT_ALLOCATION_ATTEMPTS + 1):
            try:
                closed = db.session.execute(
                    update(Attendance)
                    .where(Attendance.id == source_id, Attendance.attendance_status != "transferred")
                    .values(
                        attendance_status="transferred",
                        transferred_at=utcnow(),
                        transferred_to_exam_id=target.id,
                        is_on_toilet=False,
                    )
                    .execution_options(synchronize_session=False)
                )
                if closed.rowcount != 1:
                    db.session.rollback()
                    raise ConflictError("Student has already been transferred", {"attendanceId": source_id})

                new_record = Attendance(
                    exam_id=target.id,
                    student_id=student_id,
                    student_num_in_exam=self.ledger.next_seat(target.id),
                    attendance_status="absent",
                    is_on_toilet=False,
                    extra_time_minutes=0,
                    transferred_from_attendance_id=source_id,
                )
                db.session.add(new_record)
                db.session.commit()
                break
            except IntegrityError:
                db.session.rollback()
                new_record = None
                if self.ledger.live_record(target_exam_id, student_id):
                    raise ConflictError("Student is already in the target exam", {"studentId": student_id})
                logger.warning(f"[Transfer] Seat collision in exam {target_exam_id}, attempt {attempt}")
            except SQLAlchemyError:
                db.session.rollback()
                raise

        if new_record is None:
            raise ConflictError("Could not allocate a seat, please retry", {"examId": target_exam_id})

        logger.info(
            f"[Transfer] Record {source_id} moved from exam {source_exam_id} "
            f"to {target_exam_id} seat {new_record.student_num_in_exam}"
        )
        self.audit.emit(
            AuditActionType.STUDENT_TRANSFERRED,
            f"Student transferred to {target.location}",
            user_id=actor_id,
            exam_id=source_exam_id,
            details={
                "studentId": student_id,
                "fromExamId": source_exam_id,
                "toExamId": target_exam_id,
                "fromAttendanceId": source_id,
                "toAttendanceId": new_record.id,
                "seat": new_record.student_num_in_exam,
            },
        )
        return new_record


_coordinator: Optional[TransferCoordinator] = None


def get_transfer_coordinator() -> TransferCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = TransferCoordinator()
    return _coordinator
