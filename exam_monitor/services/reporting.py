"""
Reporting - incident and event reports filed by supervisors during an exam
"""
import logging
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from exam_monitor import db
from exam_monitor.errors import NotFoundError, ValidationError
from exam_monitor.models.report import Report
from exam_monitor.models.audit_log import AuditActionType
from exam_monitor.services.audit_sink import get_audit_sink
from exam_monitor.services.exam_catalog import get_exam_catalog
from exam_monitor.services.identity_directory import get_identity_directory

logger = logging.getLogger(__name__)


class ReportingService:
    """General and per-student exam reports"""

    def __init__(self):
        self.catalog = get_exam_catalog()
        self.directory = get_identity_directory()
        self.audit = get_audit_sink()

    def create_report(
        self,
        exam_id: str,
        event_type: str,
        description: Optional[str] = None,
        supervisor_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> Report:
        exam = self.catalog.get_exam(exam_id)
        if not isinstance(event_type, str) or not event_type.strip():
            raise ValidationError("Missing required field: eventType")

        if supervisor_id and not self.directory.get_user(supervisor_id):
            raise NotFoundError("Reporting user not found", {"userId": supervisor_id})

        student = None
        if student_id:
            student = self.directory.get_user(student_id)
            if not student or student.role != "student":
                raise NotFoundError("Student not found", {"studentId": student_id})

        report = Report(
            exam_id=exam.id,
            student_id=student.id if student else None,
            supervisor_id=supervisor_id,
            event_type=event_type.strip(),
            description=(description or "").strip(),
        )
        db.session.add(report)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        if student:
            action = AuditActionType.STUDENT_REPORT
            text = f"Report '{report.event_type}' filed for student {student.name}"
        else:
            action = AuditActionType.GENERAL_REPORT
            text = f"General report '{report.event_type}' filed"
        self.audit.emit(action, text, user_id=supervisor_id, exam_id=exam.id, details={"reportId": report.id})

        logger.info(f"[Reporting] {action} for exam {exam.id}")
        return report

    def list_reports(self, exam_id: str, student_id: Optional[str] = None) -> List[Report]:
        """Newest first"""
        exam = self.catalog.get_exam(exam_id)
        query = Report.query.filter_by(exam_id=exam.id)
        if student_id:
            query = query.filter_by(student_id=student_id)
        return query.order_by(Report.created_at.desc()).all()


_reporting: Optional[ReportingService] = None


def get_reporting_service() -> ReportingService:
    global _reporting
    if _reporting is None:
        _reporting = ReportingService()
    return _reporting
