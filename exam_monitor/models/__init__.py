# Models Package
from exam_monitor.models.user import User
from exam_monitor.models.exam import Exam, ExamMember
from exam_monitor.models.attendance import Attendance
from exam_monitor.models.report import Report
from exam_monitor.models.communication import Communication, MessageRead
from exam_monitor.models.audit_log import AuditLog, AuditActionType
