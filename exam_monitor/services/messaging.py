"""
Messaging - per-exam message channel between the staff of one exam

Messages are listed oldest first. A sender has always read their own
message; every other reader adds a receipt through mark_read.
"""
import logging
from typing import List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from exam_monitor import db
from exam_monitor.errors import NotFoundError, ValidationError
from exam_monitor.models.communication import Communication, MessageRead, MESSAGE_TYPES
from exam_monitor.models.audit_log import AuditActionType
from exam_monitor.services.audit_sink import get_audit_sink
from exam_monitor.services.exam_catalog import get_exam_catalog
from exam_monitor.services.identity_directory import get_identity_directory

logger = logging.getLogger(__name__)


class MessagingService:
    """
    Exam message channel.

    Usage:
        messaging = get_messaging_service()
        msg = messaging.send_message(exam_id, sender_id, "Room 3 needs more booklets")
        messaging.mark_read(exam_id, msg.id, user_id=lecturer_id)
    """

    def __init__(self):
        self.catalog = get_exam_catalog()
        self.directory = get_identity_directory()
        self.audit = get_audit_sink()

    def list_messages(self, exam_id: str) -> List[Communication]:
        exam = self.catalog.get_exam(exam_id)
        return (
            Communication.query.filter_by(exam_id=exam.id)
            .order_by(Communication.created_at.asc(), Communication.id.asc())
            .all()
        )

    def send_message(
        self,
        exam_id: str,
        sender_id: str,
        message: str,
        message_type: Optional[str] = None,
    ) -> Communication:
        exam = self.catalog.get_exam(exam_id)
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Missing required field: message")
        message_type = message_type or "message"
        if message_type not in MESSAGE_TYPES:
            raise ValidationError(f"Invalid messageType: {message_type}", {"allowed": list(MESSAGE_TYPES)})

        sender = self.directory.get_user(sender_id) if isinstance(sender_id, str) else None
        if not sender:
            raise NotFoundError("Sender not found", {"senderId": sender_id})

        communication = Communication(
            exam_id=exam.id,
            sender_id=sender.id,
            message=message.strip(),
            message_type=message_type,
        )
        communication.reads.append(MessageRead(user_id=sender.id))
        db.session.add(communication)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        logger.info(f"[Messaging] {message_type} from {sender.id} in exam {exam.id}")
        self.audit.emit(
            AuditActionType.MESSAGE_SENT,
            f"{sender.name} sent a {message_type.replace('_', ' ')}",
            user_id=sender.id,
            exam_id=exam.id,
            details={"messageId": communication.id, "messageType": message_type},
        )
        return communication

    def mark_read(self, exam_id: str, message_id: str, user_id: str) -> Communication:
        """Add a read receipt for `user_id`. Reading twice keeps the first receipt."""
        communication = self.get_message(exam_id, message_id)
        user = self.directory.get_user(user_id) if isinstance(user_id, str) else None
        if not user:
            raise NotFoundError("User not found", {"userId": user_id})

        if communication.is_read_by(user.id):
            return communication

        db.session.add(MessageRead(communication_id=communication.id, user_id=user.id))
        try:
            db.session.commit()
        except IntegrityError:
            # Concurrent read of the same message by the same user
            db.session.rollback()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        db.session.refresh(communication)
        return communication

    def get_message(self, exam_id: str, message_id: str) -> Communication:
        communication = db.session.get(Communication, message_id) if message_id else None
        if not communication or communication.exam_id != exam_id:
            raise NotFoundError("Message not found", {"messageId": message_id})
        return communication


_messaging: Optional[MessagingService] = None


def get_messaging_service() -> MessagingService:
    global _messaging
    if _messaging is None:
        _messaging = MessagingService()
    return _messaging
