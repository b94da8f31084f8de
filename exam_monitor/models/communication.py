"""
Communication Models - per-exam messages between exam staff and their read receipts
"""
from exam_monitor import db
from exam_monitor.utils.time_utils import utcnow, isoformat
import uuid


def generate_uuid():
    return str(uuid.uuid4())


MESSAGE_TYPES = ("message", "status_update", "emergency")


class Communication(db.Model):
    """One message posted to an exam's channel"""
    __tablename__ = "communications"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    exam_id = db.Column(db.String(36), db.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)

    message = db.Column(db.Text, nullable=False)
    # Type: message, status_update, emergency
    message_type = db.Column(db.String(20), nullable=False, default="message")

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    sender = db.relationship("User", foreign_keys=[sender_id])
    reads = db.relationship(
        "MessageRead",
        backref="communication",
        cascade="all, delete-orphan",
        order_by="MessageRead.read_at",
    )

    def is_read_by(self, user_id):
        return any(r.user_id == user_id for r in self.reads)

    def to_dict(self):
        return {
            "id": self.id,
            "examId": self.exam_id,
            "senderId": self.sender_id,
            "sender": {"name": self.sender.name, "idNumber": self.sender.id_number} if self.sender else None,
            "message": self.message,
            "messageType": self.message_type,
            "readBy": [r.to_dict() for r in self.reads],
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class MessageRead(db.Model):
    """Read receipt: one row per (message, reader)"""
    __tablename__ = "message_reads"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    communication_id = db.Column(
        db.String(36), db.ForeignKey("communications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    read_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("communication_id", "user_id", name="unique_message_reader"),
    )

    def to_dict(self):
        return {"userId": self.user_id, "readAt": isoformat(self.read_at)}
