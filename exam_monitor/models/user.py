"""
User model backing the Identity Directory
"""
from exam_monitor.utils.time_utils import utcnow
import uuid
from exam_monitor import db


def generate_uuid():
    return str(uuid.uuid4())


ROLES = ("student", "lecturer", "supervisor", "admin")


class User(db.Model):
    """A person known to the exam system, keyed by national ID number"""
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    id_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="student")  # student, lecturer, supervisor, admin

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "idNumber": self.id_number,
            "name": self.name,
            "role": self.role,
        }
