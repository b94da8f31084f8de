"""
Identity Directory - resolves national ID numbers to users with a role
"""
import logging
from typing import Iterable, List, Optional
from exam_monitor import db
from exam_monitor.errors import ConflictError, NotFoundError, ValidationError
from exam_monitor.models.user import User, ROLES

logger = logging.getLogger(__name__)


class IdentityDirectory:
    """Lookup of users by ID number and role"""

    def get_user(self, user_id: str) -> Optional[User]:
        return db.session.get(User, user_id) if user_id else None

    def resolve(self, id_numbers: Iterable[str], role: str) -> List[User]:
        """
        Resolve ID numbers to users of `role`, keeping input order.

        Raises:
            NotFoundError: listing every ID number that has no user with that role
        """
        wanted = [str(n).strip() for n in id_numbers if str(n).strip()]
        if not wanted:
            return []

        users = User.query.filter(User.id_number.in_(wanted), User.role == role).all()
        by_number = {u.id_number: u for u in users}

        missing = [n for n in wanted if n not in by_number]
        if missing:
            raise NotFoundError(
                f"Unknown {role} ID numbers: {', '.join(missing)}",
                {"missing": missing, "role": role},
            )

        return [by_number[n] for n in dict.fromkeys(wanted)]

    def resolve_one(self, id_number: str, role: str) -> User:
        return self.resolve([id_number], role)[0]

    def create_user(self, id_number: str, name: str, role: str) -> User:
        """Register a user (directory maintenance)"""
        if not isinstance(id_number, str) or not id_number.strip().isdigit():
            raise ValidationError("idNumber must be a string of digits")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Missing required field: name")
        id_number = id_number.strip()
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}. Allowed: {', '.join(ROLES)}")

        if User.query.filter_by(id_number=id_number).first():
            raise ConflictError(f"ID number {id_number} already registered")

        user = User(id_number=id_number, name=name.strip(), role=role)
        db.session.add(user)
        db.session.commit()
        logger.info(f"[Identity] Registered {role} {id_number}")
        return user

    def list_users(self, role: Optional[str] = None) -> List[User]:
        query = User.query
        if role:
            query = query.filter_by(role=role)
        return query.order_by(User.name).all()


_directory: Optional[IdentityDirectory] = None


def get_identity_directory() -> IdentityDirectory:
    global _directory
    if _directory is None:
        _directory = IdentityDirectory()
    return _directory
