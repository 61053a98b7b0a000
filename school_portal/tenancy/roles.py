# school_portal/tenancy/roles.py - Functional role resolution for authenticated users
from typing import Callable, Optional, Sequence, Tuple, Type
from uuid import UUID
import logging

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from school_portal.core.config import settings
from school_portal.models import Admin, Teacher, Student, Parent, User
from school_portal.tenancy.permissions import ROLES

logger = logging.getLogger(__name__)

RoleLookup = Callable[[Session, UUID], Optional[str]]

# Checked in this order when the trusted lookup has no answer
PROFILE_TABLES: Tuple[Tuple[str, Type], ...] = (
    ("admin", Admin),
    ("teacher", Teacher),
    ("student", Student),
    ("parent", Parent),
)


def directory_role_lookup(db: Session, user_id: UUID) -> Optional[str]:
    """Read the role column of the identity directory"""
    return db.execute(select(User.role).where(User.id == user_id)).scalar_one_or_none()


def function_role_lookup(function_name: str) -> RoleLookup:
    """
    Build a lookup that calls a PostgreSQL security-definer function.

    The function name is validated as an identifier by Settings.
    """
    statement = text(f"SELECT {function_name}(:user_id)")

    def lookup(db: Session, user_id: UUID) -> Optional[str]:
        return db.execute(statement, {"user_id": str(user_id)}).scalar()

    return lookup


def get_role_lookup() -> RoleLookup:
    if settings.ROLE_LOOKUP_FUNCTION and settings.is_postgres:
        return function_role_lookup(settings.ROLE_LOOKUP_FUNCTION)
    return directory_role_lookup


class RoleResolver:
    """Resolve a user's role: trusted lookup first, then profile tables in priority order"""

    def __init__(self, lookup: Optional[RoleLookup] = None,
                 profile_tables: Sequence[Tuple[str, Type]] = PROFILE_TABLES):
        self.lookup = lookup or get_role_lookup()
        self.profile_tables = tuple(profile_tables)

    def _trusted_role(self, db: Session, user_id: UUID) -> Optional[str]:
        try:
            role = self.lookup(db, user_id)
        except Exception as e:
            logger.warning(f"Role lookup failed for user {user_id}: {e}")
            # a failed statement poisons the transaction on PostgreSQL
            db.rollback()
            return None

        if role is None:
            return None
        role = str(role).lower()
        if role not in ROLES:
            logger.warning(f"Ignoring unknown role {role!r} for user {user_id}")
            return None
        return role

    def _scan_profiles(self, db: Session, user_id: UUID) -> Optional[str]:
        for role, model in self.profile_tables:
            found = db.execute(
                select(model.id).where(model.auth_user_id == user_id).limit(1)
            ).first()
            if found:
                return role
        return None

    def resolve(self, db: Session, user_id: UUID) -> Optional[str]:
        """
        Resolve the functional role for a user.

        Returns:
            "admin", "teacher", "student", "parent", or None for a roleless user
        """
        role = self._trusted_role(db, user_id)
        if role:
            return role

        role = self._scan_profiles(db, user_id)
        if role:
            logger.debug(f"Role for user {user_id} resolved from {role} profile")
        return role


__all__ = [
    "RoleLookup", "RoleResolver", "PROFILE_TABLES",
    "directory_role_lookup", "function_role_lookup", "get_role_lookup",
]
