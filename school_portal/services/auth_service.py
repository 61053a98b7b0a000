# school_portal/services/auth_service.py - Authentication and account provisioning
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from datetime import datetime
from typing import Optional, Dict, Any, List
from uuid import UUID
import logging

from school_portal.core.security import hash_password, verify_password, token_manager
from school_portal.models import (
    User, School, Admin, Teacher, Student, Parent, WhitelistedTeacher, WhitelistedParent,
)
from school_portal.tenancy.permissions import ROLES

logger = logging.getLogger(__name__)

PROFILE_MODELS = {
    "admin": Admin,
    "teacher": Teacher,
    "student": Student,
    "parent": Parent,
}


class AuthService:
    """Service class for authentication and account creation"""

    def __init__(self, db: Session):
        self.db = db

    def _find_user_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(
            select(User).where(func.lower(User.email) == email.lower().strip())
        ).scalar_one_or_none()

    def _create_identity(self, email: str, full_name: str, password: str,
                         role: str, school_id: UUID, must_change_password: bool = False) -> User:
        if self._find_user_by_email(email):
            raise ValueError("An account with this email already exists")

        user = User(
            email=email.lower().strip(),
            full_name=full_name.strip(),
            password_hash=hash_password(password),
            role=role,
            school_id=school_id,
            status="active",
            must_change_password=must_change_password,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def create_user(
        self,
        school_id: UUID,
        email: str,
        full_name: str,
        password: str,
        role: str,
        profile: Optional[Dict[str, Any]] = None,
    ) -> User:
        """
        Create an identity plus its role profile inside a school.

        Args:
            school_id: Tenant the account belongs to
            email: Login email (lowercased)
            full_name: Display name
            password: Plain text password (hashed before storage)
            role: One of admin, teacher, student, parent
            profile: Extra profile columns (phone, class_id, ...)

        Returns:
            Created User object

        Raises:
            ValueError: Unknown role or duplicate email
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")

        user = self._create_identity(email, full_name, password, role, school_id,
                                     must_change_password=True)
        model = PROFILE_MODELS[role]
        self.db.add(model(
            school_id=school_id,
            auth_user_id=user.id,
            full_name=user.full_name,
            email=user.email,
            **(profile or {}),
        ))
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"User created: {user.email} ({role}) in school {school_id}")
        return user

    def bootstrap_school(self, school_data: Dict[str, Any], admin_email: str,
                         admin_full_name: str, admin_password: str) -> Dict[str, Any]:
        """Create a school together with its first admin account"""
        slug = school_data["slug"].lower()
        if self.db.execute(select(School.id).where(School.slug == slug)).first():
            raise ValueError(f"School slug '{slug}' is already taken")

        school = School(**{**school_data, "slug": slug})
        self.db.add(school)
        self.db.flush()

        admin = self._create_identity(admin_email, admin_full_name, admin_password, "admin", school.id)
        self.db.add(Admin(
            school_id=school.id,
            auth_user_id=admin.id,
            full_name=admin.full_name,
            email=admin.email,
        ))
        self.db.commit()
        self.db.refresh(school)

        logger.info(f"School created: {school.name} ({school.slug}) with admin {admin.email}")
        return {"school": school, "admin": admin}

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password

        Returns:
            User object if authentication successful, None otherwise
        """
        user = self._find_user_by_email(email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None

        user.last_login = datetime.utcnow()
        self.db.commit()

        logger.info(f"User authenticated: {user.email}")
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise ValueError("Current password is incorrect")
        if current_password == new_password:
            raise ValueError("New password must differ from the current password")

        user.password_hash = hash_password(new_password)
        user.must_change_password = False
        self.db.commit()
        logger.info(f"Password changed for: {user.email}")

    def issue_tokens(self, user: User) -> Dict[str, Any]:
        """Create the access/refresh token pair returned by login and refresh"""
        claims = {"email": user.email}
        if user.school_id:
            claims["school_id"] = str(user.school_id)
        return {
            "access_token": token_manager.create_access_token(user.id, additional_claims=claims),
            "refresh_token": token_manager.create_refresh_token(user.id),
            "token_type": "bearer",
            "expires_in": token_manager.access_token_expire_minutes * 60,
        }

    # ============================================================================
    # Whitelist-gated self registration
    # ============================================================================

    def _whitelist_entry(self, model, school_id: UUID, email: str):
        return self.db.execute(
            select(model).where(
                model.school_id == school_id,
                func.lower(model.email) == email.lower().strip(),
            )
        ).scalar_one_or_none()

    def teacher_signup(self, school_id: UUID, email: str, password: str, full_name: str) -> User:
        """
        Register a teacher whose email an admin whitelisted.

        Raises:
            PermissionError: Email not whitelisted for the school
            ValueError: Account already exists
        """
        entry = self._whitelist_entry(WhitelistedTeacher, school_id, email)
        if not entry:
            logger.info(f"Teacher signup rejected, email not whitelisted: {email}")
            raise PermissionError("Your email is not registered as a teacher. Contact admin.")

        try:
            user = self._create_identity(email, full_name, password, "teacher", school_id)
            self.db.add(Teacher(
                school_id=school_id,
                auth_user_id=user.id,
                full_name=user.full_name,
                email=user.email,
                subject_specialization=entry.subject_specialization,
                phone=entry.phone,
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(user)
        logger.info(f"Teacher account created: {user.email}")
        return user

    def parent_signup(self, school_id: UUID, email: str, password: str, full_name: str) -> User:
        """
        Register a whitelisted parent and link the whitelisted students.

        Raises:
            PermissionError: Email not whitelisted for the school
            ValueError: Account already exists
        """
        entry = self._whitelist_entry(WhitelistedParent, school_id, email)
        if not entry:
            logger.info(f"Parent signup rejected, email not whitelisted: {email}")
            raise PermissionError("Your email is not registered as a parent. Please contact school admin.")

        try:
            user = self._create_identity(email, full_name, password, "parent", school_id)
            parent = Parent(
                school_id=school_id,
                auth_user_id=user.id,
                full_name=user.full_name,
                email=user.email,
                phone=entry.phone,
                relation=entry.relation,
            )
            self.db.add(parent)
            self.db.flush()

            student_ids = self._parse_ids(entry.student_ids or [])
            if student_ids:
                students = self.db.execute(
                    select(Student).where(Student.school_id == school_id, Student.id.in_(student_ids))
                ).scalars().all()
                for student in students:
                    student.parent_id = parent.id
                logger.info(f"Linked parent {user.email} to {len(students)} student(s)")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(user)
        logger.info(f"Parent account created: {user.email}")
        return user

    @staticmethod
    def _parse_ids(values: List[Any]) -> List[UUID]:
        ids = []
        for value in values:
            try:
                ids.append(value if isinstance(value, UUID) else UUID(str(value)))
            except ValueError:
                logger.warning(f"Skipping malformed student id in whitelist: {value!r}")
        return ids

    def get_profile(self, user: User, role: Optional[str]):
        """Role profile row for a user, if any"""
        model = PROFILE_MODELS.get(role or "")
        if model is None:
            return None
        return self.db.execute(
            select(model).where(model.auth_user_id == user.id)
        ).scalar_one_or_none()


__all__ = ["AuthService", "PROFILE_MODELS"]
