# school_portal/models/user.py - Identity directory
from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Boolean, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from school_portal.models.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Trusted role record; role profile tables are the fallback when this is empty
    role: Mapped[str | None] = mapped_column(String(16))
    # Stored tenant association, used when the request carries no subdomain
    school_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("schools.id"), index=True)

    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login: Mapped[datetime | None] = mapped_column(DateTime)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"
