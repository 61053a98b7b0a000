# school_portal/models/fee.py - Student fees and AI fee collection predictions
from __future__ import annotations
import uuid
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import String, Text, Date, DateTime, Numeric, Float, ForeignKey, Uuid, JSON
from sqlalchemy.orm import Mapped, mapped_column
from school_portal.models.base import Base


class FeeStatus:
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"

    ALL = (PENDING, PAID, OVERDUE)


class Fee(Base):
    __tablename__ = "fees"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_type: Mapped[str] = mapped_column(String(64), nullable=False)  # tuition, transport, exam...
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=FeeStatus.PENDING)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class FeePrediction(Base):
    __tablename__ = "fee_predictions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    total_expected: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_collected: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_pending: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    collection_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    overdue_count: Mapped[int] = mapped_column(nullable=False, default=0)
    risk_level: Mapped[str] = mapped_column(String(16), nullable=False)
    unusual_activity: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    recommendations: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
