# school_portal/schemas/fee.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from school_portal.models.fee import FeeStatus


class FeeCreate(BaseModel):
    student_id: UUID
    fee_type: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: date
    status: str = FeeStatus.PENDING
    notes: Optional[str] = None

    @field_validator("fee_type")
    @classmethod
    def normalize_fee_type(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        v = v.lower()
        if v not in FeeStatus.ALL:
            raise ValueError(f"status must be one of: {', '.join(FeeStatus.ALL)}")
        return v


class FeeOut(BaseModel):
    id: UUID
    student_id: UUID
    fee_type: str
    amount: Decimal
    due_date: date
    status: str
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FeeListOut(BaseModel):
    fees: List[FeeOut]
    total: int
    total_amount: Decimal
    pending_amount: Decimal
