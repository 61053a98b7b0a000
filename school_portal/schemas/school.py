# school_portal/schemas/school.py
import re
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from uuid import UUID

from school_portal.core.config import settings

SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


class SchoolCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str
    domain: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None

    admin_email: EmailStr
    admin_full_name: str = Field(..., min_length=1, max_length=255)
    admin_password: str

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        v = v.strip().lower()
        if v == "www" or v in settings.reserved_subdomains or not SLUG_PATTERN.match(v):
            raise ValueError("slug must be a valid subdomain label")
        return v


class SchoolOut(BaseModel):
    id: UUID
    name: str
    slug: str
    domain: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
