# school_portal/schemas/auth.py - Authentication and self-registration schemas
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from uuid import UUID


class LoginIn(BaseModel):
    email: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    must_change_password: bool = False


class RefreshIn(BaseModel):
    refresh_token: str


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


class SignupIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1, max_length=255)
    school_id: UUID

    class Config:
        json_schema_extra = {
            "example": {
                "email": "teacher@example.com",
                "password": "s3cretpass",
                "full_name": "Jane Doe",
                "school_id": "8d0c6b0e-2f58-4c57-9a53-6a1e9f1d4b1a",
            }
        }


class SignupOut(BaseModel):
    success: bool = True
    message: str = "Account created successfully. You can now log in."
    user_id: UUID


class RegisterUserIn(BaseModel):
    """Admin-created account inside the admin's school"""
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str
    role: str
    phone: Optional[str] = None
    subject_specialization: Optional[str] = None
    class_id: Optional[UUID] = None
    admission_no: Optional[str] = None
    relation: Optional[str] = None


class UserOut(BaseModel):
    id: UUID
    email: str
    full_name: str
    role: Optional[str] = None
    school_id: Optional[UUID] = None
    status: str
    must_change_password: bool = False

    class Config:
        from_attributes = True


class MeOut(BaseModel):
    user: UserOut
    role: Optional[str] = None
    school_id: Optional[UUID] = None
    tenant_source: Optional[str] = None
    permissions: List[str] = []
    profile: Optional[Dict[str, Any]] = None
