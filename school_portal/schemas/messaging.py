# school_portal/schemas/messaging.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID


class ConversationCreate(BaseModel):
    participant_ids: List[UUID] = Field(..., min_length=1)
    title: Optional[str] = Field(default=None, max_length=255)
    is_group: bool = False


class ConversationOut(BaseModel):
    id: UUID
    title: Optional[str] = None
    is_group: bool
    created_by: UUID
    participant_ids: List[UUID] = []
    created_at: datetime
    updated_at: datetime


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    attachment_url: Optional[str] = Field(default=None, max_length=512)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message cannot be empty")
        return v.strip()


class MessageOut(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    attachment_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
