# school_portal/api/routers/messages.py - Direct and group conversations inside a school
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import datetime
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from school_portal.core.db import get_db
from school_portal.api.deps.tenancy import require_school
from school_portal.models import Conversation, ConversationParticipant, Message, User
from school_portal.tenancy.scoped import select_by_tenant, get_by_tenant, insert_with_tenant
from school_portal.schemas.messaging import (
    ConversationCreate,
    ConversationOut,
    MessageCreate,
    MessageOut,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _participant_ids(db: Session, conversation_id: UUID) -> List[UUID]:
    return list(db.execute(
        select(ConversationParticipant.user_id).where(ConversationParticipant.conversation_id == conversation_id)
    ).scalars())


def _conversation_out(db: Session, conversation: Conversation) -> ConversationOut:
    return ConversationOut(
        id=conversation.id,
        title=conversation.title,
        is_group=conversation.is_group,
        created_by=conversation.created_by,
        participant_ids=_participant_ids(db, conversation.id),
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def _get_conversation_for_user(db: Session, conversation_id: UUID, ctx: Dict[str, Any]) -> Conversation:
    """Conversation of the tenant the caller takes part in; anything else is 404"""
    conversation = get_by_tenant(db, Conversation, conversation_id, ctx["school_id"])
    if not conversation or ctx["user"].id not in _participant_ids(db, conversation.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


@router.get("/conversations", response_model=List[ConversationOut])
async def list_conversations(
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    mine = select(ConversationParticipant.conversation_id).where(
        ConversationParticipant.user_id == ctx["user"].id
    )
    conversations = db.execute(
        select_by_tenant(Conversation, ctx["school_id"])
        .where(Conversation.id.in_(mine))
        .order_by(Conversation.updated_at.desc())
    ).scalars().all()
    return [_conversation_out(db, c) for c in conversations]


@router.post("/conversations", response_model=ConversationOut, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    school_id = ctx["school_id"]
    user = ctx["user"]

    member_ids = {pid for pid in payload.participant_ids if pid != user.id}
    if not member_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Add at least one other participant")
    if len(member_ids) > 1 and not payload.is_group:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Direct conversations have two participants")

    found = set(db.execute(
        select(User.id).where(User.id.in_(member_ids), User.school_id == school_id)
    ).scalars())
    missing = member_ids - found
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Users not found: {', '.join(str(m) for m in sorted(missing, key=str))}"
        )

    conversation = insert_with_tenant(db, Conversation, {
        "title": payload.title,
        "is_group": payload.is_group,
        "created_by": user.id,
    }, school_id)
    for participant_id in [user.id, *member_ids]:
        insert_with_tenant(db, ConversationParticipant, {
            "conversation_id": conversation.id,
            "user_id": participant_id,
        }, school_id)
    db.commit()
    db.refresh(conversation)

    logger.info(f"Conversation {conversation.id} created by {user.email} with {len(member_ids)} member(s)")
    return _conversation_out(db, conversation)


@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageOut])
async def list_messages(
    conversation_id: UUID,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
    limit: int = Query(50, ge=1, le=200),
    before: Optional[datetime] = Query(None),
):
    """Newest messages first, paged backwards with ``before``"""
    conversation = _get_conversation_for_user(db, conversation_id, ctx)

    query = select_by_tenant(Message, ctx["school_id"]).where(Message.conversation_id == conversation.id)
    if before:
        query = query.where(Message.created_at < before)
    return db.execute(query.order_by(Message.created_at.desc()).limit(limit)).scalars().all()


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageOut,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: UUID,
    payload: MessageCreate,
    ctx: Dict[str, Any] = Depends(require_school),
    db: Session = Depends(get_db),
):
    conversation = _get_conversation_for_user(db, conversation_id, ctx)

    message = insert_with_tenant(db, Message, {
        "conversation_id": conversation.id,
        "sender_id": ctx["user"].id,
        "content": payload.content,
        "attachment_url": payload.attachment_url,
    }, ctx["school_id"])
    conversation.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(message)
    return message
