# school_portal/ai/chatbot.py - Role-aware assistant with persisted conversations
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from school_portal.ai.gateway_client import AIGatewayClient
from school_portal.models import AIChatConversation, User
from school_portal.tenancy.scoped import get_by_tenant, insert_with_tenant

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10

BASE_PROMPT = "You are a helpful AI assistant for a school management system."
ROLE_PROMPTS = {
    "admin": " Assist with administrative tasks, analytics, reports, and school management queries.",
    "teacher": " Help with teaching tasks, student management, assignments, and class activities.",
    "student": " Help with studies, homework, schedules, and academic queries. Be encouraging and supportive.",
    "parent": " Help parents track their children's progress, view reports, and communicate with school.",
}


def system_prompt_for(role: Optional[str]) -> str:
    return BASE_PROMPT + ROLE_PROMPTS.get(role or "", "")


async def chat(
    db: Session,
    client: AIGatewayClient,
    school_id: UUID,
    user: User,
    role: Optional[str],
    message: str,
    conversation_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    """
    Append ``message`` to the user's conversation and return the assistant reply.

    Only the last ten messages are sent to the gateway. Conversations of other
    users or schools are treated as missing.
    """
    if conversation_id:
        conversation = get_by_tenant(db, AIChatConversation, conversation_id, school_id)
        if not conversation or conversation.user_id != user.id:
            raise LookupError("Conversation not found")
    else:
        conversation = insert_with_tenant(db, AIChatConversation, {
            "user_id": user.id,
            "role": role,
            "messages": [],
        }, school_id)

    # reassign rather than mutate so the JSON column is flagged dirty
    messages = list(conversation.messages or [])
    messages.append({"role": "user", "content": message, "timestamp": datetime.utcnow().isoformat()})

    reply = await client.chat([
        {"role": "system", "content": system_prompt_for(role)},
        *({"role": m["role"], "content": m["content"]} for m in messages[-HISTORY_WINDOW:]),
    ])

    messages.append({"role": "assistant", "content": reply, "timestamp": datetime.utcnow().isoformat()})
    conversation.messages = messages
    conversation.updated_at = datetime.utcnow()
    db.commit()

    return {"conversation_id": conversation.id, "message": reply}
