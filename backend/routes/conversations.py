"""
BizFlow Pro - Routes Conversations
"""

from fastapi import APIRouter, Depends

from models import MessageSend
from services.conversations import list_conversations, get_conversation, send_message
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/conversations", tags=["Conversations"])


@router.get("")
async def get_conversations(user: dict = Depends(require_permission("conversations.view"))):
    conversations = await list_conversations(get_tenant_id(user))
    return {"conversations": conversations, "count": len(conversations)}


@router.get("/{conversation_id}")
async def get_one_conversation(conversation_id: str, user: dict = Depends(require_permission("conversations.view"))):
    return await get_conversation(get_tenant_id(user), conversation_id)


@router.post("/messages")
async def post_message(data: MessageSend, user: dict = Depends(require_permission("conversations.send"))):
    result = await send_message(
        get_tenant_id(user), data.content, data.channel.value,
        conversation_id=data.conversation_id, contact_id=data.contact_id,
        subject=data.subject, user=user.get("email", "system")
    )
    return {"success": True, **result}
