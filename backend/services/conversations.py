"""
BizFlow Pro - Conversations

One conversation per (contact, channel), holding the messages exchanged
with the contact. Outbound EMAIL messages go through SendGrid; their status
is SENT or FAILED depending on the provider answer. SMS / WhatsApp messages
are recorded as SENT, no provider is wired for them.
"""

import asyncio
import html
import logging
from typing import List, Dict, Tuple

from pymongo.errors import DuplicateKeyError

from config import db, now_iso, new_id
from email_service import email_service
from models import MessageChannel, MessageDirection, MessageStatus
from services.errors import NotFoundError
from services.webhooks import trigger_webhooks

logger = logging.getLogger("conversations")

DEFAULT_SUBJECT = "Message from BizFlow Pro"


async def _contact(tenant_id: str, contact_id: str) -> Dict:
    contact = await db.contacts.find_one(
        {"id": contact_id, "tenant_id": tenant_id},
        {"_id": 0, "id": 1, "name": 1, "email": 1, "phone": 1}
    )
    if not contact:
        raise NotFoundError("Contact", contact_id)
    return contact


async def _last_message(conversation_id: str) -> Dict:
    messages = await db.messages.find(
        {"conversation_id": conversation_id}, {"_id": 0}
    ).sort("created_at", -1).limit(1).to_list(1)
    return messages[0] if messages else None


# ==================== READS ====================

async def list_conversations(tenant_id: str) -> List[Dict]:
    """Most recent activity first, each with its contact and last message"""
    conversations = await db.conversations.find(
        {"tenant_id": tenant_id}, {"_id": 0}
    ).sort("last_message_at", -1).to_list(500)

    for c in conversations:
        c["contact"] = await db.contacts.find_one(
            {"id": c["contact_id"], "tenant_id": tenant_id},
            {"_id": 0, "id": 1, "name": 1, "email": 1}
        )
        c["last_message"] = await _last_message(c["id"])
    return conversations


async def get_conversation(tenant_id: str, conversation_id: str) -> Dict:
    """Conversation with its contact and every message, oldest first"""
    conversation = await db.conversations.find_one(
        {"id": conversation_id, "tenant_id": tenant_id}, {"_id": 0}
    )
    if not conversation:
        raise NotFoundError("Conversation", conversation_id)

    conversation["contact"] = await _contact(tenant_id, conversation["contact_id"])
    conversation["messages"] = await db.messages.find(
        {"conversation_id": conversation_id, "tenant_id": tenant_id}, {"_id": 0}
    ).sort("created_at", 1).to_list(5000)
    return conversation


# ==================== SEND ====================

async def _find_or_create_conversation(tenant_id: str, contact_id: str, channel: str) -> Tuple[Dict, bool]:
    """Unique per (tenant_id, contact_id, channel); the loser of a race reads the winner"""
    key = {"tenant_id": tenant_id, "contact_id": contact_id, "channel": channel}
    existing = await db.conversations.find_one(key, {"_id": 0})
    if existing:
        return existing, False

    now = now_iso()
    conversation = {"id": new_id(), **key, "last_message_at": now, "created_at": now}
    try:
        await db.conversations.insert_one(conversation)
        conversation.pop("_id", None)
        return conversation, True
    except DuplicateKeyError:
        logger.info(f"[CONVERSATION] concurrent create for {contact_id}/{channel}")
        return await db.conversations.find_one(key, {"_id": 0}), False


async def _deliver(channel: str, contact: Dict, subject: str, content: str) -> str:
    if channel != MessageChannel.EMAIL.value:
        return MessageStatus.SENT.value

    if not contact.get("email"):
        logger.warning(f"[CONVERSATION] contact {contact['id']} has no email")
        return MessageStatus.FAILED.value

    body = html.escape(content).replace("\n", "<br>")
    sent = await asyncio.to_thread(email_service.send_email, contact["email"], subject, f"<p>{body}</p>")
    return MessageStatus.SENT.value if sent else MessageStatus.FAILED.value


async def send_message(tenant_id: str, content: str, channel: str = MessageChannel.EMAIL.value,
                       conversation_id: str = None, contact_id: str = None,
                       subject: str = None, user: str = "system") -> Dict:
    """
    Outbound message, into an existing conversation or the contact's
    conversation on that channel (created on first message).

    Returns {"conversation": dict, "message": dict}
    """
    content = (content or "").strip()
    if not content:
        raise ValueError("Message content is required")
    channel = MessageChannel(channel).value

    if conversation_id:
        conversation = await db.conversations.find_one(
            {"id": conversation_id, "tenant_id": tenant_id}, {"_id": 0}
        )
        if not conversation:
            raise NotFoundError("Conversation", conversation_id)
        channel = conversation["channel"]
    elif contact_id:
        await _contact(tenant_id, contact_id)
        conversation, _ = await _find_or_create_conversation(tenant_id, contact_id, channel)
    else:
        raise ValueError("conversation_id or contact_id is required")

    contact = await _contact(tenant_id, conversation["contact_id"])
    status = await _deliver(channel, contact, subject or DEFAULT_SUBJECT, content)

    now = now_iso()
    message = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "conversation_id": conversation["id"],
        "channel": channel,
        "direction": MessageDirection.OUTBOUND.value,
        "content": content,
        "status": status,
        "sent_by": user,
        "created_at": now,
    }
    await db.messages.insert_one(message)
    message.pop("_id", None)

    await db.conversations.update_one(
        {"id": conversation["id"], "tenant_id": tenant_id},
        {"$set": {"last_message_at": now}}
    )
    conversation["last_message_at"] = now

    logger.info(f"[CONVERSATION] {channel} message {message['id']} to {contact['id']} status={status}")
    if status == MessageStatus.SENT.value:
        trigger_webhooks(tenant_id, "message.sent", {
            "conversation_id": conversation["id"],
            "contact_id": contact["id"],
            "channel": channel,
            "message_id": message["id"],
        })
    return {"conversation": conversation, "message": message}
