"""
BizFlow Pro - Conversations (one thread per contact and channel)
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class MessageChannel(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    WHATSAPP = "WHATSAPP"


class MessageDirection(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class MessageStatus(str, Enum):
    SENT = "SENT"
    FAILED = "FAILED"


class MessageSend(BaseModel):
    """Either an existing conversation or a contact to start one with"""
    content: str = Field(..., min_length=1)
    channel: MessageChannel = MessageChannel.EMAIL
    conversation_id: Optional[str] = None
    contact_id: Optional[str] = None
    subject: Optional[str] = None

    @model_validator(mode='after')
    def check_target(self):
        if not self.conversation_id and not self.contact_id:
            raise ValueError("conversation_id or contact_id is required")
        return self
