from datetime import datetime
from typing import Optional

from app.models.message import MessageType
from app.schemas.base import CamelModel
from app.schemas.user import UserSummary


class MessageCreate(CamelModel):
    content: str = ""
    message_type: MessageType = MessageType.TEXT
    is_important: bool = False


class MessageResponse(CamelModel):
    id: int
    conversation_id: int
    sender_id: int
    sender: UserSummary
    content: str
    message_type: MessageType
    is_important: bool
    is_read: bool
    timestamp: str
    created_at: Optional[datetime]


class MessageSentResponse(CamelModel):
    success: bool = True
    message: MessageResponse


class MessageListResponse(CamelModel):
    success: bool = True
    messages: list[MessageResponse]
    page: int
    limit: int


class MarkReadResponse(CamelModel):
    success: bool = True
    message: str = "Messages marked as read"
    messages_marked_read: int


class UnreadCountResponse(CamelModel):
    success: bool = True
    total_unread: int
