from datetime import datetime
from typing import Optional

from app.models.conversation import ConversationType
from app.models.message import MessageType
from app.schemas.base import CamelModel
from app.schemas.user import UserSummary


class DirectConversationCreate(CamelModel):
    participant_id: int


class GroupConversationCreate(CamelModel):
    group_name: str = ""
    participant_ids: list[int] = []
    avatar_url: Optional[str] = None


class GroupNameUpdate(CamelModel):
    name: str = ""


class GroupAvatarUpdate(CamelModel):
    avatar_url: str = ""


class MemberAdd(CamelModel):
    member_id: int


class ParticipantResponse(CamelModel):
    user_id: int
    is_active: bool
    joined_at: Optional[datetime]
    user: UserSummary


class LastMessage(CamelModel):
    id: int
    sender_id: int
    message: str
    message_type: MessageType
    timestamp: str
    created_at: Optional[datetime]


class ConversationSummary(CamelModel):
    id: int
    type: ConversationType
    name: str
    avatar_url: Optional[str]
    created_by: Optional[int]
    participants: list[ParticipantResponse]
    last_message: Optional[LastMessage]
    unread_count: int
    is_online: bool = False
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class ConversationListResponse(CamelModel):
    success: bool = True
    conversations: list[ConversationSummary]


class ConversationResponse(CamelModel):
    success: bool = True
    conversation: ConversationSummary


class ConversationCreatedResponse(CamelModel):
    success: bool = True
    conversation_id: int
    created: bool
    message: str
