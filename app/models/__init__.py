from app.models.user import User, UserType, Student, Coordinator, Company
from app.models.conversation import Conversation, ConversationParticipant, ConversationType
from app.models.message import Message, MessageReadReceipt, MessageType
from app.models.push_token import PushToken

__all__ = [
    "User",
    "UserType",
    "Student",
    "Coordinator",
    "Company",
    "Conversation",
    "ConversationParticipant",
    "ConversationType",
    "Message",
    "MessageReadReceipt",
    "MessageType",
    "PushToken",
]
