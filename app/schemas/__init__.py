from app.schemas.base import CamelModel, StatusResponse
from app.schemas.user import UserIdentity, UserSummary, UserSearchResponse
from app.schemas.conversation import ConversationSummary, ConversationListResponse
from app.schemas.message import MessageResponse, MessageListResponse
from app.schemas.push_token import PushTokenResponse

__all__ = [
    "CamelModel", "StatusResponse",
    "UserIdentity", "UserSummary", "UserSearchResponse",
    "ConversationSummary", "ConversationListResponse",
    "MessageResponse", "MessageListResponse",
    "PushTokenResponse",
]
