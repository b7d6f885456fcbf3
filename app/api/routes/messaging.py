import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.core.config import settings
from app.db.database import get_db
from app.models.user import User
from app.schemas.base import StatusResponse
from app.schemas.conversation import (
    ConversationCreatedResponse,
    ConversationListResponse,
    ConversationResponse,
    DirectConversationCreate,
    GroupAvatarUpdate,
    GroupConversationCreate,
    GroupNameUpdate,
    MemberAdd,
)
from app.schemas.message import (
    MarkReadResponse,
    MessageCreate,
    MessageListResponse,
    MessageSentResponse,
    UnreadCountResponse,
)
from app.schemas.user import UserSearchResponse
from app.services import conversations as conversation_service
from app.services import messages as message_service
from app.services import read_tracking
from app.services.push_service import PushDispatcher, get_push_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messaging", tags=["Messaging"])


# ── Directory ────────────────────────────────────────────────────


@router.get("/search", response_model=UserSearchResponse)
def search_users(
    search_term: str = Query("", alias="searchTerm"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Find users to start a conversation with."""
    users = conversation_service.search_users(db, search_term, current_user.id)
    return UserSearchResponse(users=users, search_term=search_term.strip())


# ── Conversations ────────────────────────────────────────────────


@router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the caller's conversations, most recently active first."""
    return ConversationListResponse(
        conversations=conversation_service.list_conversations(db, current_user.id)
    )


@router.post("/conversations/direct", response_model=ConversationCreatedResponse)
def create_direct_conversation(
    data: DirectConversationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation_id, created = conversation_service.create_direct_conversation(
        db, current_user.id, data.participant_id
    )
    return ConversationCreatedResponse(
        conversation_id=conversation_id,
        created=created,
        message="Conversation created" if created else "Conversation already exists",
    )


@router.post(
    "/conversations/group",
    response_model=ConversationCreatedResponse,
    status_code=201,
)
def create_group_conversation(
    data: GroupConversationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation_id = conversation_service.create_group_conversation(
        db, current_user.id, data.group_name, data.participant_ids, data.avatar_url
    )
    return ConversationCreatedResponse(
        conversation_id=conversation_id,
        created=True,
        message="Group conversation created",
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
def get_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ConversationResponse(
        conversation=conversation_service.get_conversation(db, conversation_id, current_user.id)
    )


@router.put("/conversations/{conversation_id}/name", response_model=StatusResponse)
def update_group_name(
    conversation_id: int,
    data: GroupNameUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation_service.update_group_name(db, conversation_id, current_user.id, data.name)
    return StatusResponse(message="Group name updated successfully")


@router.put("/conversations/{conversation_id}/avatar", response_model=StatusResponse)
def update_group_avatar(
    conversation_id: int,
    data: GroupAvatarUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation_service.update_group_avatar(db, conversation_id, current_user.id, data.avatar_url)
    return StatusResponse(message="Group avatar updated successfully")


@router.post("/conversations/{conversation_id}/members", response_model=StatusResponse, status_code=201)
def add_member(
    conversation_id: int,
    data: MemberAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation_service.add_member(db, conversation_id, current_user.id, data.member_id)
    return StatusResponse(message="Member added successfully")


@router.post("/conversations/{conversation_id}/leave", response_model=StatusResponse)
def leave_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation_service.leave_conversation(db, conversation_id, current_user.id)
    return StatusResponse(message="Left conversation")


@router.delete("/conversations/{conversation_id}", response_model=StatusResponse)
def delete_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conversation_service.delete_conversation(db, conversation_id, current_user.id)
    return StatusResponse(message="Conversation deleted successfully")


# ── Messages ─────────────────────────────────────────────────────


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=MessageListResponse,
)
def get_messages(
    conversation_id: int,
    page: int = Query(1),
    limit: int = Query(settings.messages_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """One page of history, oldest first within the page."""
    messages = message_service.get_messages(db, conversation_id, current_user.id, page, limit)
    return MessageListResponse(messages=messages, page=page, limit=limit)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageSentResponse,
    status_code=201,
)
def send_message(
    conversation_id: int,
    data: MessageCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: PushDispatcher = Depends(get_push_dispatcher),
):
    """Store the message; push notifications go out after the response."""
    message = message_service.send_message(
        db,
        conversation_id,
        current_user.id,
        data.content,
        data.message_type,
        data.is_important,
    )
    background_tasks.add_task(
        dispatcher.notify_new_message,
        conversation_id,
        current_user.id,
        message.sender.name,
        message.content,
    )
    return MessageSentResponse(message=message)


@router.post(
    "/conversations/{conversation_id}/read",
    response_model=MarkReadResponse,
)
def mark_as_read(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    marked = read_tracking.mark_as_read(db, conversation_id, current_user.id)
    return MarkReadResponse(messages_marked_read=marked)


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Unread messages across all of the caller's conversations."""
    return UnreadCountResponse(total_unread=read_tracking.total_unread(db, current_user.id))
