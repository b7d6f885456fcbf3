"""Message store: sending and paged history."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidArgument
from app.models.conversation import Conversation
from app.models.message import Message, MessageReadReceipt, MessageType
from app.schemas.message import MessageResponse
from app.schemas.user import UserSummary
from app.services.directory import resolve_users
from app.services.read_tracking import require_participant
from app.services.timestamps import format_relative

logger = logging.getLogger(__name__)


def _to_response(msg: Message, sender: UserSummary, is_read: bool, now: datetime) -> MessageResponse:
    return MessageResponse(
        id=msg.id,
        conversation_id=msg.conversation_id,
        sender_id=msg.sender_id,
        sender=sender,
        content=msg.content,
        message_type=msg.message_type,
        is_important=bool(msg.is_important),
        is_read=is_read,
        timestamp=format_relative(msg.created_at, now),
        created_at=msg.created_at,
    )


def send_message(
    db: Session,
    conversation_id: int,
    sender_id: int,
    content: Optional[str],
    message_type=MessageType.TEXT,
    is_important: bool = False,
) -> MessageResponse:
    """Append a message and bump the conversation's updated_at.

    Nothing is written unless the content is non-empty and the sender is an
    active participant. Identical content sent twice is stored twice.
    """
    content = (content or "").strip()
    if not content:
        raise InvalidArgument("Message content is required")
    try:
        message_type = MessageType(message_type or MessageType.TEXT)
    except ValueError:
        raise InvalidArgument(f"Unknown message type: {message_type}")

    require_participant(db, conversation_id, sender_id)

    msg = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        message_type=message_type,
        is_important=bool(is_important),
    )
    db.add(msg)
    db.query(Conversation).filter(Conversation.id == conversation_id).update(
        {Conversation.updated_at: datetime.now(timezone.utc)}, synchronize_session=False
    )
    db.commit()
    db.refresh(msg)

    logger.info(f"User {sender_id} sent message {msg.id} to conversation {conversation_id}")
    sender = resolve_users(db, [sender_id])[sender_id]
    # A sender never holds receipts for their own messages; is_read is from their side
    return _to_response(msg, sender, True, datetime.now(timezone.utc))


def get_messages(
    db: Session,
    conversation_id: int,
    requester_id: int,
    page: int = 1,
    page_size: Optional[int] = None,
) -> list[MessageResponse]:
    """One page of history in chronological order.

    Page 1 holds the newest ``page_size`` messages; higher pages walk back in
    time. Ties on created_at are broken by id.
    """
    if page is None or page < 1:
        raise InvalidArgument("Page must be 1 or greater")
    if page_size is None:
        page_size = settings.messages_page_size
    if page_size < 1 or page_size > settings.messages_max_page_size:
        raise InvalidArgument(
            f"Limit must be between 1 and {settings.messages_max_page_size}"
        )

    require_participant(db, conversation_id, requester_id)

    newest_first = (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(desc(Message.created_at), desc(Message.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    messages = list(reversed(newest_first))
    if not messages:
        return []

    message_ids = [m.id for m in messages]
    read_ids = {
        mid
        for (mid,) in db.query(MessageReadReceipt.message_id)
        .filter(
            MessageReadReceipt.user_id == requester_id,
            MessageReadReceipt.message_id.in_(message_ids),
        )
        .all()
    }
    senders = resolve_users(db, {m.sender_id for m in messages})
    now = datetime.now(timezone.utc)

    return [
        _to_response(m, senders[m.sender_id], m.sender_id == requester_id or m.id in read_ids, now)
        for m in messages
    ]
