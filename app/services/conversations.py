"""Conversation store: creation, membership, listing and deletion."""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import and_, desc, func as sa_func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, selectinload

from app.core.config import settings
from app.core.errors import Conflict, InvalidArgument, NotFound, PermissionDenied
from app.models.conversation import Conversation, ConversationParticipant, ConversationType
from app.models.message import Message, MessageReadReceipt
from app.models.user import Company, Coordinator, Student, User, UserType
from app.schemas.conversation import ConversationSummary, LastMessage, ParticipantResponse
from app.schemas.user import UserSummary
from app.services.directory import PROFILE_LOAD_OPTIONS, resolve_users, user_summary
from app.services.read_tracking import get_active_participant, require_participant, unread_counts
from app.services.timestamps import format_relative

logger = logging.getLogger(__name__)


def _get_conversation(db: Session, conversation_id: int) -> Conversation:
    conv = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conv:
        raise NotFound("Conversation not found")
    return conv


def _require_group(conv: Conversation, action: str) -> None:
    if conv.type != ConversationType.GROUP:
        raise InvalidArgument(f"Can only {action} group conversations")


def _existing_user_ids(db: Session, user_ids: Iterable[int]) -> set[int]:
    ids = set(user_ids)
    if not ids:
        return set()
    return {uid for (uid,) in db.query(User.id).filter(User.id.in_(ids)).all()}


def _commit_new_conversation(db: Session, conv: Conversation, member_ids: list[int]) -> int:
    """Insert a conversation and its participants in one transaction."""
    try:
        db.add(conv)
        db.flush()
        for uid in member_ids:
            db.add(ConversationParticipant(conversation_id=conv.id, user_id=uid, is_active=True))
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Conversation creation rolled back: {e.orig}")
        raise NotFound("One or more participants do not exist", detail=str(e.orig))
    return conv.id


# ── Search ───────────────────────────────────────────────────────


def search_users(db: Session, search_term: Optional[str], exclude_user_id: int) -> list[UserSummary]:
    """Active users (not the caller, not system admins) matching the term."""
    term = (search_term or "").strip()
    if len(term) < settings.search_min_length:
        raise InvalidArgument(
            f"Search term must be at least {settings.search_min_length} characters long"
        )

    pattern = f"%{term.lower()}%"
    match_columns = [
        User.email,
        Student.first_name,
        Student.last_name,
        Student.id_number,
        Student.first_name + " " + Student.last_name,
        Coordinator.first_name,
        Coordinator.last_name,
        Coordinator.first_name + " " + Coordinator.last_name,
        Coordinator.first_name + "." + Coordinator.last_name,
        Company.company_name,
    ]

    users = (
        db.query(User)
        .options(*PROFILE_LOAD_OPTIONS)
        .outerjoin(Student, Student.user_id == User.id)
        .outerjoin(Coordinator, Coordinator.user_id == User.id)
        .outerjoin(Company, Company.user_id == User.id)
        .filter(
            User.id != exclude_user_id,
            User.user_type != UserType.SYSTEM_ADMIN,
            User.is_active == True,  # noqa: E712
            or_(*(sa_func.lower(col).like(pattern) for col in match_columns)),
        )
        .order_by(User.id)
        .limit(settings.search_result_limit)
        .all()
    )

    logger.debug(f"Search '{term}' by user {exclude_user_id} found {len(users)} users")
    return [user_summary(u) for u in users]


# ── Creation ─────────────────────────────────────────────────────


def find_direct_conversation(db: Session, user_a: int, user_b: int) -> Optional[int]:
    """Id of an existing direct conversation where both users are active."""
    part_a = aliased(ConversationParticipant)
    part_b = aliased(ConversationParticipant)
    row = (
        db.query(Conversation.id)
        .join(part_a, and_(
            part_a.conversation_id == Conversation.id,
            part_a.user_id == user_a,
            part_a.is_active == True,  # noqa: E712
        ))
        .join(part_b, and_(
            part_b.conversation_id == Conversation.id,
            part_b.user_id == user_b,
            part_b.is_active == True,  # noqa: E712
        ))
        .filter(Conversation.type == ConversationType.DIRECT)
        .order_by(Conversation.id)
        .first()
    )
    return row[0] if row else None


def create_direct_conversation(db: Session, caller_id: int, peer_id: int) -> tuple[int, bool]:
    """Return ``(conversation_id, created)``; an existing pair is reused.

    Two concurrent first calls can both miss the lookup and create twice.
    That race is accepted rather than serialised.
    """
    if peer_id == caller_id:
        raise InvalidArgument("Cannot start a direct conversation with yourself")

    existing_id = find_direct_conversation(db, caller_id, peer_id)
    if existing_id:
        logger.info(f"Direct conversation {existing_id} already exists for {caller_id} and {peer_id}")
        return existing_id, False

    if peer_id not in _existing_user_ids(db, [peer_id]):
        raise NotFound("Participant not found")

    conv = Conversation(type=ConversationType.DIRECT, created_by=caller_id)
    conversation_id = _commit_new_conversation(db, conv, [caller_id, peer_id])
    logger.info(f"Created direct conversation {conversation_id} between {caller_id} and {peer_id}")
    return conversation_id, True


def create_group_conversation(
    db: Session,
    caller_id: int,
    name: Optional[str],
    participant_ids: Optional[list[int]],
    avatar_url: Optional[str] = None,
) -> int:
    name = (name or "").strip()
    if not name or not participant_ids:
        raise InvalidArgument("Group name and participant IDs are required")

    # Creator first, exactly once; the rest in request order without repeats
    member_ids = [caller_id]
    for uid in participant_ids:
        if uid not in member_ids:
            member_ids.append(uid)
    if len(member_ids) < 2:
        raise InvalidArgument("A group needs at least one participant besides the creator")

    missing = set(member_ids) - _existing_user_ids(db, member_ids)
    if missing:
        raise NotFound(f"Participants not found: {', '.join(str(m) for m in sorted(missing))}")

    conv = Conversation(
        type=ConversationType.GROUP,
        name=name,
        avatar_url=avatar_url or None,
        created_by=caller_id,
    )
    conversation_id = _commit_new_conversation(db, conv, member_ids)
    logger.info(
        f"Created group conversation {conversation_id} '{name}' with {len(member_ids)} members"
    )
    return conversation_id


# ── Listing ──────────────────────────────────────────────────────


def _last_messages(db: Session, conversation_ids: list[int]) -> dict[int, Message]:
    if not conversation_ids:
        return {}
    last_msg_subq = (
        db.query(
            Message.conversation_id,
            sa_func.max(Message.id).label("max_id"),
        )
        .filter(Message.conversation_id.in_(conversation_ids))
        .group_by(Message.conversation_id)
        .subquery()
    )
    rows = db.query(Message).join(last_msg_subq, Message.id == last_msg_subq.c.max_id).all()
    return {m.conversation_id: m for m in rows}


def _build_summary(
    conv: Conversation,
    people: dict[int, UserSummary],
    last_msg: Optional[Message],
    unread: int,
    now: datetime,
) -> ConversationSummary:
    participants = [
        ParticipantResponse(
            user_id=p.user_id,
            is_active=p.is_active,
            joined_at=p.joined_at,
            user=people[p.user_id],
        )
        for p in conv.participants
    ]
    last_message = None
    if last_msg:
        last_message = LastMessage(
            id=last_msg.id,
            sender_id=last_msg.sender_id,
            message=last_msg.content,
            message_type=last_msg.message_type,
            timestamp=format_relative(last_msg.created_at, now),
            created_at=last_msg.created_at,
        )
    return ConversationSummary(
        id=conv.id,
        type=conv.type,
        name=conv.display_name,
        avatar_url=conv.avatar_url,
        created_by=conv.created_by,
        participants=participants,
        last_message=last_message,
        unread_count=unread,
        created_at=conv.created_at,
        updated_at=conv.updated_at,
    )


def _summaries(db: Session, conversations: list[Conversation], user_id: int) -> list[ConversationSummary]:
    if not conversations:
        return []
    conv_ids = [c.id for c in conversations]
    people = resolve_users(db, {p.user_id for c in conversations for p in c.participants})
    last_msgs = _last_messages(db, conv_ids)
    unread = unread_counts(db, conv_ids, user_id)
    now = datetime.now(timezone.utc)
    return [
        _build_summary(c, people, last_msgs.get(c.id), unread.get(c.id, 0), now)
        for c in conversations
    ]


def list_conversations(db: Session, user_id: int) -> list[ConversationSummary]:
    """Every conversation the user is active in, most recently updated first."""
    active_ids = select(ConversationParticipant.conversation_id).where(
        ConversationParticipant.user_id == user_id,
        ConversationParticipant.is_active == True,  # noqa: E712
    )
    conversations = (
        db.query(Conversation)
        .options(selectinload(Conversation.participants))
        .filter(Conversation.id.in_(active_ids))
        .order_by(desc(Conversation.updated_at), desc(Conversation.id))
        .all()
    )
    return _summaries(db, conversations, user_id)


def get_conversation(db: Session, conversation_id: int, user_id: int) -> ConversationSummary:
    conv = _get_conversation(db, conversation_id)
    require_participant(db, conversation_id, user_id)
    return _summaries(db, [conv], user_id)[0]


# ── Group management ─────────────────────────────────────────────


def update_group_name(db: Session, conversation_id: int, caller_id: int, name: Optional[str]) -> Conversation:
    name = (name or "").strip()
    if not name:
        raise InvalidArgument("Group name is required")
    conv = _get_conversation(db, conversation_id)
    if not get_active_participant(db, conversation_id, caller_id):
        raise PermissionDenied("You are not a member of this group")
    _require_group(conv, "update names for")

    conv.name = name
    db.commit()
    db.refresh(conv)
    logger.info(f"User {caller_id} renamed conversation {conversation_id}")
    return conv


def update_group_avatar(db: Session, conversation_id: int, caller_id: int, avatar_url: Optional[str]) -> Conversation:
    if not avatar_url:
        raise InvalidArgument("Avatar URL is required")
    conv = _get_conversation(db, conversation_id)
    if not get_active_participant(db, conversation_id, caller_id):
        raise PermissionDenied("You are not a participant in this group")
    _require_group(conv, "update avatars for")

    conv.avatar_url = avatar_url
    db.commit()
    db.refresh(conv)
    return conv


def add_member(db: Session, conversation_id: int, caller_id: int, new_user_id: int) -> ConversationParticipant:
    conv = _get_conversation(db, conversation_id)
    if not get_active_participant(db, conversation_id, caller_id):
        raise PermissionDenied("You are not a member of this group")
    _require_group(conv, "add members to")
    if new_user_id not in _existing_user_ids(db, [new_user_id]):
        raise NotFound("User not found")

    member = (
        db.query(ConversationParticipant)
        .filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == new_user_id,
        )
        .first()
    )
    if member and member.is_active:
        raise Conflict("User is already a member of this group")

    now = datetime.now(timezone.utc)
    if member:
        # Soft-removed earlier: re-activate instead of inserting a second row
        member.is_active = True
        member.joined_at = now
    else:
        member = ConversationParticipant(
            conversation_id=conversation_id, user_id=new_user_id, is_active=True, joined_at=now
        )
        db.add(member)
    db.commit()
    logger.info(f"User {caller_id} added {new_user_id} to conversation {conversation_id}")
    return member


def leave_conversation(db: Session, conversation_id: int, caller_id: int) -> None:
    """Soft-remove the caller from a group. Direct conversations keep both members."""
    conv = _get_conversation(db, conversation_id)
    participant = require_participant(db, conversation_id, caller_id)
    _require_group(conv, "leave")

    active = (
        db.query(sa_func.count())
        .select_from(ConversationParticipant)
        .filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.is_active == True,  # noqa: E712
        )
        .scalar()
    )
    if active <= 1:
        raise Conflict("The last participant cannot leave; delete the conversation instead")

    participant.is_active = False
    db.commit()
    logger.info(f"User {caller_id} left conversation {conversation_id}")


def delete_conversation(db: Session, conversation_id: int, caller_id: int) -> None:
    """Delete receipts, messages, participants, then the conversation itself."""
    _get_conversation(db, conversation_id)
    require_participant(db, conversation_id, caller_id)

    message_ids = select(Message.id).where(Message.conversation_id == conversation_id)
    receipts = (
        db.query(MessageReadReceipt)
        .filter(MessageReadReceipt.message_id.in_(message_ids))
        .delete(synchronize_session=False)
    )
    messages = (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .delete(synchronize_session=False)
    )
    db.query(ConversationParticipant).filter(
        ConversationParticipant.conversation_id == conversation_id
    ).delete(synchronize_session=False)
    db.query(Conversation).filter(Conversation.id == conversation_id).delete(synchronize_session=False)
    db.commit()

    logger.info(
        f"User {caller_id} deleted conversation {conversation_id} "
        f"({messages} messages, {receipts} receipts)"
    )
