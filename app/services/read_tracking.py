"""Read-tracking engine.

Unread state is never cached: it is always the set of messages sent by
someone else in the conversation minus those the user holds a receipt for.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import and_, exists, func as sa_func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import PermissionDenied
from app.models.conversation import ConversationParticipant
from app.models.message import Message, MessageReadReceipt

logger = logging.getLogger(__name__)


def _unread_filter(user_id: int):
    """Criteria selecting messages ``user_id`` has not read."""
    receipt_exists = exists().where(
        and_(
            MessageReadReceipt.message_id == Message.id,
            MessageReadReceipt.user_id == user_id,
        )
    )
    return and_(Message.sender_id != user_id, ~receipt_exists)


def get_active_participant(db: Session, conversation_id: int, user_id: int):
    return (
        db.query(ConversationParticipant)
        .filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
            ConversationParticipant.is_active == True,  # noqa: E712
        )
        .first()
    )


def require_participant(db: Session, conversation_id: int, user_id: int) -> ConversationParticipant:
    participant = get_active_participant(db, conversation_id, user_id)
    if participant is None:
        raise PermissionDenied("Access denied to this conversation")
    return participant


def unread_count(db: Session, conversation_id: int, user_id: int) -> int:
    return (
        db.query(sa_func.count(Message.id))
        .filter(Message.conversation_id == conversation_id, _unread_filter(user_id))
        .scalar()
    ) or 0


def unread_counts(db: Session, conversation_ids: Iterable[int], user_id: int) -> dict[int, int]:
    """Unread count per conversation in one grouped query; absent ids are 0."""
    ids = list(conversation_ids)
    if not ids:
        return {}
    rows = (
        db.query(Message.conversation_id, sa_func.count(Message.id))
        .filter(Message.conversation_id.in_(ids), _unread_filter(user_id))
        .group_by(Message.conversation_id)
        .all()
    )
    counts = {cid: 0 for cid in ids}
    counts.update({cid: cnt for cid, cnt in rows})
    return counts


def has_unread(db: Session, conversation_id: int, user_id: int) -> bool:
    """Existence check used to gate push delivery."""
    stmt = select(
        exists().where(
            and_(Message.conversation_id == conversation_id, _unread_filter(user_id))
        )
    )
    return bool(db.execute(stmt).scalar())


def total_unread(db: Session, user_id: int) -> int:
    """Unread messages across every conversation the user is active in."""
    active_ids = select(ConversationParticipant.conversation_id).where(
        ConversationParticipant.user_id == user_id,
        ConversationParticipant.is_active == True,  # noqa: E712
    )
    return (
        db.query(sa_func.count(Message.id))
        .filter(Message.conversation_id.in_(active_ids), _unread_filter(user_id))
        .scalar()
    ) or 0


def receipt_count(db: Session, conversation_id: int, user_id: int) -> int:
    return (
        db.query(sa_func.count(MessageReadReceipt.message_id))
        .join(Message, Message.id == MessageReadReceipt.message_id)
        .filter(
            Message.conversation_id == conversation_id,
            MessageReadReceipt.user_id == user_id,
        )
        .scalar()
    ) or 0


def _insert_receipts(db: Session, rows: list[dict]) -> int:
    """Insert receipts, skipping any that already exist. Returns rows inserted."""
    dialect = db.get_bind().dialect.name
    if dialect in ("sqlite", "postgresql"):
        insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
        stmt = (
            insert(MessageReadReceipt)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["message_id", "user_id"])
        )
        result = db.execute(stmt)
        return max(result.rowcount or 0, 0)

    inserted = 0
    for row in rows:
        try:
            with db.begin_nested():
                db.add(MessageReadReceipt(**row))
                db.flush()
            inserted += 1
        except IntegrityError:
            # Another request recorded this receipt first
            continue
    return inserted


def mark_as_read(db: Session, conversation_id: int, user_id: int) -> int:
    """Record receipts for every currently-unread message and bump last_read_at.

    Safe to repeat: a second call finds nothing unread and inserts nothing.
    """
    participant = require_participant(db, conversation_id, user_id)

    unread_ids = [
        mid
        for (mid,) in db.query(Message.id)
        .filter(Message.conversation_id == conversation_id, _unread_filter(user_id))
        .all()
    ]

    inserted = 0
    if unread_ids:
        now = datetime.now(timezone.utc)
        inserted = _insert_receipts(
            db,
            [{"message_id": mid, "user_id": user_id, "read_at": now} for mid in unread_ids],
        )

    participant.last_read_at = datetime.now(timezone.utc)
    db.commit()

    logger.debug(
        f"Marked {inserted} messages as read in conversation {conversation_id} for user {user_id}"
    )
    return inserted
