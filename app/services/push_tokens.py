"""Registry of device push tokens, one row per (user, token)."""

import logging
import re
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from app.core.errors import InvalidArgument
from app.models.push_token import PushToken

logger = logging.getLogger(__name__)

_UUID_TOKEN = re.compile(
    r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE
)


def is_push_token(value) -> bool:
    """True for tokens the Expo push service accepts.

    Either ``ExponentPushToken[...]`` / ``ExpoPushToken[...]`` or a bare UUID.
    """
    if not isinstance(value, str):
        return False
    if value.startswith(("ExponentPushToken[", "ExpoPushToken[")) and value.endswith("]"):
        return True
    return bool(_UUID_TOKEN.match(value))


def register_token(db: Session, user_id: int, push_token: str, user_type: str) -> tuple[PushToken, bool]:
    """Upsert a token for a user. Returns ``(row, created)``."""
    if not push_token or not user_type:
        raise InvalidArgument("pushToken and userType are required")
    if not is_push_token(push_token):
        raise InvalidArgument("Invalid Expo push token format")

    logger.info(f"Registering push token for user {user_id}: {push_token[:20]}...")

    token = (
        db.query(PushToken)
        .filter(PushToken.user_id == user_id, PushToken.push_token == push_token)
        .first()
    )
    created = token is None
    if created:
        token = PushToken(user_id=user_id, push_token=push_token, user_type=user_type)
        db.add(token)
    else:
        token.user_type = user_type
        token.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(token)
    return token, created


def list_tokens(db: Session, user_id: int) -> list[PushToken]:
    return (
        db.query(PushToken)
        .filter(PushToken.user_id == user_id)
        .order_by(PushToken.id)
        .all()
    )


def delete_token(db: Session, token_id: int, user_id: int) -> int:
    """Delete a token owned by ``user_id``.

    Someone else's (or a missing) token deletes nothing and is not an error,
    so callers cannot probe which ids exist.
    """
    deleted = (
        db.query(PushToken)
        .filter(PushToken.id == token_id, PushToken.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def remove_tokens(db: Session, tokens: Iterable[str]) -> int:
    """Drop tokens the push service reported as no longer registered."""
    stale = list(set(tokens))
    if not stale:
        return 0
    deleted = (
        db.query(PushToken)
        .filter(PushToken.push_token.in_(stale))
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Removed {deleted} invalid push token(s)")
    return deleted
