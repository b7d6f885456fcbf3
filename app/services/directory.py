"""User directory resolver.

Turns a user row into a display identity by consulting the profile table
that matches its user type. Lookups never raise; every miss falls back to
the email local part and finally to an "Unknown User" placeholder.
"""

import logging
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session, selectinload

from app.models.user import User, UserType
from app.schemas.user import UserIdentity, UserSummary

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown User"
UNKNOWN_USERNAME = "unknown"


def _full_name(first: Optional[str], last: Optional[str]) -> str:
    return f"{first or ''} {last or ''}".strip()


def _student_identity(user: User) -> Optional[tuple[str, str]]:
    profile = user.student_profile
    if not profile:
        return None
    name = _full_name(profile.first_name, profile.last_name)
    return name, profile.id_number or name


def _coordinator_identity(user: User) -> Optional[tuple[str, str]]:
    profile = user.coordinator_profile
    if not profile:
        return None
    name = _full_name(profile.first_name, profile.last_name)
    return name, f"{profile.first_name or ''}.{profile.last_name or ''}"


def _company_identity(user: User) -> Optional[tuple[str, str]]:
    profile = user.company_profile
    if not profile:
        return None
    return profile.company_name or "", profile.company_name or ""


_PROFILE_RESOLVERS: dict[UserType, Callable[[User], Optional[tuple[str, str]]]] = {
    UserType.STUDENT: _student_identity,
    UserType.COORDINATOR: _coordinator_identity,
    UserType.COMPANY: _company_identity,
}

# Loader options that pull every profile table in one round trip per type
PROFILE_LOAD_OPTIONS = (
    selectinload(User.student_profile),
    selectinload(User.coordinator_profile),
    selectinload(User.company_profile),
)


def _email_local_part(user: Optional[User]) -> str:
    if user is None or not user.email:
        return ""
    return user.email.split("@")[0]


def resolve_identity(user: Optional[User]) -> UserIdentity:
    """Resolve ``{name, username}`` for a user row (or None)."""
    name = username = ""
    if user is not None:
        resolver = _PROFILE_RESOLVERS.get(user.user_type)
        if resolver:
            try:
                resolved = resolver(user)
            except Exception:
                logger.warning(f"Profile lookup failed for user {user.id}", exc_info=True)
                resolved = None
            if resolved:
                name, username = resolved

    fallback = _email_local_part(user)
    return UserIdentity(
        name=name or fallback or UNKNOWN_NAME,
        username=username or fallback or UNKNOWN_USERNAME,
    )


def user_summary(user: Optional[User], user_id: Optional[int] = None) -> UserSummary:
    """Display record for participant lists, senders and search results."""
    identity = resolve_identity(user)
    return UserSummary(
        id=user.id if user is not None else (user_id or 0),
        name=identity.name,
        username=identity.username,
        email=(user.email or "") if user is not None else "",
        profile_picture=(user.profile_picture or "") if user is not None else "",
        user_type=user.user_type.value.lower() if user is not None else UNKNOWN_USERNAME,
    )


def load_users(db: Session, user_ids: Iterable[int]) -> dict[int, User]:
    """Batch-fetch users with their profiles eager-loaded."""
    ids = set(user_ids)
    if not ids:
        return {}
    users = (
        db.query(User)
        .options(*PROFILE_LOAD_OPTIONS)
        .filter(User.id.in_(ids))
        .all()
    )
    return {u.id: u for u in users}


def resolve_user(db: Session, user_id: int) -> UserIdentity:
    """Resolve a bare user id; unknown ids yield the placeholder identity."""
    return resolve_identity(load_users(db, [user_id]).get(user_id))


def resolve_users(db: Session, user_ids: Iterable[int]) -> dict[int, UserSummary]:
    ids = list(user_ids)
    users = load_users(db, ids)
    return {uid: user_summary(users.get(uid), uid) for uid in ids}
