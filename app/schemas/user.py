from typing import Optional

from app.schemas.base import CamelModel


class UserIdentity(CamelModel):
    name: str
    username: str


class UserSummary(CamelModel):
    id: int
    name: str
    username: str
    email: str
    profile_picture: str
    user_type: str
    is_online: bool = False  # presence is not tracked


class UserSearchResponse(CamelModel):
    success: bool = True
    users: list[UserSummary]
    search_term: Optional[str] = None
