from datetime import datetime
from typing import Optional

from app.schemas.base import CamelModel


class PushTokenRegister(CamelModel):
    user_id: int
    push_token: str = ""
    user_type: str = ""


class PushTokenResponse(CamelModel):
    id: int
    user_id: int
    push_token: str
    user_type: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class PushTokenRegisterResponse(CamelModel):
    success: bool = True
    message: str
    token: PushTokenResponse


class PushTokenListResponse(CamelModel):
    success: bool = True
    tokens: list[PushTokenResponse]
