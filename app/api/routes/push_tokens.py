import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.core.errors import PermissionDenied
from app.db.database import get_db
from app.models.user import User
from app.schemas.base import StatusResponse
from app.schemas.push_token import (
    PushTokenListResponse,
    PushTokenRegister,
    PushTokenRegisterResponse,
    PushTokenResponse,
)
from app.services import push_tokens as push_token_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("/push-token", response_model=PushTokenRegisterResponse)
def register_push_token(
    data: PushTokenRegister,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Register (or refresh) a device token for the caller."""
    if data.user_id != current_user.id:
        raise PermissionDenied("Cannot register push tokens for another user")

    token, created = push_token_service.register_token(
        db, current_user.id, data.push_token, data.user_type
    )
    return PushTokenRegisterResponse(
        message="Push token registered successfully" if created else "Push token updated successfully",
        token=PushTokenResponse.model_validate(token),
    )


@router.get("/push-tokens", response_model=PushTokenListResponse)
def list_push_tokens(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tokens = push_token_service.list_tokens(db, current_user.id)
    return PushTokenListResponse(tokens=[PushTokenResponse.model_validate(t) for t in tokens])


@router.delete("/push-tokens/{token_id}", response_model=StatusResponse)
def delete_push_token(
    token_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deleted = push_token_service.delete_token(db, token_id, current_user.id)
    if not deleted:
        logger.debug(f"Push token {token_id} not owned by user {current_user.id}, nothing deleted")
    return StatusResponse(message="Push token deleted successfully")
