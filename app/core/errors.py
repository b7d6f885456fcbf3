"""Messaging error taxonomy and its HTTP rendering."""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class MessagingError(Exception):
    """Base class for rejected messaging operations."""

    kind = "Error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class InvalidArgument(MessagingError):
    kind = "InvalidArgument"
    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDenied(MessagingError):
    kind = "PermissionDenied"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(MessagingError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(MessagingError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT


async def messaging_error_handler(request: Request, exc: MessagingError) -> JSONResponse:
    """Render a MessagingError as a structured failure body."""
    logger.info(
        f"{request.method} {request.url.path} rejected: {exc.kind} ({exc.message})"
    )
    content = {"success": False, "error": exc.kind, "message": exc.message}
    if exc.detail:
        content["detail"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=content)
