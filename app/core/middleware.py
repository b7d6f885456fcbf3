"""HTTP middleware: request ids with access logging, and security headers."""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings
from app.core.logging_config import RequestLogger

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and write one access line when it finishes.

    A client-supplied X-Request-ID is kept so mobile logs can be correlated
    with ours; otherwise a new one is generated.
    """

    def __init__(self, app, request_logger: RequestLogger):
        super().__init__(app)
        self.request_logger = request_logger

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        self.request_logger.log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
            client_ip=request.client.host if request.client else "unknown",
            # Set by get_current_user on authenticated routes
            user_id=getattr(request.state, "user_id", None),
            request_id=request_id,
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """JSON-only API: no framing, no sniffing, no caching of conversation data."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
