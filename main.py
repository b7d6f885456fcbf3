import traceback
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect as sa_inspect, text

from app.core.config import settings
from app.core.errors import MessagingError, messaging_error_handler
from app.core.logging_config import setup_logging, get_logger, RequestLogger
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.db.database import Base, engine
from app.api.routes import messaging, push_tokens

setup_logging(
    app_name="messaging",
    log_level=settings.log_level,
    environment=settings.environment,
    enable_console=True,
    enable_file=settings.log_to_file,
    log_dir=Path(settings.log_dir) if settings.log_dir else None,
)

logger = get_logger(__name__)

logger.info(f"Starting {settings.app_name} ({settings.environment})...")

# Models must be imported before create_all so every table is registered
from app.models import (  # noqa: F401, E402
    User, Student, Coordinator, Company,
    Conversation, ConversationParticipant, Message, MessageReadReceipt, PushToken,
)
Base.metadata.create_all(bind=engine)
logger.info("Database tables created/verified")


# (table, columns, index name) for tables older deployments created without a unique key
_UNIQUE_KEYS = [
    ("push_tokens", ["user_id", "push_token"], "uq_push_tokens_user_token"),
]


def _apply_unique_keys(conn, inspector):
    """Collapse duplicate rows (newest id wins) and add the missing unique index. Idempotent."""
    table_names = set(inspector.get_table_names())
    for table, cols, index_name in _UNIQUE_KEYS:
        if table not in table_names:
            continue
        known = {idx.get("name") for idx in inspector.get_indexes(table)}
        known |= {uc.get("name") for uc in inspector.get_unique_constraints(table)}
        if index_name in known:
            continue

        col_list = ", ".join(cols)
        removed = conn.execute(text(
            f"DELETE FROM {table} WHERE id NOT IN ("
            f"SELECT MAX(id) FROM {table} GROUP BY {col_list})"
        )).rowcount
        conn.execute(text(f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name} ON {table}({col_list})"))
        logger.info(f"Added unique index {index_name} on {table}, removed {removed} duplicate rows")
    conn.commit()


with engine.connect() as conn:
    _apply_unique_keys(conn, sa_inspect(engine))


app = FastAPI(
    title=settings.app_name,
    description="Conversations, read tracking and push notifications for the OJT platform",
    version="0.1.0",
)

app.add_exception_handler(MessagingError, messaging_error_handler)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log the traceback; the client only sees a generic failure."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}\n"
        f"{traceback.format_exc()}"
    )
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "InternalError", "message": "Internal server error"},
    )


if settings.allowed_origins:
    cors_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
elif settings.environment == "production":
    cors_origins = [settings.frontend_url]
else:
    # Expo dev server and Expo web
    cors_origins = ["http://localhost:8081", "http://localhost:19006", settings.frontend_url]

# Added last-to-first: request logging wraps everything, so it sees final status codes
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware, request_logger=RequestLogger(get_logger("messaging.requests")))

app.include_router(messaging.router, prefix="/api")
app.include_router(push_tokens.router, prefix="/api")
logger.info("Messaging and notification routes registered at /api")


@app.get("/health")
def health_check():
    return {"status": "healthy"}
