import secrets

from pydantic_settings import BaseSettings


def _generate_dev_secret() -> str:
    """Generate a random secret for local development only."""
    return secrets.token_hex(32)


class Settings(BaseSettings):
    # App
    app_name: str = "OJT Messaging"
    environment: str = "development"  # development, production
    log_level: str = ""  # DEBUG, INFO, WARNING, ERROR, CRITICAL (empty = auto based on environment)
    log_to_file: bool = True  # Enable file logging
    log_dir: str = ""  # empty = ./logs next to the app package

    # Database (SQLite for local dev, PostgreSQL for production)
    database_url: str = "sqlite:///./messaging.db"

    # JWT: tokens are issued by the auth service and only verified here.
    # In development, a random key is generated per-process if not set.
    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Frontend
    frontend_url: str = "http://localhost:8081"

    # CORS (comma-separated origins, empty = local defaults)
    allowed_origins: str = ""

    # Push delivery (Expo push service)
    push_enabled: bool = True
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_access_token: str = ""
    push_timeout_seconds: float = 10.0
    push_chunk_size: int = 100  # Expo accepts at most 100 messages per request
    push_preview_length: int = 100

    # Messaging limits
    search_result_limit: int = 10
    search_min_length: int = 2
    messages_page_size: int = 50
    messages_max_page_size: int = 100

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

# Validate secret key
# True when the key below was generated for this process only; tokens it signs die with the process
SECRET_KEY_IS_EPHEMERAL = False
_KNOWN_WEAK_KEYS = {"your-secret-key-change-in-production", "changeme", "secret", ""}

if settings.secret_key in _KNOWN_WEAK_KEYS:
    if settings.environment == "production":
        raise RuntimeError(
            "SECRET_KEY is not set or uses a known weak default. "
            "Set a strong SECRET_KEY env var (e.g. `openssl rand -hex 32`)."
        )
    # Development: generate a random key so the app can start
    settings.secret_key = _generate_dev_secret()
    SECRET_KEY_IS_EPHEMERAL = True
