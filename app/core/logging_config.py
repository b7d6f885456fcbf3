"""
Logging configuration for the messaging service.

Console output plus three rotating files (10 MB each): everything, errors
only, and push delivery. Push failures never reach an HTTP response, so the
push log is the only place they show up.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path(__file__).parent.parent.parent / "logs"

MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers whose records also go to the push delivery log
PUSH_LOGGERS = ("app.services.push_service", "app.services.push_tokens")

_NOISY_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,  # replaced by RequestLogger
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def get_file_handler(filename: str, level: int = logging.DEBUG, log_dir: Path | None = None) -> RotatingFileHandler:
    directory = log_dir or LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        directory / filename,
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def get_console_handler(level: int = logging.INFO) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def resolve_level(log_level: str, environment: str) -> int:
    """Explicit level wins; otherwise WARNING in production and DEBUG elsewhere."""
    if not log_level:
        log_level = "WARNING" if environment == "production" else "DEBUG"
    return getattr(logging, log_level.upper(), logging.INFO)


def setup_logging(
    app_name: str = "messaging",
    log_level: str = "",
    environment: str = "development",
    enable_console: bool = True,
    enable_file: bool = True,
    log_dir: Path | None = None,
) -> logging.Logger:
    """
    Configure the root logger and the push delivery log.

    Args:
        app_name: Prefix for log file names
        log_level: Minimum console level; empty means derived from environment
        environment: development or production
        enable_console: Log to stdout
        enable_file: Write rotating log files
        log_dir: Directory for log files (defaults to ./logs)

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter
    root_logger.handlers.clear()

    if enable_console:
        root_logger.addHandler(get_console_handler(resolve_level(log_level, environment)))

    if enable_file:
        root_logger.addHandler(get_file_handler(f"{app_name}.log", logging.DEBUG, log_dir))
        root_logger.addHandler(get_file_handler(f"{app_name}_error.log", logging.ERROR, log_dir))

        push_handler = get_file_handler(f"{app_name}_push.log", logging.DEBUG, log_dir)
        for name in PUSH_LOGGERS:
            push_logger = logging.getLogger(name)
            push_logger.handlers.clear()
            push_logger.addHandler(push_handler)

    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class RequestLogger:
    """One access line per HTTP request, leveled by status code."""

    # Polled by load balancers; only logged at DEBUG
    QUIET_PATHS = frozenset({"/health"})

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        client_ip: str = None,
        user_id: int = None,
        request_id: str = None,
    ):
        extra_info = []
        if request_id:
            extra_info.append(f"rid={request_id}")
        if client_ip:
            extra_info.append(f"ip={client_ip}")
        if user_id:
            extra_info.append(f"user={user_id}")

        line = f"{method} {path} -> {status_code} ({duration_ms:.2f}ms) {' | '.join(extra_info)}".rstrip()

        if status_code >= 500:
            self.logger.error(line)
        elif status_code >= 400:
            self.logger.warning(line)
        elif path in self.QUIET_PATHS:
            self.logger.debug(line)
        else:
            self.logger.info(line)
