"""
Logging configuration for the JobRadar API.

Console output plus a rotating file log; secrets never reach either.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from app.core.config import LOG_DIR


def setup_logging(log_level: str = "INFO", log_dir: str = LOG_DIR):
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating log file
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    # Thread name matters here: scrape and match lanes log concurrently
    file_handler = RotatingFileHandler(
        log_path / "jobradar.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    root.addHandler(console_handler)
    root.addHandler(file_handler)

    for noisy in ("uvicorn", "uvicorn.access", "urllib3", "httpx", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


SENSITIVE_KEYS = (
    "password", "token", "secret", "api_key", "openai_api_key", "database_url",
)


def sanitize_log_data(data: dict) -> dict:
    """
    Return a copy of ``data`` with secret-looking values redacted.

    Board tokens are public identifiers and are left alone.
    """
    sanitized = data.copy()
    for key in sanitized:
        lowered = key.lower()
        if lowered.endswith("board_token"):
            continue
        if any(sensitive in lowered for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "***REDACTED***"
    return sanitized
