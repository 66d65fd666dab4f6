"""
Logging configuration

Every record passes through a redaction patch: provider error bodies and
OAuth payloads can echo credentials back, and none may reach a sink.
"""
from loguru import logger
import logging
import re
import sys
from app.config import get_settings

settings = get_settings()

# key=value, "key": "value" and Authorization header forms
SECRET_PATTERN = re.compile(
    r'(?P<prefix>"?\b(?:access_token|refresh_token|id_token|client_secret|code)\b"?\s*[:=]\s*"?)'
    r'(?P<value>[^"&\s,}]+)'
)
BEARER_PATTERN = re.compile(r"(?P<prefix>Bearer\s+)(?P<value>[A-Za-z0-9._\-~+/]+=*)")

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "sqlalchemy.engine", "uvicorn.access")


def mask_secret(value: str) -> str:
    """Show the first 4 characters only"""
    if not value:
        return "(empty)"
    return value[:4] + "****" if len(value) > 4 else "****"


def redact(message: str) -> str:
    def _sub(match):
        return match.group("prefix") + mask_secret(match.group("value"))

    return BEARER_PATTERN.sub(_sub, SECRET_PATTERN.sub(_sub, message))


def _redact_record(record):
    record["message"] = redact(record["message"])


def setup_logger():
    """Configure logger with appropriate settings"""
    logger.remove()  # Remove default handler

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    patched = logger.patch(_redact_record)

    # Console logging
    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=settings.log_level
    )

    if not settings.log_to_file:
        return patched

    logger.add(
        "logs/content_engine_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level="INFO"
    )

    # Token refresh and provider failures land here
    logger.add(
        "logs/errors_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="90 days",
        level="ERROR"
    )

    return patched


log = setup_logger()
