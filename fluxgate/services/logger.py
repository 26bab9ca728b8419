"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from fluxgate.config import settings

# Remove default handler
logger.remove()

# Add console handler with color
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

if settings.log_to_file:
    LOG_DIR = Path(settings.log_dir)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(
        LOG_DIR / "fluxgate_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="00:00",  # New file at midnight
        retention="7 days",
        compression="zip",
    )

# Reduce noise from framework/network libraries
for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "hpack",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def log_upstream_call(
    url: str,
    status_code: int = 0,
    duration_ms: int = 0,
    content_type: str = "",
    error: Optional[str] = None,
) -> None:
    """Log one outbound fetch."""
    call_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "url": url,
        "status_code": status_code,
        "content_type": content_type,
        "duration_ms": duration_ms,
        "error": error,
    }
    if error:
        logger.error(f"UPSTREAM_CALL_FAILED: {call_data}")
    else:
        logger.info(f"UPSTREAM_CALL: {call_data}")


def log_request(
    url: str,
    output_format: str,
    status: str,
    duration_ms: int = 0,
    error: Optional[str] = None,
) -> None:
    """Log a proxy request outcome."""
    request_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "url": url,
        "format": output_format,
        "status": status,
        "duration_ms": duration_ms,
        "error": error,
    }
    if error:
        logger.warning(f"PROXY_REQUEST_FAILED: {request_data}")
    else:
        logger.info(f"PROXY_REQUEST: {request_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
