import re
import sys
from loguru import logger
from pathlib import Path
from typing import Optional

# OpenAI and OpenRouter style secret keys
_SECRET_RE = re.compile(r'\b(sk-(?:or-v1-|proj-)?)[A-Za-z0-9_\-]{8,}')

_configured = False

def redact_secrets(record: dict) -> bool:
    """Sink filter masking API keys that SDK error messages sometimes echo back."""
    record["message"] = _SECRET_RE.sub(r'\1***', record["message"])
    return True

def setup_logger(log_level: str = "INFO", log_file: Optional[Path] = None):
    global _configured

    if _configured and log_file is None:
        return logger

    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=log_level,
        colorize=True,
        filter=redact_secrets,
    )

    # Per-attempt provider traffic is DEBUG, so it only reaches the file sink by default
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            filter=redact_secrets,
        )

    _configured = True
    return logger
