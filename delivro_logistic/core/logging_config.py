"""
Logging setup

Module code only ever does ``logger = logging.getLogger(__name__)``; the
process entry point calls ``configure_logging`` once.
"""
import logging
import re
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Keys whose values never reach a log line
SENSITIVE_KEYS = re.compile(r"(api[_-]?key|secret|password|token|authorization)", re.IGNORECASE)
MASK = "***"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger at ``level`` (defaults to settings.LOG_LEVEL)."""
    if level is None:
        from delivro_logistic.core.config import get_settings
        level = get_settings().LOG_LEVEL

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def sanitize_for_logging(data: Any, max_length: int = 500) -> Any:
    """
    Mask credential-like values before logging.

    Dicts are copied with sensitive keys masked (recursively); strings are
    truncated to ``max_length``.
    """
    if isinstance(data, dict):
        clean: Dict[Any, Any] = {}
        for key, value in data.items():
            if isinstance(key, str) and SENSITIVE_KEYS.search(key):
                clean[key] = MASK
            else:
                clean[key] = sanitize_for_logging(value, max_length)
        return clean
    if isinstance(data, (list, tuple)):
        return [sanitize_for_logging(item, max_length) for item in data]
    if isinstance(data, str):
        return data[:max_length]
    return data
