"""
Shared parsing helpers for carrier payloads.
"""
import logging
from datetime import date, datetime, time, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 3339 / ISO 8601 timestamp into an aware datetime.

    Naive values are taken as UTC. Unparseable input returns None.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse YYYY-MM-DD into midnight UTC. Unparseable input returns None."""
    if not value:
        return None
    try:
        day = date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.debug(f"Unparseable date: {value!r}")
        return None
    return datetime.combine(day, time.min, tzinfo=timezone.utc)

