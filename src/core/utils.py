"""
Shared utilities.
"""
import re
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """
    Normalise a datetime for storage.
    Aware values are converted to UTC; naive values are assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive database datetime for API output."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sanitize_filename(name: str) -> str:
    """
    Make a report name safe to use as a file name.
    Anything outside letters, digits, dash and underscore becomes an underscore.
    """
    if not name:
        return "report"
    return re.sub(r'[^a-zA-Z0-9_-]', '_', name.strip())
