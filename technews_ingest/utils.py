"""Utility functions for Tech News Ingest."""

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import TypeVar

from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def parse_date_string(date_str: str | None) -> datetime | None:
    """Parse various date string formats.

    Args:
        date_str: Date string to parse

    Returns:
        Parsed timezone-aware datetime, or None if parsing fails
    """
    if not date_str:
        return None

    date_str = date_str.strip()
    if not date_str:
        return None

    # RFC 2822 first (common in RSS feeds)
    # Example: "Thu, 17 Jul 2025 23:17:14 GMT"
    try:
        return _ensure_utc(parsedate_to_datetime(date_str))
    except (ValueError, TypeError, IndexError, OverflowError):
        pass

    # ISO 8601 (Atom feeds)
    try:
        return _ensure_utc(datetime.fromisoformat(date_str.replace("Z", "+00:00")))
    except (ValueError, OverflowError):
        pass

    formats = [
        "%Y-%m-%d %H:%M:%S",
        "%d/%m/%Y",
        "%m/%d/%Y",
        "%B %d, %Y",
        "%b %d, %Y",
        "%d %B %Y",
        "%d %b %Y",
        "%a, %d %b %Y %H:%M:%S %Z",
        "%a, %d %b %Y %H:%M:%S",
    ]

    for fmt in formats:
        try:
            return _ensure_utc(datetime.strptime(date_str, fmt))
        except (ValueError, OverflowError):
            continue

    logger.debug("Failed to parse date string", date_string=date_str)
    return None


def _ensure_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_datetime_iso(dt: datetime | None) -> str | None:
    """Format datetime as a UTC ISO string."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def chunk_list(items: list[T], chunk_size: int) -> list[list[T]]:
    """Split list into chunks of specified size.

    Args:
        items: List to chunk
        chunk_size: Size of each chunk

    Returns:
        List of chunks
    """
    return [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]


def ensure_directory(path: str | Path, mode: int = 0o700) -> Path:
    """Ensure directory exists.

    Args:
        path: Directory path
        mode: Permissions used when the directory is created

    Returns:
        Path object
    """
    path_obj = Path(path)
    path_obj.mkdir(parents=True, exist_ok=True, mode=mode)
    return path_obj
