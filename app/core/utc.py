"""
UTC DateTime Utilities.

All timestamps produced by the service are timezone-aware UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Example:
        from app.core.utc import utc_now

        started_at = utc_now()  # 2025-12-08 03:00:00+00:00
    """
    return datetime.now(timezone.utc)


def elapsed_ms(started_at: datetime) -> float:
    """Milliseconds elapsed since a utc_now() timestamp."""
    return (utc_now() - started_at).total_seconds() * 1000
