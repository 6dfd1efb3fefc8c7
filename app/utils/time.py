"""Time and datetime utilities."""

from datetime import datetime, timezone


def format_datetime(dt: datetime, fmt: str = "%Y-%m-%dT%H:%M:%S.000Z") -> str:
    """Format datetime as a UTC ISO string.

    Args:
        dt: Datetime to format
        fmt: Format string (default ISO 8601 with millisecond precision)

    Returns:
        Formatted datetime string
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(fmt)


def format_optional(dt: datetime | None) -> str | None:
    """Format a datetime, passing None through."""
    return format_datetime(dt) if dt is not None else None
