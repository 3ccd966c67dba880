"""Time helpers. All persisted date-times are naive UTC."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current UTC time without tzinfo, comparable with stored columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value) -> datetime:
    """Parse an ISO-8601 value (``Z`` suffix allowed) into naive UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
