"""Timestamp and calendar-day parsing utilities."""
import time
from datetime import date, datetime, timezone
from typing import Union


def parse_timestamp(s: str) -> datetime:
    """
    Parse a timestamp string into a timezone-aware datetime.

    Supports:
    - ISO format with "Z" suffix: "2024-01-02T09:10:00Z"
    - ISO format with timezone: "2024-01-02T09:10:00+00:00"
    - ISO format without timezone: "2024-01-02T09:10:00" (assumed UTC)
    - Space-separated: "2024-01-02 09:10:00"

    Raises:
        ValueError: If timestamp cannot be parsed
    """
    if not s:
        raise ValueError("Empty timestamp string")

    s = s.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    for candidate in (s, s.replace(" ", "T", 1)):
        try:
            dt = datetime.fromisoformat(candidate)
        except ValueError:
            continue
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    raise ValueError(
        f"Unable to parse timestamp: {s}. Expected ISO format (e.g., '2024-01-02T09:10:00Z')"
    )


def parse_day(value: Union[str, date, datetime]) -> date:
    """
    Reduce a date, datetime or string to a calendar day.

    "2024-01-02" and full ISO timestamps are both accepted; a timestamp keeps
    its own calendar day (no timezone shifting).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return parse_timestamp(text).date()


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def from_ms(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
