from .timestamp import parse_timestamp, parse_day, now_ms, from_ms
from .periods import resolve_period, previous_period, period_days

__all__ = [
    "parse_timestamp",
    "parse_day",
    "now_ms",
    "from_ms",
    "resolve_period",
    "previous_period",
    "period_days",
]
