"""Named reporting periods and their calendar ranges."""
import calendar
from datetime import date, timedelta
from typing import Optional, Tuple

PERIODS = ("this-month", "last-month", "this-year", "last-year", "custom")
DEFAULT_PERIOD = "this-month"


def resolve_period(
    period: str,
    today: Optional[date] = None,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
    full_period: bool = False,
) -> Tuple[date, date]:
    """
    Resolve a named period to an inclusive (start, end) range of days.

    Args:
        period: One of PERIODS. Unknown names fall back to this month.
        today: Reference day. Defaults to date.today().
        custom_start: Start of a custom range.
        custom_end: End of a custom range.
        full_period: When True, "this-month" and "this-year" run to the last
            day of the month/year instead of stopping at today.

    Returns:
        (start, end) with start <= end
    """
    today = today or date.today()
    month_start = today.replace(day=1)

    if period == "this-month":
        if full_period:
            last_day = calendar.monthrange(today.year, today.month)[1]
            return month_start, today.replace(day=last_day)
        return month_start, today

    if period == "last-month":
        last_month_end = month_start - timedelta(days=1)
        return last_month_end.replace(day=1), last_month_end

    if period == "this-year":
        year_start = date(today.year, 1, 1)
        if full_period:
            return year_start, date(today.year, 12, 31)
        return year_start, today

    if period == "last-year":
        return date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)

    if period == "custom" and custom_start and custom_end:
        if custom_start > custom_end:
            custom_start, custom_end = custom_end, custom_start
        return custom_start, custom_end

    return month_start, today


def period_days(start: date, end: date) -> int:
    """Inclusive number of days in a range, never less than 1."""
    return max(1, (end - start).days + 1)


def previous_period(start: date, end: date) -> Tuple[date, date]:
    """The range of identical length that ends the day before `start`."""
    length = period_days(start, end)
    previous_end = start - timedelta(days=1)
    return previous_end - timedelta(days=length - 1), previous_end


def in_range(day: date, start: date, end: date) -> bool:
    return start <= day <= end
