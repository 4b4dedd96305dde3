# app/services/dates.py
#
# Date Helper Functions
# Calendar arithmetic shared by the recurrence engine and the transaction routes:
# month-safe addition, whole-day windows, and month ranges for list filters.

from datetime import date, datetime, time, timedelta, timezone

from dateutil.relativedelta import relativedelta


# ---- Month arithmetic ----

def add_months(value: datetime, months: int) -> datetime:
    """
    Add `months` calendar months to `value`.

    The day is clamped to the last valid day of the target month
    (Jan 31 + 1 month -> Feb 28/29), and the time of day is kept.
    """
    return value + relativedelta(months=months)


def months_between(start: datetime, end: datetime) -> int:
    """Whole calendar months from start's month to end's month (day ignored)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def day_window(value: datetime) -> tuple[datetime, datetime]:
    """
    Return (start, end) of the calendar day containing `value`:
    00:00:00.000000 up to 23:59:59.999999, both inclusive.
    """
    start = datetime.combine(value.date(), time.min)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


def utc_naive(value: datetime | None = None) -> datetime:
    """
    Normalize an instant to naive UTC, the form datetimes are stored in.
    None means "now".
    """
    if value is None:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ---- Date Range Utilities ----

def get_month_range(month_str: str) -> tuple[datetime, datetime]:
    """
    month_str: 'YYYY-MM'.
    Returns (start, end_exclusive) as datetimes at midnight.
    Raises ValueError when month_str is malformed.
    """
    try:
        year_str, month_only_str = month_str.split("-")
        year = int(year_str)
        month = int(month_only_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid month: {month_str!r}")
    if not (1 <= month <= 12):
        raise ValueError(f"Invalid month: {month_str!r}")

    start = date(year, month, 1)
    end_exclusive = start + relativedelta(months=1)
    return (
        datetime.combine(start, time.min),
        datetime.combine(end_exclusive, time.min),
    )
