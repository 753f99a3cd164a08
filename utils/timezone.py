"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import date, datetime, timedelta, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Current calendar date in UTC."""
    return now_utc().date()


def month_start(day: date) -> date:
    """
    First day of the month containing `day`.

    Billing periods are stored as the first of the month they cover.
    """
    return day.replace(day=1)


def previous_month_start(day: date) -> date:
    """First day of the month before the one containing `day`."""
    return month_start(month_start(day) - timedelta(days=1))
