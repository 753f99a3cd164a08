"""Utility modules for cross-cutting concerns."""

from utils.timezone import (
    now_utc,
    today_utc,
    month_start,
    previous_month_start,
)
