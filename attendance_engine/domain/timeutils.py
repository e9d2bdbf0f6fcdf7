"""Small date helpers used by the rule functions."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta


def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day (Aug 31 + 6 → Feb 28/29)."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def truncate_to_minute(dt: datetime) -> datetime:
    return dt.replace(second=0, microsecond=0)


def whole_minutes(start: datetime, end: datetime) -> int:
    """Minutes from *start* to *end*, seconds ignored on both sides."""
    delta = truncate_to_minute(end) - truncate_to_minute(start)
    return int(delta.total_seconds() // 60)


def scheduled_bounds(shift_date: date, time_in: time, time_out: time) -> tuple[datetime, datetime]:
    """Scheduled start/end datetimes; the end rolls to the next day past midnight."""
    start = datetime.combine(shift_date, time_in)
    end = datetime.combine(shift_date, time_out)
    if end <= start:
        end += timedelta(days=1)
    return start, end
