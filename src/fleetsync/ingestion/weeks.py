"""Week numbering used for weekly toll summaries.

This is *not* ISO 8601. Weeks start on Sunday and week 1 is the (possibly
partial) week containing January 1st::

    week = ceil((day_of_year_index + weekday_of_jan1 + 1) / 7)

where ``day_of_year_index`` is the zero-based day count since January 1st
and weekdays count Sunday as 0. Years can therefore have a week 53, or a
week 54 in a leap year starting on Saturday. Persisted rows carry numbers
computed this way, so it must not be swapped for :meth:`date.isocalendar`
without migrating them.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta


def js_weekday(value: date) -> int:
    """Day of week with Sunday as 0 and Saturday as 6."""
    return (value.weekday() + 1) % 7


def week_of_year(value: date | datetime) -> int:
    day = value.date() if isinstance(value, datetime) else value
    jan1 = date(day.year, 1, 1)
    day_index = (day - jan1).days
    return math.ceil((day_index + js_weekday(jan1) + 1) / 7)


def week_dates(year: int, week: int) -> tuple[date, date]:
    """Return the Sunday..Saturday span numbered *week* in *year*.

    The start of week 1 usually falls in the previous year, and for those
    days ``week_of_year`` reports the previous year's numbering, so the two
    functions only round-trip for dates inside *year*.
    """
    jan1 = date(year, 1, 1)
    start = jan1 + timedelta(days=(week - 1) * 7 - js_weekday(jan1))
    return start, start + timedelta(days=6)
