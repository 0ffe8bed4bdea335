"""Calendar-aware differences between two points in time."""

from __future__ import annotations

import calendar
from datetime import datetime


def days_in(year: int, month: int) -> int:
    """Return the number of days in ``month`` of ``year``.

    Months outside 1..12 are normalised, so month 0 is December of the
    previous year and month 13 is January of the next.
    """
    extra_years, index = divmod(month - 1, 12)
    return calendar.monthrange(year + extra_years, index + 1)[1]


def time_diff_numbers(start: datetime, end: datetime) -> tuple[int, int, int, int, int, int]:
    """Return (years, months, days, hours, minutes, seconds) between two times.

    The order of the arguments does not matter. Fractions of a second are ignored.
    """
    if start.tzinfo is not None and end.tzinfo is not None:
        end = end.astimezone(start.tzinfo)

    if start > end:
        start, end = end, start

    years = end.year - start.year
    months = end.month - start.month
    days = end.day - start.day
    hours = end.hour - start.hour
    minutes = end.minute - start.minute
    seconds = end.second - start.second

    if seconds < 0:
        seconds += 60
        minutes -= 1
    if minutes < 0:
        minutes += 60
        hours -= 1
    if hours < 0:
        hours += 24
        days -= 1
    if days < 0:
        days += days_in(end.year, end.month - 1)
        months -= 1
    if months < 0:
        months += 12
        years -= 1

    return years, months, days, hours, minutes, seconds


def _plural(count: int, unit: str) -> str:
    suffix = "" if count == 1 else "s"
    return f"{count} {unit}{suffix}, "


def time_diff_string(start: datetime, end: datetime) -> str:
    """Return the difference between two times in a readable form."""
    years, months, days, hours, minutes, seconds = time_diff_numbers(start, end)

    text = ""
    if years > 0:
        text += _plural(years, "year")
    if text or months > 0:
        text += _plural(months, "month")
    if text or days > 0:
        text += _plural(days, "day")

    if text or hours > 0:
        return f"{text}{hours}:{minutes:02d}:{seconds:02d}"
    if minutes > 0:
        return f"{minutes}:{seconds:02d}"
    if seconds == 1:
        return "1 second"
    return f"{seconds} seconds"