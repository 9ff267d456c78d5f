"""Meeting page titles: "<Month> <Day><ordinal suffix>", e.g. "June 3rd"."""

from __future__ import annotations

from datetime import date

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def month_name(month: int) -> str:
    """Return the English name of a 1-based month number."""
    return MONTH_NAMES[month - 1]


def day_suffix(day: int) -> str:
    """Return the ordinal suffix for a day of the month (st, nd, rd, th)."""
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_meeting_title(day: date) -> str:
    return f"{month_name(day.month)} {day.day}{day_suffix(day.day)}"
