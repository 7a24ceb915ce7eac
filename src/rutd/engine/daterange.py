# src/rutd/engine/daterange.py

"""
Date-range mini-language.

    range    := date '-' date? | '-' date | date
    date     := YYYY | YYYY/MM | YYYY/MM/DD | ['+'] (N? unit)+
    unit     := d | w | m | y

Absolute dates cover their whole year, month or day. Relative dates count
back from now (d=1 day, w=7 days, m=1 month, y=12 months) and are rounded
down to the start of the last unit given (day, Monday, first of month,
January 1), unless prefixed with '+' which keeps the exact instant.

The result is a half-open DateRange [start, end) in local time.
"""

import calendar
from datetime import datetime, timedelta
from typing import Final, Optional

from .errors import InvalidDate
from .filter import DateRange

UNITS: Final[str] = "dwmy"
EXACT_PREFIX: Final[str] = "+"


def parse_date_range(text: str, now: Optional[datetime] = None) -> DateRange:
    """
    Parse `text` into a DateRange relative to `now` (defaults to the current time).
    """
    if now is None:
        now = datetime.now()
    # relative arithmetic happens on the local wall clock
    if now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)

    parts = text.split("-")

    if len(parts) == 1:
        return DateRange(
            start=_parse_date(parts[0], now, is_end=False),
            end=_parse_date(parts[0], now, is_end=True),
        )

    if len(parts) == 2:
        start, end = parts
        return DateRange(
            start=_parse_date(start, now, is_end=False) if start.strip() else None,
            end=_parse_date(end, now, is_end=True) if end.strip() else None,
        )

    raise InvalidDate(f"Invalid date range format: {text}")


def _parse_date(raw: str, now: datetime, *, is_end: bool) -> datetime:
    s = raw.strip()
    if not s:
        raise InvalidDate("Empty date string")

    if s[-1] in UNITS:
        naive = _relative(s, now, is_end)
    else:
        naive = _absolute(s, is_end)

    return _localize(naive, is_end)


# ---------------------------------------------------------------------
# Absolute dates
# ---------------------------------------------------------------------

def _absolute(s: str, is_end: bool) -> datetime:
    fields = s.split("/")
    if len(fields) > 3:
        raise InvalidDate(f"Invalid date format: {s}")

    names = ("year", "month", "day")
    numbers: list[int] = []
    for name, value in zip(names, fields):
        if not _is_number(value):
            raise InvalidDate(f"Invalid {name} in date string: {s}")
        numbers.append(int(value))

    try:
        if len(numbers) == 3:
            start = datetime(numbers[0], numbers[1], numbers[2])
            return start + timedelta(days=1) if is_end else start
        if len(numbers) == 2:
            start = datetime(numbers[0], numbers[1], 1)
            return add_months(start, 1) if is_end else start
        start = datetime(numbers[0], 1, 1)
        return add_months(start, 12) if is_end else start
    except (ValueError, OverflowError) as e:
        raise InvalidDate(f"Invalid date: {s}") from e


# ---------------------------------------------------------------------
# Relative dates
# ---------------------------------------------------------------------

def _relative(s: str, now: datetime, is_end: bool) -> datetime:
    exact = s.startswith(EXACT_PREFIX)
    body = s[1:] if exact else s

    days = 0
    months = 0
    last_unit = "d"
    digits = ""

    for ch in body:
        if ch in UNITS:
            if digits and not _is_number(digits):
                raise InvalidDate(f"Invalid number in date component: {digits}")
            n = int(digits) if digits else 0
            if ch == "d":
                days += n
            elif ch == "w":
                days += n * 7
            elif ch == "m":
                months += n
            else:
                months += n * 12
            last_unit = ch
            digits = ""
        else:
            digits += ch

    if digits:
        raise InvalidDate(f"Missing unit (d/w/m/y): {digits}")

    try:
        moment = add_months(now, -months) - timedelta(days=days)
    except (ValueError, OverflowError) as e:
        raise InvalidDate(f"Date out of range: {s}") from e

    if exact:
        return moment

    start = _round_down(moment, last_unit)
    if not is_end:
        return start

    try:
        if last_unit == "d":
            return start + timedelta(days=1)
        if last_unit == "w":
            return start + timedelta(days=7)
        if last_unit == "m":
            return add_months(start, 1)
        return add_months(start, 12)
    except (ValueError, OverflowError) as e:
        raise InvalidDate(f"Date out of range: {s}") from e


def _round_down(moment: datetime, unit: str) -> datetime:
    day = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit == "w":
        return day - timedelta(days=day.weekday())
    if unit == "m":
        return day.replace(day=1)
    if unit == "y":
        return day.replace(month=1, day=1)
    return day


def add_months(value: datetime, months: int) -> datetime:
    """
    Shift `value` by whole months, clamping the day to the target month.
    """
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    day = min(value.day, calendar.monthrange(year, month + 1)[1])
    return value.replace(year=year, month=month + 1, day=day)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _is_number(s: str) -> bool:
    return s.isascii() and s.isdigit()


def _localize(naive: datetime, is_end: bool) -> datetime:
    """
    Attach the local offset.

    Repeated wall-clock times take the earlier instant for range starts and
    the later one for range ends; wall-clock times skipped by a DST jump raise
    InvalidDate.
    """
    aware = naive.replace(fold=1 if is_end else 0).astimezone()
    if aware.replace(tzinfo=None) != naive:
        raise InvalidDate(f"Nonexistent local time: {naive.isoformat()}")
    return aware
