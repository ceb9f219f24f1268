from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Collection, Iterator

from .errors import ValidationError

SATURDAY = 5
SUNDAY = 6

HolidaySet = Collection[str]


class CountMode(str, Enum):
    INCLUSIVE = "inclusive"
    EXCLUSIVE_START = "exclusive_start"


@dataclass(frozen=True)
class CalendarDay:
    day: date
    is_weekend: bool
    is_holiday: bool

    @property
    def is_business_day(self) -> bool:
        return not self.is_weekend and not self.is_holiday


def iso(day: date) -> str:
    return day.isoformat()


def normalize_holidays(holidays: Collection[str | date] | None) -> frozenset[str]:
    """
    Holiday sets are ISO 'YYYY-MM-DD' strings. Dates are accepted too and
    converted, so callers can pass ORM values straight through.
    """
    if not holidays:
        return frozenset()
    return frozenset(h.isoformat() if isinstance(h, date) else str(h) for h in holidays)


def is_weekend(day: date) -> bool:
    return day.weekday() in (SATURDAY, SUNDAY)


def is_holiday(day: date, holidays: HolidaySet) -> bool:
    return iso(day) in holidays


def is_business_day(day: date, holidays: HolidaySet) -> bool:
    return not is_weekend(day) and not is_holiday(day, holidays)


def classify(day: date, holidays: HolidaySet) -> CalendarDay:
    return CalendarDay(day=day, is_weekend=is_weekend(day), is_holiday=is_holiday(day, holidays))


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every civil day of [start, end]; nothing when end < start."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def count_business_days(
    start: date,
    end: date,
    holidays: Collection[str | date] | None = None,
    mode: CountMode = CountMode.INCLUSIVE,
) -> int:
    """
    Count days that are neither Saturday, Sunday nor a listed holiday.

    - INCLUSIVE:       [start, end], 0 when end < start
    - EXCLUSIVE_START: ]start, end], 0 when end <= start
    """
    holiday_set = normalize_holidays(holidays)

    if mode == CountMode.EXCLUSIVE_START:
        if end <= start:
            return 0
        start = start + timedelta(days=1)
    elif end < start:
        return 0

    return sum(1 for day in iter_days(start, end) if is_business_day(day, holiday_set))


# ---------------------------------------------------------------------------
# Week / month helpers
# ---------------------------------------------------------------------------

def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def parse_month(value: str) -> tuple[int, int]:
    """Parse 'YYYY-MM' into (year, month)."""
    try:
        year_str, month_str = value.split("-")
        year, month = int(year_str), int(month_str)
    except ValueError as exc:
        raise ValidationError(f"month must be formatted YYYY-MM (got {value!r})") from exc
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be formatted YYYY-MM (got {value!r})")
    return year, month
