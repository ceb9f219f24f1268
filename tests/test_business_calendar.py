from datetime import date, timedelta

import pytest
from pointage.business_calendar import (CountMode, classify,
                                        count_business_days, is_business_day,
                                        month_bounds, monday_of, parse_month)
from pointage.errors import ValidationError

MON = date(2025, 3, 3)
FRI = date(2025, 3, 7)


def test_full_week_inclusive():
    assert count_business_days(MON, FRI, set()) == 5


def test_weekday_holiday_excluded():
    assert count_business_days(MON, FRI, {"2025-03-04"}) == 4


def test_weekend_holiday_has_no_extra_effect():
    assert count_business_days(MON, date(2025, 3, 9), {"2025-03-08"}) == 5


def test_holidays_as_dates_are_accepted():
    assert count_business_days(MON, FRI, [date(2025, 3, 4)]) == 4


def test_exclusive_start_counts_from_next_day():
    assert count_business_days(MON, FRI, set(), CountMode.EXCLUSIVE_START) == 4


def test_exclusive_start_skips_weekend_and_holiday():
    assert count_business_days(MON, date(2025, 3, 10), set(), CountMode.EXCLUSIVE_START) == 5
    assert count_business_days(MON, FRI, {"2025-03-05"}, CountMode.EXCLUSIVE_START) == 3


@pytest.mark.parametrize("end", [date(2025, 3, 2), date(2025, 2, 1)])
def test_inclusive_reversed_range_is_zero(end):
    assert count_business_days(MON, end, set()) == 0


@pytest.mark.parametrize("end", [MON, date(2025, 3, 1)])
def test_exclusive_start_empty_range_is_zero(end):
    assert count_business_days(MON, end, set(), CountMode.EXCLUSIVE_START) == 0


def test_single_day_inclusive():
    assert count_business_days(MON, MON) == 1
    assert count_business_days(date(2025, 3, 8), date(2025, 3, 8)) == 0


@pytest.mark.parametrize("offset", range(7))
def test_any_seven_consecutive_days_give_five(offset):
    start = MON + timedelta(days=offset)
    assert count_business_days(start, start + timedelta(days=6), set()) == 5


@pytest.mark.parametrize("mode", list(CountMode))
def test_count_is_monotonic_in_end(mode):
    holidays = {"2025-04-21", "2025-05-01", "2025-05-08"}
    start = date(2025, 4, 14)
    previous = 0
    for i in range(60):
        current = count_business_days(start, start + timedelta(days=i), holidays, mode)
        assert current >= previous
        previous = current


def test_classify():
    day = classify(date(2025, 5, 1), {"2025-05-01"})
    assert day.is_holiday and not day.is_weekend
    assert not day.is_business_day
    assert is_business_day(date(2025, 5, 2), {"2025-05-01"})


def test_week_and_month_helpers():
    assert monday_of(date(2025, 3, 9)) == MON
    assert monday_of(MON) == MON
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert parse_month("2025-03") == (2025, 3)


@pytest.mark.parametrize("value", ["2025-13", "march", "2025/03"])
def test_parse_month_rejects_garbage(value):
    with pytest.raises(ValidationError):
        parse_month(value)
