"""
Quote History Market Calendar

Decides whether a calendar date is a US equity market trading day. Standard
holidays come from a pandas holiday rule set; one-off closures that no rule
describes are listed in KNOWN_CLOSURES, and each symbol may carry its own
extra closures.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import AbstractSet, FrozenSet, Optional

import pandas as pd
from dateutil.relativedelta import MO
from pandas.tseries.holiday import (
    AbstractHolidayCalendar,
    GoodFriday,
    Holiday,
    USLaborDay,
    USMemorialDay,
    USPresidentsDay,
    USThanksgivingDay,
    nearest_workday,
    sunday_to_monday,
)
from pandas.tseries.offsets import DateOffset

ONE_DAY = timedelta(days=1)

# Exchange closures outside the regular holiday schedule.
KNOWN_CLOSURES: FrozenSet[date] = frozenset({
    date(2025, 1, 9),    # National Day of Mourning, President Jimmy Carter
    date(2018, 12, 5),   # National Day of Mourning, President George H.W. Bush
    date(2012, 10, 30),  # Hurricane Sandy
    date(2012, 10, 29),  # Hurricane Sandy
    date(2007, 1, 2),    # National Day of Mourning, President Gerald Ford
    date(2004, 6, 11),   # National Day of Mourning, President Ronald Reagan
    date(2001, 9, 14),   # September 11
    date(2001, 9, 13),   # September 11
    date(2001, 9, 12),   # September 11
    date(2001, 9, 11),   # September 11
    date(1994, 4, 27),   # National Day of Mourning, President Richard Nixon
    date(1985, 9, 27),   # Hurricane Gloria
})


class USMarketHolidayCalendar(AbstractHolidayCalendar):
    """NYSE full-day holidays expressed as pandas holiday rules."""

    rules = [
        Holiday("New Year's Day", month=1, day=1, observance=sunday_to_monday),
        Holiday(
            "Martin Luther King Jr. Day",
            start_date=pd.Timestamp("1998-01-01"),
            month=1,
            day=1,
            offset=DateOffset(weekday=MO(3)),
        ),
        USPresidentsDay,
        GoodFriday,
        USMemorialDay,
        Holiday(
            "Juneteenth",
            start_date=pd.Timestamp("2022-01-01"),
            month=6,
            day=19,
            observance=nearest_workday,
        ),
        Holiday("Independence Day", month=7, day=4, observance=nearest_workday),
        USLaborDay,
        USThanksgivingDay,
        Holiday("Christmas Day", month=12, day=25, observance=nearest_workday),
    ]


_HOLIDAY_CALENDAR = USMarketHolidayCalendar()


@lru_cache(maxsize=None)
def holidays_for_year(year: int) -> FrozenSet[date]:
    """Return the market holidays observed in the given year."""
    # pandas timestamps cannot represent years near date.min/date.max
    if year <= pd.Timestamp.min.year or year >= pd.Timestamp.max.year:
        return frozenset()
    index = _HOLIDAY_CALENDAR.holidays(
        start=pd.Timestamp(year, 1, 1),
        end=pd.Timestamp(year, 12, 31),
    )
    return frozenset(ts.date() for ts in index)


def to_date(value: date | datetime) -> date:
    """Strip the time of day from a datetime, leave dates alone."""
    if isinstance(value, datetime):
        return value.date()
    return value


def is_work_day(day: date) -> bool:
    """True for weekdays that are not a standard market holiday."""
    day = to_date(day)
    if day.weekday() >= 5:
        return False
    return day not in holidays_for_year(day.year)


def get_next_work_day(day: date) -> date:
    """Return the first work day strictly after ``day``."""
    day = to_date(day) + ONE_DAY
    while not is_work_day(day):
        day += ONE_DAY
    return day


def get_previous_work_day(day: date) -> date:
    """Return the last work day strictly before ``day``."""
    day = to_date(day) - ONE_DAY
    while not is_work_day(day):
        day -= ONE_DAY
    return day


def most_recent_work_day(today: Optional[date] = None) -> date:
    """Return ``today`` if it is a work day, otherwise the work day before it."""
    day = to_date(today) if today is not None else date.today()
    if is_work_day(day):
        return day
    return get_previous_work_day(day)


def is_market_open(
    day: date,
    additional_closures: Optional[AbstractSet[date]] = None
) -> bool:
    """
    Check whether the market trades on ``day``.

    Args:
        day: Date to check
        additional_closures: Symbol specific dates known to have no trading

    Returns:
        True when ``day`` is a work day that is neither a known closure nor
        one of the additional closures
    """
    day = to_date(day)
    if not is_work_day(day) or day in KNOWN_CLOSURES:
        return False
    return not (additional_closures and day in additional_closures)


def next_market_open_date(
    day: date,
    additional_closures: Optional[AbstractSet[date]] = None
) -> date:
    """Return the first market-open date strictly after ``day``."""
    day = get_next_work_day(day)
    while not is_market_open(day, additional_closures):
        day = get_next_work_day(day)
    return day


def previous_market_open_date(
    day: date,
    additional_closures: Optional[AbstractSet[date]] = None
) -> date:
    """Return the last market-open date strictly before ``day``."""
    day = get_previous_work_day(day)
    while not is_market_open(day, additional_closures):
        day = get_previous_work_day(day)
    return day


class MarketCalendar:
    """
    Trading-day calendar for one symbol.

    Combines the standard holiday rules and KNOWN_CLOSURES with a set of
    closures specific to the symbol. The set is held by reference so that
    additions made by the owner are seen immediately.
    """

    def __init__(self, additional_closures: Optional[AbstractSet[date]] = None):
        self.additional_closures = additional_closures if additional_closures is not None else set()

    def is_work_day(self, day: date) -> bool:
        return is_work_day(day)

    def is_market_open(self, day: date) -> bool:
        return is_market_open(day, self.additional_closures)

    def next_market_open_date(self, day: date) -> date:
        return next_market_open_date(day, self.additional_closures)

    def previous_market_open_date(self, day: date) -> date:
        return previous_market_open_date(day, self.additional_closures)

    def most_recent_work_day(self, today: Optional[date] = None) -> date:
        return most_recent_work_day(today)

    def most_recent_market_open_date(self, today: Optional[date] = None) -> date:
        """Return the most recent work day if the market trades then, else the open day before it."""
        day = most_recent_work_day(today)
        if self.is_market_open(day):
            return day
        return self.previous_market_open_date(day)
