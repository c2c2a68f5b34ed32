"""
Quote History Gap Detection

Finds the date ranges a quote history is missing so that the download side
knows what to ask the provider for next. The history is scanned backwards
from the most recent trading day so the most valuable gaps come first;
nearby gaps are consolidated and too many gaps collapse into one full fetch.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator, List, Optional

from dateutil.relativedelta import relativedelta

from .config import HistorySettings, settings
from .history import NO_DATE, DateRange, QuoteHistory
from .logging import get_logger
from .market_calendar import get_next_work_day

logger = get_logger(__name__)


def consolidate_ranges(ranges: List[DateRange], consolidation_days: int) -> List[DateRange]:
    """
    Merge neighbouring ranges in place.

    ``ranges`` must be ordered newest first. A range absorbs the next older
    one while the span from its end back to the older range's start is
    shorter than ``consolidation_days``.
    """
    limit = timedelta(days=consolidation_days)
    i = 1
    while i < len(ranges):
        newer = ranges[i - 1]
        older = ranges[i]
        if newer.end - older.start < limit:
            newer.start = older.start
            del ranges[i]
        else:
            i += 1
    return ranges


def get_missing_data_ranges(
    history: QuoteHistory,
    years_to_check: Optional[int] = None,
    today: Optional[date] = None,
    scan_limit: Optional[int] = None,
    consolidation_days: Optional[int] = None,
    max_ranges: Optional[int] = None,
) -> Iterator[DateRange]:
    """
    Return the ranges of days that seem to be missing from ``history``.

    Args:
        history: History to inspect; must not be mutated while iterating
        years_to_check: How far back in time to look for missing data
        today: Override for the current day
        scan_limit: Stop scanning once this many gaps are found
        consolidation_days: Merge gaps whose combined span is below this
        max_ranges: Above this many ranges, return one range covering all

    Returns:
        Lazy iterator of inclusive date ranges, most recent first
    """
    if history is None:
        raise ValueError("history is required to compute missing ranges")

    return _iter_missing_ranges(
        history,
        settings.years_to_check if years_to_check is None else years_to_check,
        today,
        settings.gap_scan_limit if scan_limit is None else scan_limit,
        settings.consolidation_days if consolidation_days is None else consolidation_days,
        settings.max_fetch_ranges if max_ranges is None else max_ranges,
    )


def _iter_missing_ranges(
    history: QuoteHistory,
    years_to_check: int,
    today: Optional[date],
    scan_limit: int,
    consolidation_days: int,
    max_ranges: int,
) -> Iterator[DateRange]:
    calendar = history.calendar
    work_day = calendar.most_recent_market_open_date(today)

    stop_date = work_day - relativedelta(years=years_to_check)
    while not calendar.is_market_open(stop_date):
        stop_date = get_next_work_day(stop_date)

    if not history.history:
        yield DateRange(start=stop_date, end=work_day)
        return

    ranges: List[DateRange] = []
    for quote in reversed(history.history):
        day = quote.date
        if day == NO_DATE:
            # undated quotes sort first
            break
        if day > work_day:
            continue
        if work_day < stop_date:
            break
        if day < work_day:
            ranges.append(DateRange(start=day, end=work_day))
            work_day = day
        work_day = calendar.previous_market_open_date(work_day)
        if len(ranges) >= scan_limit:
            break

    if work_day > stop_date:
        # stored history does not reach back far enough
        ranges.append(DateRange(start=stop_date, end=work_day))

    found = len(ranges)
    consolidate_ranges(ranges, consolidation_days)

    logger.debug(
        "Computed missing ranges",
        symbol=history.symbol,
        gaps_found=found,
        consolidated=len(ranges),
        stop_date=stop_date.isoformat()
    )

    if len(ranges) > max_ranges:
        # cheaper to fetch the whole period in one call
        yield DateRange(start=stop_date, end=ranges[0].end)
    else:
        yield from ranges


class GapDetector:
    """Computes fetch plans for quote histories using configured limits."""

    def __init__(self, config: Optional[HistorySettings] = None):
        self.config = config or settings

    def compute_missing_ranges(
        self,
        history: QuoteHistory,
        years_to_check: Optional[int] = None,
        today: Optional[date] = None
    ) -> Iterator[DateRange]:
        return get_missing_data_ranges(
            history,
            years_to_check=self.config.years_to_check if years_to_check is None else years_to_check,
            today=today,
            scan_limit=self.config.gap_scan_limit,
            consolidation_days=self.config.consolidation_days,
            max_ranges=self.config.max_fetch_ranges,
        )
