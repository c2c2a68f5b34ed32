"""
Quote History Models

Pydantic models for downloaded daily quotes and the per-symbol quote history,
together with the merge engine that keeps a history sorted and unique.

The history of stock quotes is split adjusted, meaning it shows what the
effective price of one share was: if you paid $100 for a stock in 2010 and
there was a 2:1 split in 2012, the 2010 quote shows $50 because that $100
actually bought two of today's shares.
"""

import datetime as dt
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Optional, Set

from pydantic import BaseModel, Field, field_serializer, field_validator

from .logging import get_logger
from .market_calendar import MarketCalendar, most_recent_work_day, to_date

logger = get_logger(__name__)

# Sentinel for quotes that were stored without a usable date.
NO_DATE = dt.date.min


class StockQuote(BaseModel):
    """
    One trading day of prices for a symbol, as delivered by a quote provider.

    The name is transient: merging the quote into a history moves it to the
    history root.
    """

    symbol: Optional[str] = Field(
        default=None,
        description="Ticker symbol"
    )

    name: Optional[str] = Field(
        default=None,
        description="Security name, cleared once promoted to the history"
    )

    date: dt.date = Field(
        default=NO_DATE,
        description="Trading day, time of day discarded"
    )

    open: Decimal = Decimal(0)
    close: Decimal = Decimal(0)
    high: Decimal = Decimal(0)
    low: Decimal = Decimal(0)
    volume: Decimal = Decimal(0)

    downloaded: Optional[dt.datetime] = Field(
        default=None,
        description="When this quote was fetched"
    )

    @field_validator("date", mode="before")
    @classmethod
    def strip_time(cls, v):
        """Accept datetimes and ISO datetime strings, keeping only the date."""
        if v is None:
            return NO_DATE
        if isinstance(v, dt.datetime):
            return v.date()
        if isinstance(v, str) and len(v) > 10:
            try:
                return dt.datetime.fromisoformat(v).date()
            except ValueError:
                return v
        return v


class DateRange(BaseModel):
    """A span of calendar days, both ends inclusive."""

    start: dt.date
    end: dt.date

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


class MergeResult(NamedTuple):
    """Outcome of merging a single quote into a history."""

    success: bool
    position: int
    inserted: bool


class QuoteHistory(BaseModel):
    """
    Durable daily quote history for one symbol.

    ``history`` is kept strictly ascending by date with no two quotes on the
    same day. All mutations of one history must come from a single writer.
    """

    symbol: Optional[str] = Field(
        default=None,
        description="Ticker symbol this history belongs to"
    )

    name: Optional[str] = Field(
        default=None,
        description="Security name promoted from downloaded quotes"
    )

    not_found: bool = Field(
        default=False,
        description="Whether the provider reported the symbol as unknown"
    )

    last_update: Optional[dt.date] = Field(
        default=None,
        description="Day of the most recent local change"
    )

    earliest_time: Optional[dt.datetime] = Field(
        default=None,
        description="Earliest point the provider has history for"
    )

    additional_closures: Set[dt.date] = Field(
        default_factory=set,
        description="Days with no trading specific to this symbol"
    )

    history: List[StockQuote] = Field(default_factory=list)

    @field_serializer("additional_closures")
    def serialize_closures(self, closures: Set[dt.date]) -> List[dt.date]:
        return sorted(closures)

    @property
    def calendar(self) -> MarketCalendar:
        return MarketCalendar(self.additional_closures)

    @property
    def most_recent_download(self) -> Optional[dt.datetime]:
        if self.history:
            return self.history[-1].downloaded
        return None

    def needs_updating(self, today: Optional[dt.date] = None) -> bool:
        """True when never updated or the latest work day is after the last update."""
        if self.last_update is None:
            return True
        return most_recent_work_day(today) > self.last_update

    def is_market_open(self, day: dt.date) -> bool:
        return self.calendar.is_market_open(day)

    def get_next_market_open_date(self, day: dt.date) -> dt.date:
        return self.calendar.next_market_open_date(day)

    def get_previous_market_open_date(self, day: dt.date) -> dt.date:
        return self.calendar.previous_market_open_date(day)

    def touch(self, today: Optional[dt.date] = None) -> None:
        """Record a local change, never moving ``last_update`` backwards."""
        today = today or dt.date.today()
        if self.last_update is None or today > self.last_update:
            self.last_update = today

    @staticmethod
    def sort_by_date(quotes: Optional[Iterable[StockQuote]]) -> List[StockQuote]:
        """Sort quotes by day; a later quote for the same day replaces an earlier one."""
        by_date: Dict[dt.date, StockQuote] = {}
        for quote in quotes or ():
            quote.date = to_date(quote.date)
            by_date[quote.date] = quote
        return [by_date[day] for day in sorted(by_date)]

    def get_sorted(self) -> List[StockQuote]:
        return self.sort_by_date(self.history)

    def merge_quote(
        self,
        quote: StockQuote,
        start: int = 0,
        today: Optional[dt.date] = None
    ) -> MergeResult:
        """
        Merge one quote into the history, keeping it sorted and unique.

        A quote for a day already present overwrites that day's prices in
        place, otherwise it is inserted before the first later day. Merging
        never rejects a quote.

        Args:
            quote: Quote to merge, its date is normalized in place
            start: Position to start scanning from; pass the position returned
                by the previous call when merging quotes in ascending order
            today: Override for the current day, used for ``last_update``

        Returns:
            MergeResult with the position of the merged quote
        """
        self.touch(today)
        quote.date = to_date(quote.date) if quote.date is not None else NO_DATE
        if quote.name:
            self.name = quote.name
            quote.name = None

        history = self.history
        length = len(history)
        start = min(max(start, 0), length)
        if start and history[start - 1].date >= quote.date:
            # the hint is past where this quote belongs
            start = 0

        for i in range(start, length):
            existing = history[i]
            if existing.date == quote.date:
                existing.downloaded = quote.downloaded
                existing.open = quote.open
                existing.close = quote.close
                existing.high = quote.high
                existing.low = quote.low
                existing.volume = quote.volume
                return MergeResult(True, i, False)
            if existing.date > quote.date:
                history.insert(i, quote)
                return MergeResult(True, i, True)

        history.append(quote)
        return MergeResult(True, length, True)

    def merge(self, other: "QuoteHistory", today: Optional[dt.date] = None) -> None:
        """Fold every quote of another history for the same symbol into this one."""
        position = 0
        for quote in other.history:
            position = self.merge_quote(quote, position, today=today).position

        for quote in self.history:
            if quote.name:
                self.name = quote.name
                quote.name = None

    def update_history(
        self,
        quotes: Iterable[StockQuote],
        date_range: DateRange,
        today: Optional[dt.date] = None
    ) -> List[dt.date]:
        """
        Merge a batch of quotes fetched for ``date_range``.

        Market-open days inside the range that precede a returned quote but
        have no quote of their own are reported back. They are not added to
        ``additional_closures``: a provider returning sparse data does not
        prove the market was closed.

        Returns:
            Market-open days the provider returned no quote for
        """
        missing: List[dt.date] = []
        cursor = date_range.start
        position = 0
        for quote in self.sort_by_date(quotes):
            day = quote.date
            if day == NO_DATE:
                position = self.merge_quote(quote, position, today=today).position
                continue
            while cursor < day:
                if self.is_market_open(cursor):
                    logger.debug(
                        "Quote missing from provider data",
                        symbol=self.symbol,
                        date=cursor.isoformat()
                    )
                    missing.append(cursor)
                cursor = self.get_next_market_open_date(cursor)
            position = self.merge_quote(quote, position, today=today).position
            cursor = self.get_next_market_open_date(day)

        if missing:
            logger.info(
                "Provider data has gaps",
                symbol=self.symbol,
                missing_days=len(missing),
                range=str(date_range)
            )
        return missing
