"""
Quote History DataFrame Bridge

Conversions between provider OHLCV DataFrames (Date index, Open/High/Low/
Close/Volume columns) and quote history models.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

import pandas as pd

from .history import NO_DATE, QuoteHistory, StockQuote
from .logging import get_logger

logger = get_logger(__name__)

PRICE_COLUMNS = ['Open', 'High', 'Low', 'Close']
OHLCV_COLUMNS = PRICE_COLUMNS + ['Volume']


def _to_decimal(value) -> Decimal:
    return Decimal(str(value))


def quotes_from_frame(
    data: pd.DataFrame,
    symbol: str,
    name: Optional[str] = None,
    downloaded: Optional[datetime] = None
) -> List[StockQuote]:
    """
    Convert a provider OHLCV DataFrame into quotes.

    Args:
        data: Frame with a Date index or column and OHLC(V) columns; column
            names are matched case-insensitively
        symbol: Symbol the data belongs to
        name: Optional security name to attach to the quotes
        downloaded: Download timestamp, defaults to now

    Returns:
        One quote per row with complete prices, in frame order

    Raises:
        ValueError: If the date or a price column is missing
    """
    if data is None or data.empty:
        return []

    downloaded = downloaded or datetime.now()
    data = data.copy()

    if 'date' not in {str(c).lower() for c in data.columns}:
        if str(data.index.name).lower() == 'date' or isinstance(data.index, pd.DatetimeIndex):
            data = data.rename_axis('Date').reset_index()
        else:
            raise ValueError("DataFrame has no Date index or column")

    columns = {str(c).lower(): c for c in data.columns}
    missing = [c for c in PRICE_COLUMNS if c.lower() not in columns]
    if missing:
        raise ValueError(f"DataFrame is missing columns: {missing}")

    data = data.rename(columns={columns[c.lower()]: c for c in OHLCV_COLUMNS + ['Date'] if c.lower() in columns})
    if 'Volume' not in data.columns:
        data['Volume'] = 0

    before = len(data)
    data = data.dropna(subset=['Date'] + PRICE_COLUMNS)
    if len(data) < before:
        logger.debug(
            "Dropped incomplete rows",
            symbol=symbol,
            dropped=before - len(data)
        )

    dates = pd.to_datetime(data['Date'])
    volumes = data['Volume'].fillna(0)

    quotes = []
    for day, open_, high, low, close, volume in zip(
        dates, data['Open'], data['High'], data['Low'], data['Close'], volumes
    ):
        quotes.append(StockQuote(
            symbol=symbol,
            name=name,
            date=day.to_pydatetime(),
            open=_to_decimal(open_),
            high=_to_decimal(high),
            low=_to_decimal(low),
            close=_to_decimal(close),
            volume=_to_decimal(volume),
            downloaded=downloaded,
        ))
    return quotes


def history_to_frame(history: QuoteHistory) -> pd.DataFrame:
    """
    Convert a history into an OHLCV DataFrame indexed by Date.

    Prices are returned as floats for analysis; the history keeps decimals.
    """
    records = [
        {
            'Date': pd.Timestamp(q.date),
            'Open': float(q.open),
            'High': float(q.high),
            'Low': float(q.low),
            'Close': float(q.close),
            'Volume': float(q.volume),
            'Downloaded': q.downloaded,
        }
        for q in history.history
        if q.date != NO_DATE
    ]
    frame = pd.DataFrame.from_records(
        records,
        columns=['Date'] + OHLCV_COLUMNS + ['Downloaded']
    )
    return frame.set_index('Date')
