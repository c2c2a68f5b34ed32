"""
Quote History

Durable per-symbol daily quote history with a US market calendar and
missing-data planning, used to avoid re-downloading quotes a provider has
already delivered.
"""

__version__ = "1.0.0"

from .config import HistorySettings, LogLevel
from .dedupe import remove_duplicates
from .gaps import GapDetector, get_missing_data_ranges
from .history import NO_DATE, DateRange, MergeResult, QuoteHistory, StockQuote
from .manager import HistoryManager
from .market_calendar import KNOWN_CLOSURES, MarketCalendar
from .storage import FormatError, StorageBackend, StorageError, StorageIOError
from .storage.local_storage import LocalStorageBackend

__all__ = [
    "HistorySettings",
    "LogLevel",
    "remove_duplicates",
    "GapDetector",
    "get_missing_data_ranges",
    "NO_DATE",
    "DateRange",
    "MergeResult",
    "QuoteHistory",
    "StockQuote",
    "HistoryManager",
    "KNOWN_CLOSURES",
    "MarketCalendar",
    "FormatError",
    "StorageBackend",
    "StorageError",
    "StorageIOError",
    "LocalStorageBackend",
]
