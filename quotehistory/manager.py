"""
Quote History Manager

Entry point for the download side. Funnels every mutation of a symbol's
history through that symbol's lock, caches loaded histories and writes
changed ones back to storage.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Dict, Iterable, List, Optional, Set

from .config import HistorySettings, settings
from .dedupe import remove_duplicates
from .gaps import GapDetector
from .history import DateRange, QuoteHistory, StockQuote
from .logging import get_logger
from .storage import FormatError, StorageBackend

logger = get_logger(__name__)


class HistoryManager:
    """
    Single-writer access to quote histories.

    Histories of different symbols can be updated from different threads in
    parallel; updates to the same symbol are serialized.
    """

    def __init__(self, storage: StorageBackend, config: Optional[HistorySettings] = None):
        """
        Initialize the manager.

        Args:
            storage: Backend the histories are loaded from and saved to
            config: Settings for gap planning, defaults to the global settings
        """
        self.storage = storage
        self.config = config or settings
        self.detector = GapDetector(self.config)
        self._histories: Dict[str, QuoteHistory] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._dirty: Set[str] = set()
        self._registry_lock = threading.Lock()

    def lock(self, symbol: str) -> threading.RLock:
        """Return the lock guarding a symbol's history."""
        with self._registry_lock:
            lock = self._locks.get(symbol)
            if lock is None:
                lock = self._locks[symbol] = threading.RLock()
            return lock

    def get_history(self, symbol: str) -> QuoteHistory:
        """Return the cached history, loading it or starting an empty one."""
        with self.lock(symbol):
            history = self._histories.get(symbol)
            if history is None:
                history = self.storage.load(symbol)
                if history is None:
                    history = QuoteHistory(symbol=symbol)
                self._histories[symbol] = history
            return history

    def is_dirty(self, symbol: str) -> bool:
        with self._registry_lock:
            return symbol in self._dirty

    def _mark_dirty(self, symbol: str) -> None:
        with self._registry_lock:
            self._dirty.add(symbol)

    def apply_quotes(
        self,
        symbol: str,
        quotes: Iterable[StockQuote],
        date_range: Optional[DateRange] = None,
        today: Optional[date] = None
    ) -> List[date]:
        """
        Merge downloaded quotes into a symbol's history.

        Args:
            symbol: Symbol the quotes belong to
            quotes: Downloaded quotes in any order
            date_range: Range the quotes were requested for, if known
            today: Override for the current day

        Returns:
            Market-open days inside ``date_range`` the provider had no quote for
        """
        quotes = list(quotes)
        if not quotes:
            return []

        with self.lock(symbol):
            history = self.get_history(symbol)
            if date_range is not None:
                missing = history.update_history(quotes, date_range, today=today)
            else:
                missing = []
                position = 0
                for quote in history.sort_by_date(quotes):
                    position = history.merge_quote(quote, position, today=today).position
            history.not_found = False
            self._mark_dirty(symbol)

        logger.info(
            "Merged quotes",
            symbol=symbol,
            quotes=len(quotes),
            records=len(history.history),
            missing_days=len(missing)
        )
        return missing

    def mark_not_found(self, symbol: str, today: Optional[date] = None) -> None:
        """Record that the provider does not know the symbol."""
        with self.lock(symbol):
            history = self.get_history(symbol)
            history.not_found = True
            history.touch(today)
            self._mark_dirty(symbol)
        logger.warning("Symbol not found by provider", symbol=symbol)

    def missing_ranges(
        self,
        symbol: str,
        years_to_check: Optional[int] = None,
        today: Optional[date] = None
    ) -> List[DateRange]:
        """Compute the fetch plan for a symbol from a stable snapshot."""
        with self.lock(symbol):
            history = self.get_history(symbol)
            return list(self.detector.compute_missing_ranges(history, years_to_check, today))

    def remove_duplicates(self, symbol: str, today: Optional[date] = None) -> bool:
        """Repair a symbol's history, returning whether it changed."""
        with self.lock(symbol):
            changed = remove_duplicates(self.get_history(symbol), today)
            if changed:
                self._mark_dirty(symbol)
            return changed

    def save(self, symbol: str) -> None:
        """Write a symbol's history to storage."""
        with self.lock(symbol):
            self.storage.save(self.get_history(symbol))
            with self._registry_lock:
                self._dirty.discard(symbol)

    def flush(self) -> int:
        """Save every changed history, returning how many were written."""
        with self._registry_lock:
            pending = sorted(self._dirty)
        for symbol in pending:
            self.save(symbol)
        if pending:
            logger.info("Flushed histories", count=len(pending))
        return len(pending)

    def symbols(self) -> List[str]:
        """Symbols that are stored or loaded."""
        with self._registry_lock:
            cached = set(self._histories)
        return sorted(cached | set(self.storage.list_symbols()))

    def stale_symbols(self, today: Optional[date] = None) -> List[str]:
        """Symbols whose history needs updating; unreadable ones are logged and skipped."""
        stale = []
        for symbol in self.symbols():
            try:
                history = self.get_history(symbol)
            except FormatError as e:
                logger.error("Skipping unreadable history", symbol=symbol, error=str(e))
                continue
            if not history.not_found and history.needs_updating(today):
                stale.append(symbol)
        return stale
