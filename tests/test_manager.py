"""
Unit Tests for HistoryManager

Single-writer merging, persistence and fetch planning across symbols.
"""

import shutil
import sys
import tempfile
import threading
import unittest
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from quotehistory.config import HistorySettings
from quotehistory.history import DateRange, QuoteHistory, StockQuote
from quotehistory.manager import HistoryManager
from quotehistory.storage import FormatError
from quotehistory.storage.local_storage import LocalStorageBackend

TODAY = date(2024, 6, 14)


def quotes_for(symbol, days, close=100):
    return [StockQuote(symbol=symbol, date=d, close=Decimal(close)) for d in days]


class TestHistoryManager(unittest.TestCase):
    """HistoryManager over local storage"""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.storage = LocalStorageBackend(Path(self.tmp))
        self.config = HistorySettings(years_to_check=1)
        self.manager = HistoryManager(self.storage, self.config)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_new_symbol_starts_empty(self):
        """Test an unknown symbol gets an empty history"""
        history = self.manager.get_history("AAPL")
        self.assertEqual(history.symbol, "AAPL")
        self.assertEqual(history.history, [])
        self.assertIs(self.manager.get_history("AAPL"), history)

    def test_apply_and_flush(self):
        """Test merged quotes are saved and visible to a new manager"""
        self.manager.apply_quotes("AAPL", quotes_for("AAPL", [date(2024, 6, 4), date(2024, 6, 3)]), today=TODAY)
        self.assertTrue(self.manager.is_dirty("AAPL"))

        self.assertEqual(self.manager.flush(), 1)
        self.assertFalse(self.manager.is_dirty("AAPL"))
        self.assertEqual(self.manager.flush(), 0)

        reloaded = HistoryManager(self.storage, self.config).get_history("AAPL")
        self.assertEqual([q.date for q in reloaded.history], [date(2024, 6, 3), date(2024, 6, 4)])
        self.assertEqual(reloaded.last_update, TODAY)

    def test_apply_with_range_reports_missing(self):
        """Test a requested range reports days the provider skipped"""
        missing = self.manager.apply_quotes(
            "AAPL",
            quotes_for("AAPL", [date(2024, 6, 3), date(2024, 6, 5)]),
            DateRange(start=date(2024, 6, 3), end=date(2024, 6, 5)),
            today=TODAY,
        )
        self.assertEqual(missing, [date(2024, 6, 4)])

    def test_empty_batch_is_ignored(self):
        """Test an empty batch changes nothing"""
        self.assertEqual(self.manager.apply_quotes("AAPL", []), [])
        self.assertFalse(self.manager.is_dirty("AAPL"))

    def test_not_found(self):
        """Test not found is recorded and cleared by later quotes"""
        self.manager.mark_not_found("ZZZZ", today=TODAY)
        self.assertTrue(self.manager.get_history("ZZZZ").not_found)
        self.assertEqual(self.manager.stale_symbols(TODAY), [])

        self.manager.apply_quotes("ZZZZ", quotes_for("ZZZZ", [date(2024, 6, 3)]), today=TODAY)
        self.assertFalse(self.manager.get_history("ZZZZ").not_found)

    def test_missing_ranges(self):
        """Test the fetch plan comes from the symbol's history"""
        self.assertEqual(
            self.manager.missing_ranges("AAPL", today=TODAY),
            [DateRange(start=date(2023, 6, 14), end=TODAY)]
        )
        self.manager.apply_quotes("AAPL", quotes_for("AAPL", [date(2024, 6, 13)]), today=TODAY)
        ranges = self.manager.missing_ranges("AAPL", today=TODAY)
        self.assertEqual(ranges[0], DateRange(start=date(2024, 6, 13), end=TODAY))

    def test_remove_duplicates_marks_dirty(self):
        """Test repairing a history schedules it for saving"""
        history = QuoteHistory(symbol="IBM")
        history.history = quotes_for("IBM", [date(2024, 1, 2), date(2024, 1, 2)])
        self.storage.save(history)

        self.assertTrue(self.manager.remove_duplicates("IBM"))
        self.assertTrue(self.manager.is_dirty("IBM"))
        self.assertFalse(self.manager.remove_duplicates("IBM"))

    def test_stale_symbols_skip_unreadable(self):
        """Test unreadable histories are skipped when listing stale symbols"""
        self.storage.save(QuoteHistory(symbol="OLD", last_update=date(2024, 6, 1)))
        self.storage.save(QuoteHistory(symbol="NEW", last_update=TODAY))
        (Path(self.tmp) / "BAD.json").write_text("{", encoding="utf-8")

        self.assertEqual(self.manager.symbols(), ["BAD", "NEW", "OLD"])
        self.assertEqual(self.manager.stale_symbols(TODAY), ["OLD"])
        with self.assertRaises(FormatError):
            self.manager.get_history("BAD")

    def test_parallel_writers(self):
        """Test concurrent batches keep every history sorted and unique"""
        days = [date(2024, 1, 1) + timedelta(days=i) for i in range(60)]
        symbols = ["AAPL", "MSFT", "IBM"]

        def worker(symbol, offset):
            batch = days[offset::4]
            self.manager.apply_quotes(symbol, quotes_for(symbol, reversed(batch), close=offset), today=TODAY)

        threads = [
            threading.Thread(target=worker, args=(symbol, offset))
            for symbol in symbols
            for offset in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for symbol in symbols:
            dates = [q.date for q in self.manager.get_history(symbol).history]
            self.assertEqual(dates, days)


if __name__ == "__main__":
    unittest.main()
