"""
Tests for the quotehistory CLI
"""

import shutil
import sys
import tempfile
import unittest
from datetime import date
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from typer.testing import CliRunner

from quotehistory.cli import app
from quotehistory.history import QuoteHistory, StockQuote
from quotehistory.storage.local_storage import LocalStorageBackend


class TestCli(unittest.TestCase):
    """Commands run against a temporary history root"""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.root = Path(self.tmp) / "history"
        self.storage = LocalStorageBackend(self.root)
        self.runner = CliRunner()

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def invoke(self, *args):
        return self.runner.invoke(app, [*args, "--root", str(self.root)])

    def save_history(self, symbol, days):
        history = QuoteHistory(symbol=symbol, name=f"{symbol} Corp", last_update=date(2024, 6, 14))
        history.history = [StockQuote(symbol=symbol, date=d, close=Decimal(100)) for d in days]
        self.storage.save(history)

    def test_show(self):
        """Test show prints the summary and recent quotes"""
        self.save_history("IBM", [date(2024, 6, 3), date(2024, 6, 4)])
        result = self.invoke("show", "IBM")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("IBM Corp", result.output)
        self.assertIn("2024-06-04", result.output)

    def test_show_unknown_symbol(self):
        """Test show fails for a symbol without history"""
        result = self.invoke("show", "NOPE")
        self.assertEqual(result.exit_code, 1)

    def test_gaps(self):
        """Test gaps lists the missing ranges"""
        result = self.invoke("gaps", "IBM", "--years", "1")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Missing ranges for IBM", result.output)

    def test_status(self):
        """Test status lists stored histories and fails on unreadable ones"""
        self.save_history("IBM", [date(2024, 6, 3)])
        result = self.invoke("status")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("IBM", result.output)

        (self.root / "BAD.json").write_text("{", encoding="utf-8")
        result = self.invoke("status")
        self.assertEqual(result.exit_code, 1)

    def test_dedupe(self):
        """Test dedupe repairs and saves histories"""
        self.save_history("IBM", [date(2024, 6, 3), date(2024, 6, 3), date(2024, 6, 4)])
        result = self.invoke("dedupe")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Repaired 1 of 1", result.output)
        self.assertEqual(len(self.storage.load("IBM").history), 2)

    def test_import_csv(self):
        """Test a CSV download is merged and missing days reported"""
        csv_path = Path(self.tmp) / "ibm.csv"
        csv_path.write_text(
            "Date,Open,High,Low,Close,Volume\n"
            "2024-06-03,170.0,171.5,169.2,170.9,3000000\n"
            "2024-06-05,171.0,172.0,170.1,171.7,2500000\n",
            encoding="utf-8"
        )

        result = self.invoke("import-csv", "IBM", str(csv_path), "--name", "IBM", "--start", "2024-06-03")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Merged 2 quotes", result.output)
        self.assertIn("2024-06-04", result.output)
        history = self.storage.load("IBM")
        self.assertEqual(history.name, "IBM")
        self.assertEqual([q.close for q in history.history], [Decimal("170.9"), Decimal("171.7")])

    def test_import_csv_bad_file(self):
        """Test a CSV without prices fails cleanly"""
        csv_path = Path(self.tmp) / "bad.csv"
        csv_path.write_text("Date,Price\n2024-06-03,1\n", encoding="utf-8")

        result = self.invoke("import-csv", "IBM", str(csv_path))
        self.assertEqual(result.exit_code, 1)


if __name__ == "__main__":
    unittest.main()
