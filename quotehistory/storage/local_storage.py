"""
Local Filesystem Storage Backend

Implementation of StorageBackend keeping one indented JSON document per
symbol under a root directory.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from . import FormatError, StorageBackend, StorageIOError
from ..history import QuoteHistory
from ..logging import Timer, get_logger

logger = get_logger(__name__)

FILE_SUFFIX = ".json"


class LocalStorageBackend(StorageBackend):
    """
    Local filesystem implementation of StorageBackend.

    Stores each history at ``<root>/<SYMBOL>.json``. Saves go through a
    temporary file that is renamed over the previous version, so a crash
    mid-write leaves the old document intact.
    """

    def __init__(self, root_path: Path):
        """
        Initialize local storage backend.

        Args:
            root_path: Directory holding the history documents
        """
        self.root_path = Path(root_path).resolve()
        self.root_path.mkdir(parents=True, exist_ok=True)

        logger.debug("Initialized local storage backend", root_path=str(self.root_path))

    def get_file_name(self, symbol: str) -> Path:
        """Return the document path for a symbol."""
        if not symbol or symbol in (".", "..") or "/" in symbol or "\\" in symbol:
            raise ValueError(f"Invalid symbol for file storage: {symbol!r}")
        return self.root_path / f"{symbol}{FILE_SUFFIX}"

    def load(self, symbol: str) -> Optional[QuoteHistory]:
        file_path = self.get_file_name(symbol)
        if not file_path.exists():
            logger.debug("No stored history", symbol=symbol)
            return None

        with Timer(logger, "load_history", symbol=symbol):
            try:
                text = file_path.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise FormatError(
                    f"History for {symbol} is not valid UTF-8: {e}", "local", "load"
                ) from e
            except OSError as e:
                raise StorageIOError(
                    f"Failed to read history for {symbol}: {e}", "local", "load"
                ) from e

            try:
                history = QuoteHistory.model_validate_json(text)
            except ValidationError as e:
                raise FormatError(
                    f"Corrupt history for {symbol}: {e.error_count()} errors, first: {e.errors()[0]['msg']}",
                    "local",
                    "load"
                ) from e

        if history.symbol is None:
            history.symbol = symbol
        elif history.symbol != symbol:
            logger.warning(
                "Stored history symbol does not match file name",
                symbol=symbol,
                stored_symbol=history.symbol
            )

        logger.debug("Loaded history", symbol=symbol, records=len(history.history))
        return history

    def save(self, history: QuoteHistory) -> None:
        if not history.symbol:
            raise ValueError("Cannot save a history without a symbol")

        file_path = self.get_file_name(history.symbol)
        payload = history.model_dump_json(indent=2)

        with Timer(logger, "save_history", symbol=history.symbol, records=len(history.history)):
            tmp_name = None
            try:
                fd, tmp_name = tempfile.mkstemp(
                    dir=self.root_path,
                    prefix=f".{history.symbol}.",
                    suffix=".tmp"
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, file_path)
            except OSError as e:
                if tmp_name is not None:
                    with suppress(FileNotFoundError):
                        os.unlink(tmp_name)
                raise StorageIOError(
                    f"Failed to write history for {history.symbol}: {e}", "local", "save"
                ) from e

    def exists(self, symbol: str) -> bool:
        return self.get_file_name(symbol).exists()

    def delete(self, symbol: str) -> bool:
        file_path = self.get_file_name(symbol)
        try:
            file_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(
                f"Failed to delete history for {symbol}: {e}", "local", "delete"
            ) from e
        logger.info("Deleted history", symbol=symbol)
        return True

    def list_symbols(self) -> List[str]:
        return sorted(
            p.stem for p in self.root_path.glob(f"*{FILE_SUFFIX}")
            if not p.name.startswith(".")
        )

    def get_storage_info(self) -> Dict[str, Any]:
        files = [p for p in self.root_path.glob(f"*{FILE_SUFFIX}") if not p.name.startswith(".")]
        total_size = sum(p.stat().st_size for p in files)
        return {
            "backend": "local",
            "root_path": str(self.root_path),
            "file_count": len(files),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
        }
