"""
Quote History Storage Module

Abstraction layer for persisting one quote history document per symbol.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..history import QuoteHistory


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Each symbol's history is stored as a single record that is read and
    written whole.
    """

    @abstractmethod
    def load(self, symbol: str) -> Optional[QuoteHistory]:
        """
        Load the stored history for a symbol.

        Args:
            symbol: Symbol to load

        Returns:
            The stored history, or None if nothing is stored for the symbol

        Raises:
            FormatError: If the stored record cannot be parsed
            StorageIOError: If the record cannot be read
        """
        pass

    @abstractmethod
    def save(self, history: QuoteHistory) -> None:
        """
        Store a history, replacing any previous record for its symbol.

        Args:
            history: History to store

        Raises:
            StorageIOError: If the record cannot be written
        """
        pass

    @abstractmethod
    def exists(self, symbol: str) -> bool:
        """Check whether a history is stored for the symbol."""
        pass

    @abstractmethod
    def delete(self, symbol: str) -> bool:
        """Delete the stored history, returning whether one existed."""
        pass

    @abstractmethod
    def list_symbols(self) -> List[str]:
        """List all symbols with a stored history."""
        pass

    @abstractmethod
    def get_storage_info(self) -> Dict[str, Any]:
        """Get information about storage usage and configuration."""
        pass


class StorageError(Exception):
    """Exception raised when storage operations fail."""

    def __init__(self, message: str, backend: str, operation: Optional[str] = None):
        self.message = message
        self.backend = backend
        self.operation = operation
        super().__init__(f"[{backend}] {message}" + (f" during {operation}" if operation else ""))


class FormatError(StorageError):
    """Exception raised when a stored history is corrupt or unreadable."""
    pass


class StorageIOError(StorageError):
    """Exception raised when the underlying file system operation fails."""
    pass


__all__ = ["StorageBackend", "StorageError", "FormatError", "StorageIOError"]
