"""
Quote History Deduplication

Maintenance pass that repairs histories loaded from older or untrusted
files. Merging already keeps histories unique, so this is not run inline.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from .history import NO_DATE, QuoteHistory
from .logging import get_logger

logger = get_logger(__name__)


def remove_duplicates(history: QuoteHistory, today: Optional[date] = None) -> bool:
    """
    Remove undated quotes and repeated days from a history.

    When two quotes share a day the one stored later wins, since it holds
    the fresher download. Out of order histories are stably sorted first so
    that rule still holds.

    Args:
        history: History to repair in place
        today: Day recorded as the last update, defaults to today

    Returns:
        True if the history changed
    """
    quotes = history.history
    if not quotes:
        return False

    ordered = sorted(quotes, key=lambda q: q.date)
    reordered = any(a is not b for a, b in zip(ordered, quotes))

    previous = None
    duplicates = set()
    for quote in ordered:
        if quote.date == NO_DATE:
            duplicates.add(id(quote))
        elif previous is not None and previous.date == quote.date:
            duplicates.add(id(previous))
        previous = quote

    if not duplicates and not reordered:
        return False

    history.history = [q for q in ordered if id(q) not in duplicates]
    history.touch(today)

    logger.info(
        "Repaired quote history",
        symbol=history.symbol,
        removed=len(duplicates),
        reordered=reordered,
        remaining=len(history.history)
    )
    return True
