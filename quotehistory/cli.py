"""
Quote History CLI

Typer-based command-line interface for inspecting and maintaining stored
quote histories.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Annotated, List, Optional

import pandas as pd
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from quotehistory.config import LogLevel, settings
from quotehistory.frames import quotes_from_frame
from quotehistory.history import DateRange
from quotehistory.logging import Timer, configure_logging, get_logger, set_correlation_id
from quotehistory.manager import HistoryManager
from quotehistory.storage import StorageError
from quotehistory.storage.local_storage import LocalStorageBackend

app = typer.Typer(
    name="quotehistory",
    help="Inspect and maintain cached daily quote histories",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True
)

console = Console()
logger = get_logger(__name__)

RootOption = Annotated[Optional[Path], typer.Option(
    "--root", "-r",
    help="Directory holding the history files"
)]

LogLevelOption = Annotated[LogLevel, typer.Option(
    "--log-level", "-l",
    help="Logging level"
)]


def create_manager(root: Optional[Path], log_level: LogLevel) -> HistoryManager:
    """Setup logging and build a manager over local storage."""
    configure_logging(log_level=log_level, use_json=False, use_rich=True)
    set_correlation_id()
    return HistoryManager(LocalStorageBackend(root or settings.history_root))


def fail(message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(1)


def parse_date(value: str, option: str):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise typer.BadParameter(f"{option} must be YYYY-MM-DD, got {value!r}")


@app.command()
def show(
    symbol: Annotated[str, typer.Argument(help="Symbol to show")],
    last: Annotated[int, typer.Option("--last", "-n", help="Number of recent quotes to list", min=0)] = 10,
    root: RootOption = None,
    log_level: LogLevelOption = LogLevel.WARNING,
):
    """
    Show a stored history and its most recent quotes.
    """
    manager = create_manager(root, log_level)
    try:
        if not manager.storage.exists(symbol):
            fail(f"No history stored for {symbol}")
        history = manager.get_history(symbol)
    except StorageError as e:
        fail(str(e))

    console.print(f"[bold]{history.symbol}[/bold] {history.name or ''}")
    console.print(f"Records: {len(history.history)}")
    console.print(f"Last update: {history.last_update or 'never'}")
    console.print(f"Not found: {history.not_found}")
    if history.additional_closures:
        console.print(f"Additional closures: {len(history.additional_closures)}")

    if last and history.history:
        table = Table(title=f"Last {min(last, len(history.history))} quotes")
        for column in ("Date", "Open", "High", "Low", "Close", "Volume", "Downloaded"):
            table.add_column(column, justify="right" if column not in ("Date", "Downloaded") else "left")
        for quote in history.history[-last:]:
            table.add_row(
                quote.date.isoformat(),
                str(quote.open),
                str(quote.high),
                str(quote.low),
                str(quote.close),
                str(quote.volume),
                quote.downloaded.isoformat(timespec="seconds") if quote.downloaded else "",
            )
        console.print(table)


@app.command()
def gaps(
    symbol: Annotated[str, typer.Argument(help="Symbol to check")],
    years: Annotated[Optional[int], typer.Option("--years", "-y", help="Years of history to check", min=1)] = None,
    root: RootOption = None,
    log_level: LogLevelOption = LogLevel.WARNING,
):
    """
    List the date ranges that still need to be downloaded for a symbol.
    """
    manager = create_manager(root, log_level)
    try:
        ranges = manager.missing_ranges(symbol, years_to_check=years)
    except StorageError as e:
        fail(str(e))

    if not ranges:
        console.print(f"[green]{symbol} is complete[/green]")
        return

    table = Table(title=f"Missing ranges for {symbol}")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Days", justify="right")
    for date_range in ranges:
        table.add_row(
            date_range.start.isoformat(),
            date_range.end.isoformat(),
            str((date_range.end - date_range.start).days + 1),
        )
    console.print(table)


@app.command()
def dedupe(
    symbols: Annotated[Optional[List[str]], typer.Argument(help="Symbols to repair, all when omitted")] = None,
    root: RootOption = None,
    log_level: LogLevelOption = LogLevel.INFO,
):
    """
    Remove undated and duplicate quotes from stored histories.
    """
    manager = create_manager(root, log_level)
    targets = symbols or manager.symbols()

    with Timer(logger, "dedupe", symbols=len(targets)):
        repaired = []
        failed = []
        for symbol in targets:
            try:
                if manager.remove_duplicates(symbol):
                    manager.save(symbol)
                    repaired.append(symbol)
            except StorageError as e:
                logger.error("Failed to repair history", symbol=symbol, error=str(e))
                failed.append(symbol)

    console.print(f"Repaired {len(repaired)} of {len(targets)} histories")
    for symbol in repaired:
        console.print(f"  {symbol}")
    if failed:
        fail(f"Failed: {', '.join(failed)}")


@app.command()
def status(
    root: RootOption = None,
    log_level: LogLevelOption = LogLevel.WARNING,
):
    """
    Show every stored history and whether it needs updating.
    """
    manager = create_manager(root, log_level)

    table = Table(title="Quote histories")
    table.add_column("Symbol")
    table.add_column("Name")
    table.add_column("Records", justify="right")
    table.add_column("Last Update")
    table.add_column("Status")

    errors = 0
    for symbol in manager.symbols():
        try:
            history = manager.get_history(symbol)
        except StorageError as e:
            table.add_row(symbol, "", "", "", f"[red]unreadable: {escape(e.message)}[/red]")
            errors += 1
            continue
        if history.not_found:
            state = "[yellow]not found[/yellow]"
        elif history.needs_updating():
            state = "stale"
        else:
            state = "[green]current[/green]"
        table.add_row(
            symbol,
            history.name or "",
            str(len(history.history)),
            history.last_update.isoformat() if history.last_update else "never",
            state,
        )

    console.print(table)
    if errors:
        raise typer.Exit(1)


@app.command("import-csv")
def import_csv(
    symbol: Annotated[str, typer.Argument(help="Symbol the file belongs to")],
    path: Annotated[Path, typer.Argument(help="CSV file with Date, Open, High, Low, Close, Volume columns")],
    name: Annotated[Optional[str], typer.Option("--name", help="Security name")] = None,
    start: Annotated[Optional[str], typer.Option("--start", "-s", help="Requested start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", "-e", help="Requested end date (YYYY-MM-DD)")] = None,
    root: RootOption = None,
    log_level: LogLevelOption = LogLevel.INFO,
):
    """
    Merge downloaded daily quotes from a CSV file into a symbol's history.

    When --start is given, market days the file has no quote for are reported.
    """
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")

    manager = create_manager(root, log_level)
    try:
        quotes = quotes_from_frame(pd.read_csv(path), symbol, name=name)
    except ValueError as e:
        fail(f"Cannot read quotes from {path}: {e}")

    date_range = None
    if start:
        start_date = parse_date(start, "--start")
        end_date = parse_date(end, "--end") if end else max(q.date for q in quotes) if quotes else start_date
        date_range = DateRange(start=start_date, end=end_date)

    try:
        missing = manager.apply_quotes(symbol, quotes, date_range)
        manager.flush()
    except StorageError as e:
        fail(str(e))

    console.print(f"Merged {len(quotes)} quotes into {symbol}")
    if missing:
        console.print(f"[yellow]{len(missing)} market days have no quote:[/yellow]")
        for day in missing[:20]:
            console.print(f"  {day.isoformat()}")
        if len(missing) > 20:
            console.print(f"  ... and {len(missing) - 20} more")


if __name__ == "__main__":
    app()
