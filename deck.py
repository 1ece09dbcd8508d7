#!/usr/bin/env python3
"""
Task Deck - Command Line Interface
Add, complete and delete tasks and events, view the ranked task list,
the calendar window, the archive and the weather forecast, and keep a notepad
"""

import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer
from dateutil import parser as date_parser
from rich.console import Console

from taskdeck.core import Config, JsonStore, MissingDeadlineError, StorageError
from taskdeck.core.models import to_local_naive
from taskdeck.dashboard import CalendarAggregator, DeckFormatter, OperationResult, Prioritizer
from taskdeck.dashboard.aggregator import ARCHIVE_PAGE_SIZE
from taskdeck.sync import ForecastDigest, start_weather_service

# Initialize CLI app and console
app = typer.Typer(help="Task Deck - ranked tasks and a multi-week calendar")
console = Console()

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

# Lazily built on first use so --config-dir/--data-dir can take effect
_state = {
    "config_dir": None,
    "data_dir": None,
    "config": None,
    "store": None,
    "aggregator": None,
}


@app.callback()
def main(
    config_dir: Optional[Path] = typer.Option(None, "--config-dir", help="Configuration directory"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Override the data directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Task Deck - ranked tasks and a multi-week calendar"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    _state.update(config_dir=config_dir, data_dir=data_dir, config=None, store=None, aggregator=None)


def get_config() -> Config:
    if _state["config"] is None:
        _state["config"] = Config(_state["config_dir"])
    return _state["config"]


def get_store() -> JsonStore:
    if _state["store"] is None:
        data_dir = _state["data_dir"] or get_config().get_data_directory()
        _state["store"] = JsonStore(data_dir)
    return _state["store"]


def get_aggregator() -> CalendarAggregator:
    """
    Get or initialize the CalendarAggregator instance.

    Loads the active registry from the data directory on first use; an
    unreadable registry ends the command with exit code 1.
    """
    if _state["aggregator"] is None:
        try:
            _state["aggregator"] = CalendarAggregator(get_store(), get_config(), Prioritizer())
        except StorageError as e:
            console.print(f"[red]Storage error: {e}[/red]")
            raise typer.Exit(1)
    return _state["aggregator"]


def parse_deadline(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse a deadline expression.

    Supports:
        - "today 18:00", "tomorrow", "friday 9:30"
        - anything dateutil understands ("2026-11-02 14:00", "Nov 2 2pm")

    Dates without a time default to 23:59 of that day.

    Returns:
        datetime or None if parsing fails
    """
    if now is None:
        now = datetime.now()
    raw = text.strip()
    text = raw.lower()
    end_of_day = now.replace(hour=23, minute=59, second=0, microsecond=0)

    words = text.split(maxsplit=1)
    day_offset = None
    if words and words[0] in ('today', 'td'):
        day_offset = 0
    elif words and words[0] in ('tomorrow', 'tmr', 'tom'):
        day_offset = 1
    elif words and words[0] in WEEKDAYS:
        day_offset = (WEEKDAYS.index(words[0]) - now.weekday()) % 7 or 7

    if day_offset is not None:
        base = end_of_day + timedelta(days=day_offset)
        if len(words) == 1:
            return base
        match = re.fullmatch(r'(\d{1,2})(?::(\d{2}))?\s*(am|pm)?', words[1].strip())
        if not match:
            return None
        hour = int(match.group(1))
        minute = int(match.group(2)) if match.group(2) else 0
        if match.group(3) == 'pm' and hour < 12:
            hour += 12
        elif match.group(3) == 'am' and hour == 12:
            hour = 0
        if hour > 23 or minute > 59:
            return None
        return base.replace(hour=hour, minute=minute)

    try:
        parsed = date_parser.parse(raw, default=end_of_day)
    except (ValueError, OverflowError):
        return None

    # "2026-11-02T14:00+02:00" parses offset-aware; the deck works in naive local time
    return to_local_naive(parsed)


def report(result: OperationResult) -> None:
    """Print a mutation outcome; exits with 1 when it was not successful."""
    if result.success:
        console.print(f"[green]✓[/green] {result.message}")
        return

    console.print(f"[red]✗[/red] {result.message}")
    for error in result.errors:
        console.print(f"  [red]{error}[/red]")
    raise typer.Exit(1)


@app.command()
def add(
    name: str = typer.Argument(..., help="Task or event name"),
    deadline: Optional[str] = typer.Option(None, "--deadline", "-d", help="Deadline (tomorrow 9am, friday, 2026-11-02 14:00)"),
    importance: Optional[int] = typer.Option(None, "--importance", "-i", min=0, max=4, help="Importance class for deadline tasks (0-4)"),
    urgency: Optional[int] = typer.Option(None, "--urgency", "-u", min=0, max=2, help="Time-urgency class for tasks without deadline (0-2)"),
    event: bool = typer.Option(False, "--event", "-e", help="Add a dated event instead of a task"),
):
    """
    Add a new task or event

    Examples:
      deck add "Hand in report" --deadline "friday 17:00" --importance 4
      deck add "Clean garage" --urgency 1
      deck add "Dentist" --deadline "2026-11-02 14:00" --event
    """
    aggregator = get_aggregator()

    if not aggregator.name_is_unique(name):
        console.print(f"[red]An item named '{name}' already exists[/red]")
        raise typer.Exit(1)

    due = None
    if deadline:
        due = parse_deadline(deadline)
        if due is None:
            console.print(f"[red]Could not parse deadline: {deadline}[/red]")
            raise typer.Exit(1)

    if event and (importance is not None or urgency is not None):
        console.print("[red]Events do not take importance or urgency classes[/red]")
        raise typer.Exit(1)
    if importance is not None and urgency is not None:
        console.print("[red]Use either --importance or --urgency, not both[/red]")
        raise typer.Exit(1)
    if importance is not None and due is None:
        console.print("[red]--importance needs a --deadline[/red]")
        raise typer.Exit(1)

    try:
        result = aggregator.add_item(
            name,
            deadline=due,
            importance=importance,
            time_importance=urgency,
            is_event=event,
        )
    except MissingDeadlineError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    report(result)
    if due:
        console.print(f"  Due: {due.strftime('%A, %B %d %H:%M')}")


@app.command()
def complete(name: str = typer.Argument(..., help="Name of the item to complete")):
    """
    Mark a task or event as done and archive it

    Example:
      deck complete "Hand in report"
    """
    report(get_aggregator().complete_item(name))


@app.command()
def delete(name: str = typer.Argument(..., help="Name of the item to delete")):
    """
    Delete a task or event without archiving it

    Example:
      deck delete "Clean garage"
    """
    aggregator = get_aggregator()
    if aggregator.name_is_unique(name):
        console.print(f"[red]No active item named '{name}'[/red]")
        raise typer.Exit(1)
    report(aggregator.delete_item(name))


@app.command()
def tasks(
    top: Optional[int] = typer.Option(None, "--top", "-n", help="Only show the N most urgent tasks"),
):
    """Show tasks ranked by urgency"""
    aggregator = get_aggregator()
    now = datetime.now()
    summary = aggregator.summarize(now)

    scored = aggregator.prioritizer.score_items(summary.task_list, now, top_n=top)
    console.print(DeckFormatter(console).format_priorities(scored, now, title="Tasks"))


@app.command()
def calendar(
    weeks: Optional[int] = typer.Option(None, "--weeks", "-w", min=1, help="Weeks to show (default from settings)"),
    day: Optional[str] = typer.Option(None, "--day", help="Also list everything due on this date"),
):
    """Show the calendar window starting at the current week"""
    aggregator = get_aggregator()
    now = datetime.now()
    summary = aggregator.summarize(now, weeks=weeks)
    formatter = DeckFormatter(console)

    scored = aggregator.prioritizer.score_items(summary.task_list, now, top_n=5)
    formatter.render_dashboard(summary, scored)

    if day:
        target = parse_deadline(day, now)
        if target is None:
            console.print(f"[red]Could not parse date: {day}[/red]")
            raise typer.Exit(1)
        cell = next((c for c in summary.day_cells if c.calendar_date == target.date()), None)
        if cell is None:
            console.print(f"[yellow]{target.date()} is outside the calendar window[/yellow]")
        else:
            console.print(formatter.format_day(cell))


@app.command()
def archive(
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number, most recent first"),
):
    """Show completed items"""
    items = get_aggregator().load_archive_page((page - 1) * ARCHIVE_PAGE_SIZE, ARCHIVE_PAGE_SIZE)
    console.print(DeckFormatter(console).format_archive(items, page))


@app.command()
def forecast():
    """Fetch the weather once and show the 2-hour forecast"""
    config = get_config()
    service = start_weather_service(config, start=False)
    service.refresh_once()

    digest = ForecastDigest(days=config.get_forecast_days())
    digest.refresh(service)

    console.print(DeckFormatter(console).format_forecast(digest, datetime.now()))
    if digest.broken:
        raise typer.Exit(1)


@app.command()
def note(
    text: Optional[str] = typer.Argument(None, help="New notepad text (omit to show the current note)"),
    append: bool = typer.Option(False, "--append", "-a", help="Add TEXT as a new line instead of replacing"),
    clear: bool = typer.Option(False, "--clear", help="Empty the notepad"),
):
    """
    Show or edit the notepad

    Examples:
      deck note
      deck note "Call the plumber back"
      deck note --append "Buy stamps"
    """
    store = get_store()
    try:
        if clear:
            store.save_note("")
            console.print("[green]✓[/green] Notepad cleared")
            return

        if text is None:
            console.print(DeckFormatter(console).format_note(store.read_note()))
            return

        if append:
            current = store.read_note()
            text = f"{current}\n{text}" if current else text
        store.save_note(text)
    except StorageError as e:
        console.print(f"[red]Storage error: {e}[/red]")
        raise typer.Exit(1)

    console.print("[green]✓[/green] Notepad saved")


if __name__ == "__main__":
    app()
