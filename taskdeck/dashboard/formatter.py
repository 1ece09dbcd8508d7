"""
Rich formatter module for Task Deck.

Handles all Rich-based CLI formatting: the ranked task list, the week
grid of day cells, the archive and the weather forecast digest.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich import box

from taskdeck.core.models import ActiveItem, ArchivedItem, EVENT_COLOR
from taskdeck.dashboard.aggregator import CalendarSummary, DayCell
from taskdeck.dashboard.prioritizer import ScoredItem, ScoreCase
from taskdeck.sync.weather import ForecastDigest


# Calendar color classes (importance/time-urgency class, events last)
CALENDAR_COLORS = {
    0: "dim",
    1: "white",
    2: "yellow",
    3: "magenta",
    4: "red bold",
    EVENT_COLOR: "cyan",
}

WEEKDAY_HEADERS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def ordinal_suffix(day: int) -> str:
    """English ordinal suffix for a day of month (1st, 2nd, 11th...)."""
    if day % 100 in (11, 12, 13):
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_date(day: date) -> Tuple[str, str]:
    """
    Weekday and long date labels.

    Returns:
        ("MONDAY", "October 19th, 2026")
    """
    weekday = day.strftime("%A").upper()
    full_date = f"{day.strftime('%B')} {day.day}{ordinal_suffix(day.day)}, {day.year}"
    return weekday, full_date


def next_weekday_names(now: datetime, count: int = 3) -> List[str]:
    """Names of today and the following days."""
    return [(now + timedelta(days=i)).strftime("%A") for i in range(count)]


class DeckFormatter:
    """
    Rich-based formatter for Task Deck.

    Creates terminal output using Rich panels, tables, and styling.
    """

    def __init__(self, console: Optional[Console] = None):
        """
        Initialize formatter.

        Args:
            console: Rich Console instance (creates default if not provided)
        """
        self.console = console or Console()

    def _truncate(self, text: str, width: int) -> str:
        return text[:width] + "..." if len(text) > width else text

    def _format_class(self, item: ActiveItem) -> str:
        """Format importance or urgency class as colored badge."""
        color = CALENDAR_COLORS.get(item.calendar_color(), "white")
        if item.is_event:
            return f"[{color}]EV[/{color}]"
        if item.importance is not None:
            return f"[{color}]I{item.importance}[/{color}]"
        if item.time_importance is not None:
            return f"[{color}]U{item.time_importance}[/{color}]"
        return "[red]??[/red]"

    def _format_due(self, item: ActiveItem, now: datetime) -> str:
        """Format deadline with color based on proximity."""
        if item.deadline is None:
            return "[dim]---[/dim]"

        days_diff = (item.deadline.date() - now.date()).days

        if days_diff < 0:
            abs_days = abs(days_diff)
            if abs_days == 1:
                return "[red bold]1 day ago[/red bold]"
            return f"[red bold]{abs_days} days ago[/red bold]"
        elif days_diff == 0:
            return f"[yellow bold]Today {item.deadline.strftime('%H:%M')}[/yellow bold]"
        elif days_diff == 1:
            return "[yellow]Tomorrow[/yellow]"
        elif days_diff <= 7:
            return f"[white]{item.deadline.strftime('%a')}[/white]"
        else:
            return f"[dim]{item.deadline.strftime('%b %d')}[/dim]"

    def format_header(self, now: datetime) -> Panel:
        """Create header panel with weekday and date."""
        weekday, full_date = format_date(now.date())
        content = Text()
        content.append(f"{weekday}\n", style="bold")
        content.append(full_date, style="dim")

        return Panel(
            content,
            title="[bold]Task Deck[/bold]",
            title_align="center",
            border_style="blue",
            padding=(0, 2),
        )

    def format_priorities(
        self,
        scored: List[ScoredItem],
        now: datetime,
        title: str = "Focus Now"
    ) -> Panel:
        """
        Create panel showing ranked tasks.

        Args:
            scored: Tasks in priority order with their scores
            now: Current datetime for due labels
            title: Panel title
        """
        if not scored:
            return Panel(
                Text("No active tasks", style="dim", justify="center"),
                title=f"[bold]{title}[/bold]",
                border_style="green",
                padding=(0, 1),
            )

        table = Table(show_header=False, box=None, padding=(0, 1), expand=True)
        table.add_column("#", width=3)
        table.add_column("Name", ratio=1)
        table.add_column("Due", width=14, justify="right")
        table.add_column("Class", width=3, justify="right")
        table.add_column("Score", width=10, justify="right")

        for i, entry in enumerate(scored, 1):
            if entry.case is ScoreCase.MALFORMED:
                score_str = "[red bold]broken[/red bold]"
            else:
                score_str = f"[dim]{entry.score:,.0f}[/dim]"

            table.add_row(
                f"[bold]{i}.[/bold]",
                self._truncate(entry.item.name, 40),
                self._format_due(entry.item, now),
                self._format_class(entry.item),
                score_str,
            )

        return Panel(
            table,
            title=f"[bold]{title}[/bold]",
            border_style="green",
            padding=(0, 1),
        )

    def _format_cell(self, cell: DayCell) -> Text:
        text = Text()
        text.append(cell.day_label, style="reverse bold" if cell.is_today else "bold")

        for entry in cell.highlighted:
            style = CALENDAR_COLORS.get(entry.color, "white")
            text.append(f"\n{entry.time} ", style="dim")
            text.append(self._truncate(entry.name, 10), style=style)

        hidden = len(cell.full_list) - len(cell.highlighted)
        if hidden > 0:
            text.append(f"\n+{hidden} more", style="dim")
        return text

    def format_calendar(self, summary: CalendarSummary) -> Table:
        """
        Create the week grid.

        Month transitions are shown in a leading column on the row where
        the first of the month falls.
        """
        first_day = summary.day_cells[0].calendar_date if summary.day_cells else None
        headers = WEEKDAY_HEADERS
        if first_day is not None:
            headers = [(first_day + timedelta(days=i)).strftime("%a") for i in range(7)]

        table = Table(box=box.SIMPLE_HEAVY, expand=True, show_lines=True)
        table.add_column("", width=9, style="dim")
        for header in headers:
            table.add_column(header, ratio=1, vertical="top")

        for row, boundary in zip(summary.weeks, summary.month_boundaries):
            marker = f"{boundary[0][:3]}→{boundary[1][:3]}" if boundary else ""
            table.add_row(marker, *[self._format_cell(cell) for cell in row])

        return table

    def format_day(self, cell: DayCell) -> Panel:
        """Create panel listing everything due on one day."""
        weekday, full_date = format_date(cell.calendar_date)
        if not cell.full_list:
            content = Text("Nothing due", style="dim", justify="center")
        else:
            content = Table(show_header=False, box=None, padding=(0, 1), expand=True)
            content.add_column("Time", width=6)
            content.add_column("Name", ratio=1)
            content.add_column("Kind", width=5, justify="right")
            for entry in cell.full_list:
                kind = "[cyan]event[/cyan]" if entry.is_event else "[dim]task[/dim]"
                content.add_row(entry.time, entry.name, kind)

        return Panel(
            content,
            title=f"[bold]{weekday.title()}, {full_date}[/bold]",
            border_style="cyan",
            padding=(0, 1),
        )

    def format_archive(self, items: List[ArchivedItem], page: int) -> Panel:
        """Create panel with one page of archived items."""
        if not items:
            content = Text("Archive is empty", style="dim", justify="center")
        else:
            content = Table(show_header=True, box=None, padding=(0, 1), expand=True)
            content.add_column("Name", ratio=1)
            content.add_column("Kind", width=5)
            content.add_column("Completed", width=16, justify="right")
            for item in items:
                content.add_row(
                    self._truncate(item.name, 40),
                    "event" if item.is_event else "task",
                    item.archived_at.strftime("%Y-%m-%d %H:%M"),
                )

        return Panel(
            content,
            title=f"[bold]Archive (page {page})[/bold]",
            border_style="white",
            padding=(0, 1),
        )

    def format_note(self, text: str) -> Panel:
        """Create panel with the notepad text."""
        content = Text(text) if text else Text("Notepad is empty", style="dim", justify="center")
        return Panel(
            content,
            title="[bold]Notepad[/bold]",
            border_style="yellow",
            padding=(0, 1),
        )

    def format_forecast(self, digest: ForecastDigest, now: datetime) -> Panel:
        """Create panel with 2-hour forecast slots per day."""
        if digest.broken or not digest.slots:
            return Panel(
                Text("Weather unavailable", style="red", justify="center"),
                title="[bold]Weather[/bold]",
                border_style="red",
                padding=(0, 1),
            )

        names = next_weekday_names(now, len(digest.slots))
        table = Table(box=box.SIMPLE, expand=True)
        table.add_column("Time", width=6, style="dim")
        for name in names:
            table.add_column(name, justify="right")

        for i in range(len(digest.slots[0])):
            cells = []
            for day_slots in digest.slots:
                slot = day_slots[i]
                icon = "☀" if slot.is_day else "☾"
                cells.append(f"{icon} {slot.temperature:.0f}° [dim]({slot.weather_code})[/dim]")
            table.add_row(digest.slots[0][i].time, *cells)

        return Panel(
            table,
            title="[bold]Weather[/bold]",
            border_style="blue",
            padding=(0, 1),
        )

    def render_dashboard(
        self,
        summary: CalendarSummary,
        scored: List[ScoredItem],
        digest: Optional[ForecastDigest] = None
    ) -> None:
        """
        Render header, priorities, calendar and (optionally) weather.

        Args:
            summary: Calendar aggregation result
            scored: Ranked tasks to list
            digest: Weather digest, skipped when None
        """
        now = summary.generated_at

        self.console.print(self.format_header(now))
        self.console.print()

        self.console.print(self.format_priorities(scored, now))
        self.console.print()

        self.console.print(self.format_calendar(summary))

        if digest is not None:
            self.console.print()
            self.console.print(self.format_forecast(digest, now))
