"""
Calendar aggregation module for Task Deck.

Owns the in-memory registry of active items and turns it into the ranked
priority list and a dense per-day calendar window. Every change to the
registry (add, complete, delete) recomputes the whole summary and writes
the registry back in priority order.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, NamedTuple, Optional, Tuple

from taskdeck.core.config import Config
from taskdeck.core.errors import MissingDeadlineError, StorageError
from taskdeck.core.models import ActiveItem, ArchivedItem
from taskdeck.core.storage import JsonStore
from taskdeck.dashboard.prioritizer import Prioritizer

logger = logging.getLogger(__name__)

HIGHLIGHT_SLOTS = 3
ARCHIVE_PAGE_SIZE = 15


class HighlightEntry(NamedTuple):
    """Headline entry shown inside a day cell."""
    name: str
    time: str
    color: int


class DayEntry(NamedTuple):
    """Entry in a day's complete list."""
    name: str
    time: str
    is_event: bool


@dataclass
class DayCell:
    """Everything due on one calendar date."""
    day_of_month: int
    highlighted: List[HighlightEntry]
    full_list: List[DayEntry]
    is_today: bool
    calendar_date: date
    day_label: str


@dataclass
class CalendarSummary:
    """Complete aggregation result."""
    generated_at: datetime
    priority_list: List[ActiveItem]
    day_cells: List[DayCell]
    month_boundaries: List[Optional[Tuple[str, str]]]
    task_list: List[ActiveItem]

    @property
    def weeks(self) -> List[List[DayCell]]:
        """Day cells grouped into 7-day rows."""
        return [self.day_cells[i:i + 7] for i in range(0, len(self.day_cells), 7)]


@dataclass
class OperationResult:
    """
    Outcome of a registry mutation.

    The in-memory change is applied even when ``success`` is False because
    persistence failed; ``errors`` then carries the storage messages for
    the caller to show.
    """
    success: bool
    message: str
    errors: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, message: str) -> 'OperationResult':
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, message: str, errors: Optional[List[str]] = None) -> 'OperationResult':
        return cls(success=False, message=message, errors=errors or [])


def week_start(day: date, first_weekday: int = 0) -> date:
    """First day of the week containing ``day`` (Monday=0 ... Sunday=6)."""
    return day - timedelta(days=(day.weekday() - first_weekday) % 7)


def _deadline_of(item: ActiveItem) -> datetime:
    if item.deadline is None:
        raise MissingDeadlineError(item.name)
    return item.deadline


class CalendarAggregator:
    """
    Central registry and aggregation for tasks and events.

    There is one owner of the active set; aggregation is always a full
    recomputation from it, never an incremental patch.
    """

    def __init__(
        self,
        store: JsonStore,
        config: Optional[Config] = None,
        prioritizer: Optional[Prioritizer] = None,
        items: Optional[List[ActiveItem]] = None
    ):
        """
        Initialize aggregator.

        Args:
            store: Persistence collaborator
            config: Configuration (creates default if not provided)
            prioritizer: Scoring engine (default uses clock jitter)
            items: Initial registry; loaded from the store when omitted
        """
        self.store = store
        self.config = config if config else Config()
        self.prioritizer = prioritizer or Prioritizer()
        self.active_items: List[ActiveItem] = (
            list(items) if items is not None else store.load_active_items()
        )
        self.summary: Optional[CalendarSummary] = None

    def reload(self) -> None:
        """Replace the registry with the stored items."""
        self.active_items = self.store.load_active_items()
        self.summary = None

    def name_is_unique(self, name: str) -> bool:
        return not any(item.name == name for item in self.active_items)

    def _time_label(self, moment: datetime) -> str:
        return moment.strftime(self.config.get_time_format())

    def summarize(
        self,
        now: Optional[datetime] = None,
        weeks: Optional[int] = None
    ) -> CalendarSummary:
        """
        Rank the registry and build the calendar window.

        Args:
            now: Current datetime (defaults to local now)
            weeks: Rows to build (defaults to the configured week count)

        Returns:
            CalendarSummary; the registry is left in priority order

        Raises:
            MissingDeadlineError: If an event has no deadline
        """
        if now is None:
            now = datetime.now()
        if weeks is None:
            weeks = self.config.get_calendar_weeks()
        weeks = max(1, weeks)

        events = [item for item in self.active_items if item.is_event]
        tasks = [item for item in self.active_items if not item.is_event]

        events.sort(key=_deadline_of)
        tasks = self.prioritizer.rank(tasks, now)
        deadline_tasks = [task for task in tasks if task.deadline is not None]

        self.active_items = events + tasks

        today = now.date()
        start = week_start(today, self.config.get_first_weekday())

        day_cells: List[DayCell] = []
        month_boundaries: List[Optional[Tuple[str, str]]] = []

        for week in range(weeks):
            boundary = None
            for day in range(7):
                current = start + timedelta(days=week * 7 + day)

                if current.day == 1:
                    previous = current - timedelta(days=1)
                    boundary = (previous.strftime("%B"), current.strftime("%B"))

                day_cells.append(self._build_day_cell(current, today, events, deadline_tasks))
            month_boundaries.append(boundary)

        self.summary = CalendarSummary(
            generated_at=now,
            priority_list=list(self.active_items),
            day_cells=day_cells,
            month_boundaries=month_boundaries,
            task_list=[item for item in self.active_items if not item.is_event],
        )
        return self.summary

    def _build_day_cell(
        self,
        current: date,
        today: date,
        events: List[ActiveItem],
        deadline_tasks: List[ActiveItem]
    ) -> DayCell:
        day_events = [e for e in events if e.deadline.date() == current]
        day_tasks = [t for t in deadline_tasks if t.deadline.date() == current]

        # Events claim highlight slots before tasks
        chosen = day_events[:HIGHLIGHT_SLOTS]
        chosen += day_tasks[:HIGHLIGHT_SLOTS - len(chosen)]
        chosen.sort(key=_deadline_of)

        everything = sorted(day_events + day_tasks, key=_deadline_of)

        return DayCell(
            day_of_month=current.day,
            highlighted=[
                HighlightEntry(item.name, self._time_label(item.deadline), item.calendar_color())
                for item in chosen
            ],
            full_list=[
                DayEntry(item.name, self._time_label(item.deadline), item.is_event)
                for item in everything
            ],
            is_today=current == today,
            calendar_date=current,
            day_label=str(current.day),
        )

    def _persist(self) -> List[str]:
        try:
            self.store.save_active_items(self.active_items)
        except StorageError as e:
            logger.error(f"Saving error: {e}")
            return [f"Saving error: {e}"]
        return []

    def add_item(
        self,
        name: str,
        deadline: Optional[datetime] = None,
        importance: Optional[int] = None,
        time_importance: Optional[int] = None,
        is_event: bool = False,
        now: Optional[datetime] = None
    ) -> OperationResult:
        """
        Add a task or event, re-aggregate and save.

        Name uniqueness is left to the caller (see name_is_unique).

        Raises:
            MissingDeadlineError: If an event is added without a deadline
        """
        if now is None:
            now = datetime.now()
        if is_event and deadline is None:
            raise MissingDeadlineError(name)

        self.active_items.append(ActiveItem(
            name=name,
            importance=importance,
            time_importance=time_importance,
            created=now,
            deadline=deadline,
            is_event=is_event,
        ))
        self.summarize(now)
        logger.info(f"Added {'event' if is_event else 'task'} '{name}'")

        errors = self._persist()
        if errors:
            return OperationResult.failed(f"Added '{name}' but could not save", errors)
        return OperationResult.ok(f"Added '{name}'")

    def delete_item(self, name: str, now: Optional[datetime] = None) -> OperationResult:
        """Remove every item with exactly this name, re-aggregate and save."""
        before = len(self.active_items)
        self.active_items = [item for item in self.active_items if item.name != name]
        removed = before - len(self.active_items)

        self.summarize(now)
        logger.info(f"Deleted '{name}' ({removed} removed)")

        errors = self._persist()
        if errors:
            return OperationResult.failed(f"Deleted '{name}' but could not save", errors)
        return OperationResult.ok(f"Deleted '{name}'")

    def complete_item(self, name: str, now: Optional[datetime] = None) -> OperationResult:
        """
        Archive an item and remove it from the registry.

        The archive entry is written before the registry is saved. Either
        write may fail; the item is removed from memory regardless.
        """
        if now is None:
            now = datetime.now()

        found = next((item for item in self.active_items if item.name == name), None)
        if found is None:
            return OperationResult.failed(f"No active item named '{name}'")

        archived = found.to_archived(now)
        errors = []
        try:
            self.store.append_archived(archived)
        except StorageError as e:
            logger.error(f"Error archiving: {e}")
            errors.append(f"Error archiving: {e}")

        self.active_items.remove(found)
        self.summarize(now)
        logger.info(f"Completed '{name}'")

        errors.extend(self._persist())
        if errors:
            return OperationResult.failed(f"Completed '{name}' with errors", errors)
        return OperationResult.ok(f"Completed '{name}'")

    def load_archive_page(self, offset: int = 0, limit: int = ARCHIVE_PAGE_SIZE) -> List[ArchivedItem]:
        """Most-recent-first page of archived items; empty if unreadable."""
        try:
            return self.store.read_archived(offset, limit)
        except StorageError as e:
            logger.warning(f"Could not read archive: {e}")
            return []
