"""
Unit tests for the aggregator module.
Tests calendar window construction and registry mutations.
"""

import pytest
from datetime import date, datetime, timedelta

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from taskdeck.core.config import Config
from taskdeck.core.errors import MissingDeadlineError, StorageError
from taskdeck.core.models import ActiveItem, EVENT_COLOR
from taskdeck.dashboard.aggregator import (
    CalendarAggregator,
    HIGHLIGHT_SLOTS,
    week_start,
)
from taskdeck.dashboard.prioritizer import Prioritizer, no_jitter


# Monday
NOW = datetime(2026, 10, 19, 12, 0)


class MemoryStore:
    """In-memory stand-in for JsonStore."""

    def __init__(self, items=None, fail_save=False, fail_archive=False):
        self.items = list(items or [])
        self.saved = []
        self.archived = []
        self.fail_save = fail_save
        self.fail_archive = fail_archive

    def load_active_items(self):
        return list(self.items)

    def save_active_items(self, items):
        if self.fail_save:
            raise StorageError("disk full")
        self.saved.append([item.name for item in items])
        self.items = list(items)

    def append_archived(self, item):
        if self.fail_archive:
            raise StorageError("archive locked")
        self.archived.append(item)

    def read_archived(self, offset, limit):
        newest_first = list(reversed(self.archived))
        return newest_first[offset:offset + limit]


@pytest.fixture
def config(tmp_path):
    return Config(tmp_path / "config")


def make_aggregator(config, items=None, store=None):
    store = store or MemoryStore()
    return CalendarAggregator(store, config, Prioritizer(no_jitter), items=items or [])


def event(name, when, created=None):
    return ActiveItem(name=name, created=created or NOW, deadline=when, is_event=True)


def task(name, deadline=None, importance=None, time_importance=None, created=None):
    return ActiveItem(
        name=name,
        importance=importance,
        time_importance=time_importance,
        created=created or NOW,
        deadline=deadline,
    )


class TestWeekStart:
    """Tests for week start calculation."""

    def test_monday_start(self):
        assert week_start(date(2026, 10, 22)) == date(2026, 10, 19)

    def test_sunday_start(self):
        assert week_start(date(2026, 10, 22), first_weekday=6) == date(2026, 10, 18)

    def test_day_is_its_own_start(self):
        assert week_start(date(2026, 10, 19)) == date(2026, 10, 19)


class TestWorkedExample:
    """Event C, importance-4 task A and old class-2 task B."""

    @pytest.fixture
    def summary(self, config):
        items = [
            task("A", deadline=NOW + timedelta(days=1), importance=4),
            task("B", time_importance=2, created=NOW - timedelta(days=10)),
            event("C", NOW + timedelta(days=3)),
        ]
        aggregator = make_aggregator(config, items)
        return aggregator.summarize(NOW, weeks=2)

    def test_priority_order(self, summary):
        """Events first, then A (~40) above B (~23.6)."""
        assert [item.name for item in summary.priority_list] == ["C", "A", "B"]

    def test_task_list(self, summary):
        assert [item.name for item in summary.task_list] == ["A", "B"]

    def test_event_day_cell(self, summary):
        """C shows up highlighted and listed on its day."""
        cell = next(c for c in summary.day_cells if c.calendar_date == date(2026, 10, 22))
        assert [h.name for h in cell.highlighted] == ["C"]
        assert [e.name for e in cell.full_list] == ["C"]
        assert cell.highlighted[0].color == EVENT_COLOR
        assert cell.full_list[0].is_event is True

    def test_task_day_cell(self, summary):
        """A is due tomorrow and uses its importance as color."""
        cell = next(c for c in summary.day_cells if c.calendar_date == date(2026, 10, 20))
        assert [(h.name, h.time, h.color) for h in cell.highlighted] == [("A", "12:00", 4)]

    def test_tasks_without_deadline_not_on_calendar(self, summary):
        names = {e.name for cell in summary.day_cells for e in cell.full_list}
        assert "B" not in names


class TestClockJitterOrder:
    """Default clock jitter never reorders items whose integer scores differ."""

    def items(self):
        return [
            task("A", deadline=NOW + timedelta(days=1), importance=4),
            task("B", time_importance=2, created=NOW - timedelta(days=10)),
            task("D", time_importance=1),
            task("E", time_importance=0),
        ]

    def test_repeated_summaries_agree(self, config):
        aggregator = CalendarAggregator(MemoryStore(), config, Prioritizer(), items=self.items())

        first = [item.name for item in aggregator.summarize(NOW, weeks=1).task_list]
        second = [item.name for item in aggregator.summarize(NOW, weeks=1).task_list]

        assert first == second == ["A", "B", "D", "E"]

    def test_input_order_does_not_matter(self, config):
        items = list(reversed(self.items()))
        aggregator = CalendarAggregator(MemoryStore(), config, Prioritizer(), items=items)

        summary = aggregator.summarize(NOW, weeks=1)

        assert [item.name for item in summary.task_list] == ["A", "B", "D", "E"]


class TestCalendarWindow:
    """Tests for the day cell grid."""

    def test_seven_cells_per_week(self, config):
        summary = make_aggregator(config).summarize(NOW, weeks=5)
        assert len(summary.day_cells) == 35
        assert len(summary.weeks) == 5
        assert len(summary.month_boundaries) == 5

    def test_dates_strictly_increasing(self, config):
        summary = make_aggregator(config).summarize(NOW, weeks=8)
        dates = [cell.calendar_date for cell in summary.day_cells]
        assert all(b - a == timedelta(days=1) for a, b in zip(dates, dates[1:]))

    def test_starts_at_configured_week_start(self, config):
        summary = make_aggregator(config).summarize(NOW + timedelta(days=3), weeks=1)
        assert summary.day_cells[0].calendar_date == date(2026, 10, 19)

        config.set("first_day_of_week", "sunday")
        summary = make_aggregator(config).summarize(NOW + timedelta(days=3), weeks=1)
        assert summary.day_cells[0].calendar_date == date(2026, 10, 18)

    def test_exactly_one_today(self, config):
        summary = make_aggregator(config).summarize(NOW, weeks=3)
        today = [cell for cell in summary.day_cells if cell.is_today]
        assert len(today) == 1
        assert today[0].calendar_date == NOW.date()

    def test_month_boundary_marker(self, config):
        """A row containing the 1st carries (previous month, month)."""
        summary = make_aggregator(config).summarize(NOW, weeks=3)
        # Rows: Oct 19-25, Oct 26-Nov 1, Nov 2-8
        assert summary.month_boundaries == [None, ("October", "November"), None]

    def test_marker_iff_row_has_first_of_month(self, config):
        summary = make_aggregator(config).summarize(NOW, weeks=60)
        for row, boundary in zip(summary.weeks, summary.month_boundaries):
            has_first = any(cell.day_of_month == 1 for cell in row)
            assert (boundary is not None) == has_first

    def test_default_weeks_from_config(self, config):
        config.set("calendar_weeks_to_show", 7)
        summary = make_aggregator(config).summarize(NOW)
        assert len(summary.day_cells) == 49

    def test_highlight_limit_prefers_events(self, config):
        """Four events and two tasks on one day: three events highlighted."""
        day = NOW + timedelta(days=2)
        items = [
            event(f"E{i}", day.replace(hour=9 + i)) for i in range(4)
        ] + [
            task("T0", deadline=day.replace(hour=7), importance=4),
            task("T1", deadline=day.replace(hour=8), importance=1),
        ]
        summary = make_aggregator(config, items).summarize(NOW, weeks=1)
        cell = next(c for c in summary.day_cells if c.calendar_date == day.date())

        assert len(cell.highlighted) == HIGHLIGHT_SLOTS
        assert [h.name for h in cell.highlighted] == ["E0", "E1", "E2"]
        assert [e.name for e in cell.full_list] == ["T0", "T1", "E0", "E1", "E2", "E3"]

    def test_highlighted_subset_sorted_by_deadline(self, config):
        """One event plus higher-priority tasks, re-sorted by time."""
        day = NOW + timedelta(days=1)
        items = [
            event("Lunch", day.replace(hour=13)),
            task("Late", deadline=day.replace(hour=20), importance=4),
            task("Early", deadline=day.replace(hour=8), importance=3),
            task("Low", deadline=day.replace(hour=6), importance=0),
        ]
        summary = make_aggregator(config, items).summarize(NOW, weeks=1)
        cell = next(c for c in summary.day_cells if c.calendar_date == day.date())

        highlighted = [h.name for h in cell.highlighted]
        assert highlighted == ["Early", "Lunch", "Late"]
        assert set(highlighted) <= {e.name for e in cell.full_list}
        assert [e.name for e in cell.full_list] == ["Low", "Early", "Lunch", "Late"]

    def test_events_sorted_by_deadline(self, config):
        items = [
            event("later", NOW + timedelta(days=5)),
            event("sooner", NOW + timedelta(days=1)),
        ]
        summary = make_aggregator(config, items).summarize(NOW, weeks=1)
        assert [item.name for item in summary.priority_list] == ["sooner", "later"]

    def test_event_without_deadline_raises(self, config):
        broken = ActiveItem(name="Party", created=NOW, is_event=True)
        aggregator = make_aggregator(config, [broken])

        with pytest.raises(MissingDeadlineError) as exc_info:
            aggregator.summarize(NOW, weeks=1)

        assert exc_info.value.name == "Party"

    def test_empty_registry(self, config):
        summary = make_aggregator(config).summarize(NOW, weeks=1)
        assert summary.priority_list == []
        assert all(cell.full_list == [] for cell in summary.day_cells)


class TestMutations:
    """Tests for add, complete and delete."""

    def test_add_item_persists_in_priority_order(self, config):
        store = MemoryStore()
        aggregator = make_aggregator(config, store=store)

        aggregator.add_item("low", time_importance=0, now=NOW)
        result = aggregator.add_item("meeting", deadline=NOW + timedelta(days=1), is_event=True, now=NOW)

        assert result.success
        assert store.saved[-1] == ["meeting", "low"]
        assert aggregator.summary is not None

    def test_add_does_not_deduplicate(self, config):
        aggregator = make_aggregator(config)
        aggregator.add_item("same", time_importance=1, now=NOW)
        assert not aggregator.name_is_unique("same")

        aggregator.add_item("same", time_importance=1, now=NOW)
        assert len(aggregator.active_items) == 2

    def test_add_event_without_deadline_raises(self, config):
        aggregator = make_aggregator(config)
        with pytest.raises(MissingDeadlineError):
            aggregator.add_item("party", is_event=True, now=NOW)
        assert aggregator.active_items == []

    def test_add_reports_save_failure(self, config):
        aggregator = make_aggregator(config, store=MemoryStore(fail_save=True))
        result = aggregator.add_item("x", time_importance=1, now=NOW)

        assert not result.success
        assert any("disk full" in error for error in result.errors)
        # In-memory change is kept
        assert [item.name for item in aggregator.active_items] == ["x"]

    def test_complete_archives_and_removes(self, config):
        store = MemoryStore()
        items = [
            task("keep", time_importance=1),
            task("done", time_importance=1, created=NOW - timedelta(days=2)),
        ]
        aggregator = make_aggregator(config, items, store)

        result = aggregator.complete_item("done", now=NOW)

        assert result.success
        assert [item.name for item in aggregator.active_items] == ["keep"]
        assert len(store.archived) == 1
        archived = store.archived[0]
        assert archived.name == "done"
        assert archived.archived_at >= archived.created
        assert store.saved[-1] == ["keep"]

    def test_complete_removes_only_one_duplicate(self, config):
        items = [task("dup", time_importance=1), task("dup", time_importance=1)]
        store = MemoryStore()
        aggregator = make_aggregator(config, items, store)

        aggregator.complete_item("dup", now=NOW)

        assert len(aggregator.active_items) == 1
        assert len(store.archived) == 1

    def test_complete_unknown_name(self, config):
        store = MemoryStore()
        aggregator = make_aggregator(config, [task("a", time_importance=1)], store)

        result = aggregator.complete_item("missing", now=NOW)

        assert not result.success
        assert len(aggregator.active_items) == 1
        assert store.archived == []
        assert store.saved == []

    def test_complete_with_archive_failure_still_removes(self, config):
        store = MemoryStore(fail_archive=True)
        aggregator = make_aggregator(config, [task("a", time_importance=1)], store)

        result = aggregator.complete_item("a", now=NOW)

        assert not result.success
        assert any("archive locked" in error for error in result.errors)
        assert aggregator.active_items == []
        assert store.saved[-1] == []

    def test_delete_exact_name_only(self, config):
        items = [
            task("Report", time_importance=1),
            task("Report draft", time_importance=1),
            task("report", time_importance=1),
        ]
        store = MemoryStore()
        aggregator = make_aggregator(config, items, store)

        result = aggregator.delete_item("Report", now=NOW)

        assert result.success
        assert sorted(item.name for item in aggregator.active_items) == ["Report draft", "report"]
        assert store.archived == []

    def test_load_archive_page(self, config):
        store = MemoryStore()
        aggregator = make_aggregator(config, [task(f"t{i}", time_importance=1) for i in range(3)], store)
        for i in range(3):
            aggregator.complete_item(f"t{i}", now=NOW + timedelta(minutes=i))

        page = aggregator.load_archive_page(0, 2)
        assert [item.name for item in page] == ["t2", "t1"]
        assert [item.name for item in aggregator.load_archive_page(2, 2)] == ["t0"]

    def test_load_archive_page_on_error(self, config):
        store = MemoryStore()

        def broken(offset, limit):
            raise StorageError("unreadable")

        store.read_archived = broken
        aggregator = make_aggregator(config, store=store)
        assert aggregator.load_archive_page() == []

    def test_reload_from_store(self, config):
        store = MemoryStore(items=[task("stored", time_importance=0)])
        aggregator = make_aggregator(config, store=store)
        assert aggregator.active_items == []

        aggregator.reload()
        assert [item.name for item in aggregator.active_items] == ["stored"]
