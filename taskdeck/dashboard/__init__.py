"""
Dashboard module for Task Deck.

Provides priority scoring, calendar aggregation, and CLI formatting.
"""

from .prioritizer import (
    Prioritizer,
    ScoredItem,
    ScoreCase,
    classify_item,
    score_item,
    clock_jitter,
    no_jitter,
    BROKEN_ENTRY_SCORE,
)
from .aggregator import (
    CalendarAggregator,
    CalendarSummary,
    DayCell,
    DayEntry,
    HighlightEntry,
    OperationResult,
    week_start,
)
from .formatter import DeckFormatter

__all__ = [
    # Prioritizer
    'Prioritizer',
    'ScoredItem',
    'ScoreCase',
    'classify_item',
    'score_item',
    'clock_jitter',
    'no_jitter',
    'BROKEN_ENTRY_SCORE',
    # Aggregator
    'CalendarAggregator',
    'CalendarSummary',
    'DayCell',
    'DayEntry',
    'HighlightEntry',
    'OperationResult',
    'week_start',
    # Formatter
    'DeckFormatter',
]
