"""
Priority scoring algorithm for Task Deck.

Maps one active item and "now" to a single urgency score (higher means
more urgent). Which curve applies depends on the fields the item carries:

    deadline + importance   exponential (classes 3-4) or linear (0-2) in
                            days until the deadline
    time urgency only       exponential (class 2) or linear (0-1) in days
                            since creation
    deadline only           1e9 / (|days until deadline| + 1)
    nothing                 fixed sentinel so broken entries surface first

A small multiplicative jitter in [1.0, 1.1) breaks exact ties.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from taskdeck.core.models import ActiveItem


# Broken entries score above anything a well-formed item can reach
BROKEN_ENTRY_SCORE = 1e10
SCORE_CEILING = 1e9
DEADLINE_ONLY_SCALE = 1e9

# (base, offset) for importance classes 4 and 3: base ** (-0.5 * days + 20) + offset
EXPONENTIAL_IMPORTANCE = {
    4: (1.2, 5.0),
    3: (1.17, 5.0),
}

# (slope, intercept) for importance classes 2..0: intercept - slope * days
LINEAR_IMPORTANCE = {
    2: (0.1747502645671, 11.3587671968606),
    1: (0.0965675735297, 6.276892278847),
    0: (0.0402194752135, 2.6142658953751),
}

# (slope, intercept) for time-urgency classes 1..0: slope * days + intercept
LINEAR_TIME_URGENCY = {
    1: (0.5403960772338, 8.3798162245677),
    0: (0.0440665332331, 0.6833311078751),
}


class ScoreCase(Enum):
    """Which scoring curve applies to an item."""
    DEADLINE_WITH_IMPORTANCE = "deadline_with_importance"
    TIME_URGENCY_ONLY = "time_urgency_only"
    DEADLINE_ONLY = "deadline_only"
    MALFORMED = "malformed"


def classify_item(item: ActiveItem) -> ScoreCase:
    """
    Select the scoring case for an item.

    Checked in priority order: an importance class only counts together
    with a deadline, a time-urgency class counts with or without one.
    """
    if item.importance is not None and item.deadline is not None:
        return ScoreCase.DEADLINE_WITH_IMPORTANCE
    if item.time_importance is not None:
        return ScoreCase.TIME_URGENCY_ONLY
    if item.deadline is not None:
        return ScoreCase.DEADLINE_ONLY
    return ScoreCase.MALFORMED


def clock_jitter() -> float:
    """Tie-break multiplier in [1.0, 1.1) seeded from the sub-second clock."""
    millis = datetime.now().microsecond // 1000
    return 1.0 + millis / 10000.0


def no_jitter() -> float:
    """Deterministic jitter source for tests and reproducible rankings."""
    return 1.0


def _whole_days(delta: timedelta) -> float:
    """Fractional days, truncated to whole hours."""
    return int(delta.total_seconds() / 3600) / 24.0


def _capped_power(base: float, exponent: float) -> float:
    """base ** exponent, saturating at SCORE_CEILING instead of overflowing."""
    if exponent * math.log(base) >= math.log(SCORE_CEILING):
        return SCORE_CEILING
    return base ** exponent


def _deadline_importance_score(importance: int, days_until: float) -> float:
    # Unknown classes score as the lowest class
    if importance not in EXPONENTIAL_IMPORTANCE and importance not in LINEAR_IMPORTANCE:
        importance = 0
    if importance in EXPONENTIAL_IMPORTANCE:
        base, offset = EXPONENTIAL_IMPORTANCE[importance]
        return _capped_power(base, -0.5 * days_until + 20.0) + offset
    slope, intercept = LINEAR_IMPORTANCE[importance]
    return intercept - slope * days_until


def _time_urgency_score(time_importance: int, days_since_creation: float) -> float:
    if time_importance != 2 and time_importance not in LINEAR_TIME_URGENCY:
        time_importance = 0
    if time_importance == 2:
        return _capped_power(1.15, 0.4 * days_since_creation + 20.0) - 5.0
    slope, intercept = LINEAR_TIME_URGENCY[time_importance]
    return slope * days_since_creation + intercept


def base_score(item: ActiveItem, now: datetime) -> float:
    """
    Score an item without jitter.

    Well-formed items are capped at SCORE_CEILING; malformed ones return
    BROKEN_ENTRY_SCORE.
    """
    case = classify_item(item)

    if case is ScoreCase.DEADLINE_WITH_IMPORTANCE:
        score = _deadline_importance_score(item.importance, _whole_days(item.deadline - now))
    elif case is ScoreCase.TIME_URGENCY_ONLY:
        score = _time_urgency_score(item.time_importance, _whole_days(now - item.created))
    elif case is ScoreCase.DEADLINE_ONLY:
        days_away = abs(_whole_days(item.deadline - now)) + 1.0
        score = DEADLINE_ONLY_SCALE / days_away
    else:
        return BROKEN_ENTRY_SCORE

    return min(score, SCORE_CEILING)


def score_item(
    item: ActiveItem,
    now: Optional[datetime] = None,
    jitter: Optional[Callable[[], float]] = None
) -> float:
    """
    Calculate the urgency score for one item.

    Never raises: degenerate timestamps (deadline before creation, far
    overdue items) still produce finite scores.

    Args:
        item: Item to score
        now: Current datetime (defaults to local now)
        jitter: Tie-break multiplier source (defaults to clock_jitter)

    Returns:
        Score; BROKEN_ENTRY_SCORE for items with no importance signal and
        no deadline
    """
    if now is None:
        now = datetime.now()

    score = base_score(item, now)
    if score >= BROKEN_ENTRY_SCORE:
        return score

    return score * (jitter or clock_jitter)()


@dataclass
class ScoredItem:
    """Item with its computed priority score."""
    item: ActiveItem
    score: float
    case: ScoreCase

    @property
    def sort_key(self) -> int:
        """Integer key so jitter at the margin does not reorder ties."""
        return int(self.score)


class Prioritizer:
    """
    Item prioritization engine.

    Wraps the scoring curves with an injectable jitter source so callers
    that need reproducible rankings can pass ``no_jitter``.
    """

    def __init__(self, jitter: Optional[Callable[[], float]] = None):
        self.jitter = jitter or clock_jitter

    def score(self, item: ActiveItem, now: Optional[datetime] = None) -> float:
        return score_item(item, now, self.jitter)

    def score_item(self, item: ActiveItem, now: Optional[datetime] = None) -> ScoredItem:
        return ScoredItem(item=item, score=self.score(item, now), case=classify_item(item))

    def rank(self, items: List[ActiveItem], now: Optional[datetime] = None) -> List[ActiveItem]:
        """
        Sort items by descending integer score.

        The sort is stable: items whose integer scores tie keep their
        input order.
        """
        if now is None:
            now = datetime.now()

        keyed = [(int(self.score(item, now)), item) for item in items]
        keyed.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in keyed]

    def score_items(
        self,
        items: List[ActiveItem],
        now: Optional[datetime] = None,
        top_n: Optional[int] = None
    ) -> List[ScoredItem]:
        """
        Score and sort items by priority, highest first.

        Args:
            items: Items to score
            now: Current datetime
            top_n: If provided, return only the top N items
        """
        if now is None:
            now = datetime.now()

        scored = [self.score_item(item, now) for item in items]
        scored.sort(key=lambda s: s.sort_key, reverse=True)

        if top_n is not None and top_n > 0:
            return scored[:top_n]
        return scored
