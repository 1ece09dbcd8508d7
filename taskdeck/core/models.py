"""
Data models for Task Deck
Defines the active task/event registry entries and their archived projection
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any


# Color class used for events in calendar highlights
EVENT_COLOR = 5


@dataclass
class ActiveItem:
    """Open task or dated event"""
    name: str = ""
    importance: Optional[int] = None  # 0-4, deadline-bound tasks only
    time_importance: Optional[int] = None  # 0-2, tasks without a deadline
    created: Optional[datetime] = None
    deadline: Optional[datetime] = None
    is_event: bool = False

    def __post_init__(self):
        if self.created is None:
            self.created = datetime.now()
        # Scoring compares against naive local "now"
        self.created = to_local_naive(self.created)
        if self.deadline is not None:
            self.deadline = to_local_naive(self.deadline)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ActiveItem':
        """Create ActiveItem from a stored JSON object"""
        return cls(
            name=data.get('name', ''),
            importance=data.get('importance'),
            time_importance=data.get('time_importance'),
            created=_parse_datetime(data.get('created')),
            deadline=_parse_datetime(data.get('deadline')),
            is_event=bool(data.get('is_event', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dict"""
        return {
            "name": self.name,
            "importance": self.importance,
            "time_importance": self.time_importance,
            "created": self.created.isoformat() if self.created else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "is_event": self.is_event,
        }

    def calendar_color(self) -> int:
        """
        Color class for calendar highlights.

        Events use their own class; tasks use their importance or
        time-urgency class; unclassified items fall back to 0.
        """
        if self.is_event:
            return EVENT_COLOR
        if self.importance is not None:
            return self.importance
        if self.time_importance is not None:
            return self.time_importance
        return 0

    def to_archived(self, archived_at: Optional[datetime] = None) -> 'ArchivedItem':
        """Project this item into its terminal archived form"""
        return ArchivedItem(
            name=self.name,
            importance=self.importance,
            created=self.created,
            deadline=self.deadline,
            is_event=self.is_event,
            archived_at=archived_at or datetime.now(),
        )


@dataclass(frozen=True)
class ArchivedItem:
    """Completed item, appended once to the archive and never changed"""
    name: str
    importance: Optional[int]
    created: datetime
    deadline: Optional[datetime]
    is_event: bool
    archived_at: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArchivedItem':
        """Create ArchivedItem from an archive line"""
        return cls(
            name=data['name'],
            importance=data.get('importance'),
            created=to_local_naive(datetime.fromisoformat(data['created'])),
            deadline=_parse_datetime(data.get('deadline')),
            is_event=bool(data.get('is_event', False)),
            archived_at=to_local_naive(datetime.fromisoformat(data['archived_at'])),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dict"""
        return {
            "name": self.name,
            "importance": self.importance,
            "created": self.created.isoformat(),
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "is_event": self.is_event,
            "archived_at": self.archived_at.isoformat(),
        }


def to_local_naive(dt: datetime) -> datetime:
    """Convert an offset-aware datetime to naive local time; naive values pass through"""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string from storage"""
    if dt_str:
        try:
            return to_local_naive(datetime.fromisoformat(dt_str))
        except (ValueError, TypeError):
            return None
    return None
