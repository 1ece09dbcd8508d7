"""
Exception types for Task Deck.
"""


class TaskDeckError(Exception):
    """Base class for all Task Deck errors"""


class StorageError(TaskDeckError):
    """Raised when active items or archives cannot be read or written"""


class MissingDeadlineError(TaskDeckError, ValueError):
    """Raised when an item flagged as an event has no deadline"""

    def __init__(self, name: str):
        super().__init__(f"Event '{name}' has no deadline")
        self.name = name


class FetchError(TaskDeckError):
    """Raised by fetchers when auxiliary data could not be retrieved"""
