"""
Core module for Task Deck
Contains configuration, persistence, errors and model definitions
"""

from .config import Config
from .errors import TaskDeckError, StorageError, MissingDeadlineError, FetchError
from .models import ActiveItem, ArchivedItem
from .storage import JsonStore

__all__ = [
    'Config',
    'JsonStore',
    'ActiveItem',
    'ArchivedItem',
    'TaskDeckError',
    'StorageError',
    'MissingDeadlineError',
    'FetchError',
]
