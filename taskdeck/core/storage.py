"""
File-backed persistence for Task Deck

Active items live in a single JSON document that is always replaced
atomically (write to a temp file in the same directory, fsync, rename).
Completed items are appended to a JSON-lines archive and read back
most-recent-first. The notepad is one JSON string, written the same atomic way.

Usage:
    store = JsonStore(config.get_data_directory())
    items = store.load_active_items()
    store.save_active_items(items)
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List

from taskdeck.core.errors import StorageError
from taskdeck.core.models import ActiveItem, ArchivedItem

logger = logging.getLogger(__name__)

ACTIVE_FILENAME = "active_items.json"
ARCHIVE_FILENAME = "archived.jsonl"
NOTE_FILENAME = "notepad_text.json"


class JsonStore:
    """Persistence collaborator for the active registry, the archive and the notepad"""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.active_path = self.data_dir / ACTIVE_FILENAME
        self.archive_path = self.data_dir / ARCHIVE_FILENAME
        self.note_path = self.data_dir / NOTE_FILENAME

    def load_active_items(self) -> List[ActiveItem]:
        """
        Load the active registry.

        Creates an empty registry file on first use.

        Raises:
            StorageError: If the file cannot be read or parsed
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            if not self.active_path.exists():
                self.active_path.write_text("[]")
                return []

            with open(self.active_path, 'r', encoding='utf-8') as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to load active items from {self.active_path}: {e}") from e

        if not isinstance(rows, list):
            raise StorageError(f"Active items file {self.active_path} is not a JSON list")

        return [ActiveItem.from_dict(row) for row in rows]

    def save_active_items(self, items: List[ActiveItem]) -> None:
        """
        Replace the stored registry with ``items``.

        Serializes first so a failure never leaves a half-written file.

        Raises:
            StorageError: If the directory or file cannot be written
        """
        payload = json.dumps([item.to_dict() for item in items], indent=2)
        try:
            self._write_atomic(self.active_path, payload)
        except OSError as e:
            raise StorageError(f"Failed to save active items to {self.active_path}: {e}") from e

        logger.debug(f"Saved {len(items)} active items")

    def _write_atomic(self, path: Path, payload: str) -> None:
        """Write to a temp file beside ``path``, fsync, then rename over it."""
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.data_dir, prefix=f".{path.stem}.", suffix=".tmp"
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def read_note(self) -> str:
        """
        Load the notepad text.

        A missing notepad reads as empty text.

        Raises:
            StorageError: If the file cannot be read or does not hold a JSON string
        """
        if not self.note_path.exists():
            return ""

        try:
            with open(self.note_path, 'r', encoding='utf-8') as f:
                text = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read notepad {self.note_path}: {e}") from e

        if not isinstance(text, str):
            raise StorageError(f"Notepad file {self.note_path} does not hold text")
        return text

    def save_note(self, text: str) -> None:
        """
        Replace the notepad text (stored as a single JSON string).

        Raises:
            StorageError: If the file cannot be written
        """
        try:
            self._write_atomic(self.note_path, json.dumps(text, indent=2))
        except OSError as e:
            raise StorageError(f"Failed to save notepad to {self.note_path}: {e}") from e

        logger.debug(f"Saved notepad ({len(text)} characters)")

    def append_archived(self, item: ArchivedItem) -> None:
        """
        Append one completed item to the archive.

        Raises:
            StorageError: If the archive cannot be written
        """
        line = json.dumps(item.to_dict()) + "\n"
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.archive_path, 'a', encoding='utf-8') as f:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise StorageError(f"Failed to archive '{item.name}': {e}") from e

    def read_archived(self, offset: int, limit: int) -> List[ArchivedItem]:
        """
        Read a page of archived items, most recent first.

        Lines that cannot be parsed are skipped but still count toward
        the page window.

        Args:
            offset: Number of most recent entries to skip
            limit: Maximum number of entries to return

        Raises:
            StorageError: If the archive cannot be read
        """
        if limit <= 0 or not self.archive_path.exists():
            return []

        try:
            with open(self.archive_path, 'r', encoding='utf-8') as f:
                lines = [line for line in f.read().splitlines() if line.strip()]
        except OSError as e:
            raise StorageError(f"Failed to read archive {self.archive_path}: {e}") from e

        # Page over raw lines so offsets stay aligned when lines are skipped
        window = list(reversed(lines))[max(0, offset):max(0, offset) + limit]

        archived = []
        for line in window:
            try:
                archived.append(ArchivedItem.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed archive line: {e}")
        return archived
