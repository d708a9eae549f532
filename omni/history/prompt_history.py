"""Prompt-history persistence collaborator.

Purpose of this abstraction:
    Keep the most recent directives a user submitted so they can be reused.
    The list is mirrored to a JSON file after every change so it survives
    restarts.

Storage rules:
    - Blank directives are never stored; stored text is trimmed.
    - A directive equal to the most recent entry is not stored again.
    - At most `MAX_ENTRIES` entries are kept, most recent first.

Concurrency:
    All reads and writes go through one instance lock, so HTTP worker
    threads and the event loop can share it.

Failure handling:
    An unreadable or malformed history file is logged and treated as empty;
    write failures propagate.
"""

import json
import logging
import os
import threading
import time
import uuid
from dataclasses import asdict, dataclass


logger = logging.getLogger(__name__)

MAX_ENTRIES = 20


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    text: str
    timestamp: int


class PromptHistory:
    """Deduplicated, capped, most-recent-first directive history.

    Args:
        path: JSON file to mirror entries into, or `None` for memory only.
        max_entries: Retention cap.
    """

    def __init__(self, path: str | None = None, max_entries: int = MAX_ENTRIES):
        self.path = path
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: list[HistoryEntry] = self._load()

    def _load(self) -> list[HistoryEntry]:
        if not self.path or not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            entries = [
                HistoryEntry(id=str(item["id"]), text=str(item["text"]), timestamp=int(item["timestamp"]))
                for item in data
            ]
        except (OSError, ValueError, KeyError, TypeError):
            logger.exception("Ignoring unreadable prompt history at %s", self.path)
            return []
        return entries[: self.max_entries]

    def _save(self) -> None:
        if not self.path:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump([asdict(entry) for entry in self._entries], f, ensure_ascii=False, indent=2)

    def record(self, text: str) -> HistoryEntry | None:
        """Store a submitted directive.

        Returns:
            The new entry, or `None` when the text was blank or a repeat of
            the most recent entry.
        """
        text = (text or "").strip()
        if not text:
            return None

        with self._lock:
            if self._entries and self._entries[0].text == text:
                return None
            entry = HistoryEntry(
                id=str(uuid.uuid4()),
                text=text,
                timestamp=int(time.time() * 1000),
            )
            self._entries = [entry, *self._entries][: self.max_entries]
            self._save()
        logger.debug("Recorded prompt history entry %s", entry.id)
        return entry

    def entries(self) -> list[HistoryEntry]:
        with self._lock:
            return list(self._entries)

    def delete(self, entry_id: str) -> bool:
        with self._lock:
            remaining = [entry for entry in self._entries if entry.id != entry_id]
            if len(remaining) == len(self._entries):
                return False
            self._entries = remaining
            self._save()
        return True

    def clear(self) -> None:
        with self._lock:
            self._entries = []
            self._save()
