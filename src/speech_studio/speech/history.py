"""Bounded, persisted log of captured transcripts."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Protocol

from speech_studio.models import HistoryEntry

DEFAULT_HISTORY_LIMIT = 20


class HistoryStorage(Protocol):
    """Persistence contract for whole-history snapshots."""

    def load(self) -> Any:
        """Return the raw persisted payload, or ``None`` when nothing is stored."""

    def save(self, payload: list[dict[str, Any]]) -> None:
        """Replace the persisted snapshot."""

    def delete(self) -> None:
        """Remove the persisted snapshot."""


class InMemoryHistoryStorage:
    """Process-local storage used by tests and throwaway sessions."""

    def __init__(self, payload: Any = None) -> None:
        self.payload = payload

    def load(self) -> Any:
        return self.payload

    def save(self, payload: list[dict[str, Any]]) -> None:
        self.payload = json.loads(json.dumps(payload))

    def delete(self) -> None:
        self.payload = None


class JsonFileHistoryStorage:
    """Single JSON array on disk; the file path acts as the storage key."""

    def __init__(self, file_path: str | Path) -> None:
        self._path = Path(file_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Any:
        if not self._path.exists():
            return None
        return json.loads(self._path.read_text(encoding="utf-8"))

    def save(self, payload: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    def delete(self) -> None:
        self._path.unlink(missing_ok=True)


def _parse_entry(raw: Any) -> HistoryEntry | None:
    if not isinstance(raw, dict):
        return None
    entry_id, text, display_time = raw.get("id"), raw.get("text"), raw.get("time", "")
    if isinstance(entry_id, str) and entry_id.isdigit():
        entry_id = int(entry_id)
    if isinstance(entry_id, bool) or not isinstance(entry_id, int):
        return None
    if not isinstance(text, str) or not text.strip() or not isinstance(display_time, str):
        return None
    return HistoryEntry(id=entry_id, text=text, time=display_time)


class TranscriptHistoryStore:
    """Newest-first transcripts, capped at ``limit``; every mutation persists the whole list."""

    def __init__(
        self,
        storage: HistoryStorage | None = None,
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
        time_format: str = "%H:%M",
        on_change: Callable[[list[HistoryEntry]], None] | None = None,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self._storage = storage or InMemoryHistoryStorage()
        self._limit = limit
        self._time_format = time_format
        self.on_change = on_change
        self._clock = clock
        self._logger = logger or logging.getLogger("speech_studio.history")
        self._last_id = 0
        self._entries: list[HistoryEntry] = self._load()

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, text: str) -> HistoryEntry | None:
        """Insert ``text`` at the front; whitespace-only text is ignored."""
        text = text.strip()
        if not text:
            return None

        now = self._clock()
        entry = HistoryEntry(
            id=self._next_id(now),
            text=text,
            time=datetime.fromtimestamp(now).strftime(self._time_format),
        )
        self._entries = [entry, *self._entries][: self._limit]
        self._persist()
        self._logger.info("history_appended", extra={"entry_id": entry.id, "size": len(self._entries)})
        self._changed()
        return entry

    def get(self, entry_id: int | str) -> HistoryEntry | None:
        try:
            wanted = int(entry_id)
        except (TypeError, ValueError):
            return None
        return next((entry for entry in self._entries if entry.id == wanted), None)

    def clear(self) -> bool:
        """Drop every entry; returns ``False`` when the history was already empty."""
        if not self._entries:
            return False
        self._entries = []
        try:
            self._storage.delete()
        except OSError as exc:
            self._logger.warning("history_delete_failed", extra={"error": str(exc)})
        self._logger.info("history_cleared")
        self._changed()
        return True

    def _next_id(self, now: float) -> int:
        candidate = int(now * 1000)
        self._last_id = max(candidate, self._last_id + 1)
        return self._last_id

    def _persist(self) -> None:
        try:
            self._storage.save([asdict(entry) for entry in self._entries])
        except OSError as exc:
            # The in-memory list stays authoritative for this session.
            self._logger.warning("history_save_failed", extra={"error": str(exc), "size": len(self._entries)})

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.entries)

    def _load(self) -> list[HistoryEntry]:
        try:
            payload = self._storage.load()
        except (OSError, ValueError) as exc:
            self._logger.warning("history_load_failed", extra={"error": str(exc)})
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._logger.warning("history_payload_malformed", extra={"payload_type": type(payload).__name__})
            return []

        entries = [entry for entry in map(_parse_entry, payload) if entry is not None]
        if len(entries) != len(payload):
            self._logger.warning("history_entries_dropped", extra={"dropped": len(payload) - len(entries)})
        entries = entries[: self._limit]
        self._last_id = max((entry.id for entry in entries), default=0)
        return entries
