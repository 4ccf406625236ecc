"""Bounded, persisted history of finished transcripts."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from voice_typing.config import (
    DEFAULT_HISTORY_ENABLED,
    DEFAULT_HISTORY_LIMIT,
    HISTORY_LIMIT_CHOICES,
    HISTORY_MIN_LENGTH,
    MSG_ERROR_PREFIX,
    MSG_INVALID_KEY,
    MSG_MIC_DENIED,
    MSG_NO_API_KEY,
    MSG_NO_SPEECH,
)
from voice_typing.models import HistoryItem
from voice_typing.settings_store import (
    HISTORY_ENABLED,
    HISTORY_LIMIT,
    TRANSCRIPT_HISTORY,
    SettingsStore,
)

logger = logging.getLogger(__name__)

STATUS_MESSAGES = frozenset({MSG_NO_API_KEY, MSG_MIC_DENIED, MSG_NO_SPEECH, MSG_INVALID_KEY})


def is_status_message(text: str) -> bool:
    """True if ``text`` is a message the app writes into the buffer.

    Covers the fixed messages and error reports built from ``MSG_ERROR_PREFIX``.
    """
    text = text.strip()
    return text in STATUS_MESSAGES or text.startswith(MSG_ERROR_PREFIX)


@dataclass(frozen=True)
class HistorySettings:
    enabled: bool = DEFAULT_HISTORY_ENABLED
    limit: int = DEFAULT_HISTORY_LIMIT

    @classmethod
    def from_values(cls, enabled: Any, limit: Any) -> "HistorySettings":
        """Validate stored values, falling back to defaults per field."""
        if not isinstance(enabled, bool):
            enabled = DEFAULT_HISTORY_ENABLED
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            limit = DEFAULT_HISTORY_LIMIT
        return cls(enabled=enabled, limit=limit)


def _truncate(items: list[HistoryItem], limit: int) -> list[HistoryItem]:
    return items[:limit] if limit > 0 else items


class HistoryStore:
    """Newest-first list of transcripts, persisted through a ``SettingsStore``."""

    def __init__(self, store: SettingsStore, clock: Callable[[], float] = time.time):
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()
        self._settings = HistorySettings.from_values(
            store.get(HISTORY_ENABLED), store.get(HISTORY_LIMIT)
        )
        raw = store.get(TRANSCRIPT_HISTORY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed transcript history")
            raw = []
        self._items = [item for item in (HistoryItem.from_dict(entry) for entry in raw) if item]
        self._last_id = max((item.timestamp for item in self._items), default=0)

    @property
    def settings(self) -> HistorySettings:
        return self._settings

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    @property
    def limit(self) -> int:
        return self._settings.limit

    def items(self) -> list[HistoryItem]:
        with self._lock:
            return list(self._items)

    def get(self, item_id: str) -> HistoryItem | None:
        with self._lock:
            return next((item for item in self._items if item.id == item_id), None)

    def record(self, text: str) -> HistoryItem | None:
        """Prepend ``text`` unless it is filtered out.

        Returns:
            The new item, or None if nothing was recorded
        """
        text = text.strip()
        if not self._settings.enabled or len(text) < HISTORY_MIN_LENGTH or is_status_message(text):
            return None
        with self._lock:
            if self._items and self._items[0].text == text:
                return None
            timestamp = int(self._clock() * 1000)
            # Ids must stay unique even for two records within one millisecond
            self._last_id = max(timestamp, self._last_id + 1)
            item = HistoryItem(id=str(self._last_id), text=text, timestamp=timestamp)
            self._items = _truncate([item] + self._items, self._settings.limit)
            self._persist()
        logger.debug(f"Recorded history item {item.id}")
        return item

    def delete(self, item_id: str) -> None:
        with self._lock:
            self._items = [item for item in self._items if item.id != item_id]
            self._persist()

    def clear(self) -> None:
        with self._lock:
            self._items = []
            self._persist()

    def set_limit(self, limit: int) -> None:
        """Set the capacity (0 = unlimited) and truncate right away."""
        if limit not in HISTORY_LIMIT_CHOICES:
            raise ValueError(f"History limit must be one of {HISTORY_LIMIT_CHOICES}")
        with self._lock:
            self._settings = HistorySettings(self._settings.enabled, limit)
            self._store.set(HISTORY_LIMIT, limit)
            if limit > 0 and len(self._items) > limit:
                self._items = _truncate(self._items, limit)
                self._persist()

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._settings = HistorySettings(enabled, self._settings.limit)
            self._store.set(HISTORY_ENABLED, enabled)

    def _persist(self) -> None:
        self._store.set(TRANSCRIPT_HISTORY, [item.to_dict() for item in self._items])
