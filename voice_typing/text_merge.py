"""Cursor-aware merging of transcripts into the editable text buffer."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    text: str
    cursor: int


@dataclass(frozen=True)
class BufferState:
    text: str
    cursor: int
    showing_message: bool = False


def insert_at_cursor(text: str, cursor: int, new_text: str) -> MergeResult:
    """Insert ``new_text`` into ``text`` at ``cursor``.

    A single space separates the transcript from preceding text unless the
    cursor sits at the start of the buffer or right after whitespace. The
    returned cursor points at the end of the inserted span.

    Args:
        text: Current buffer contents
        cursor: Insertion offset; clamped to ``0..len(text)``
        new_text: Transcript to insert

    Returns:
        MergeResult with the new buffer and cursor
    """
    pos = max(0, min(cursor, len(text)))
    before = text[:pos]
    after = text[pos:]
    separator = " " if before and not before[-1].isspace() else ""
    merged = before + separator + new_text + after
    return MergeResult(text=merged, cursor=pos + len(separator) + len(new_text))


class TextBuffer:
    """Thread-safe holder of the transcript text and cursor.

    Both the UI and the hotkey path read and write the same instance, so a
    callback registered once always sees the current contents.
    """

    def __init__(self, text: str = "", cursor: int | None = None):
        self._lock = threading.RLock()
        self._text = text
        self._cursor = len(text) if cursor is None else max(0, min(cursor, len(text)))
        self._showing_message = False
        self._listeners: list[Callable[[BufferState], None]] = []

    @property
    def text(self) -> str:
        with self._lock:
            return self._text

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    @property
    def showing_message(self) -> bool:
        """True while the buffer displays a status message instead of user text."""
        with self._lock:
            return self._showing_message

    def snapshot(self) -> BufferState:
        with self._lock:
            return BufferState(self._text, self._cursor, self._showing_message)

    def add_listener(self, listener: Callable[[BufferState], None]) -> None:
        self._listeners.append(listener)

    def set_text(self, text: str, cursor: int | None = None) -> None:
        """Replace the contents, e.g. after the user typed or restored history."""
        with self._lock:
            if text != self._text:
                self._showing_message = False
            self._text = text
            self._cursor = len(text) if cursor is None else max(0, min(cursor, len(text)))
            state = self.snapshot()
        self._notify(state)

    def set_cursor(self, cursor: int) -> None:
        with self._lock:
            self._cursor = max(0, min(cursor, len(self._text)))

    def show_message(self, message: str) -> None:
        with self._lock:
            self._text = message
            self._cursor = len(message)
            self._showing_message = True
            state = self.snapshot()
        logger.debug(f"Buffer message: {message}")
        self._notify(state)

    def insert(self, new_text: str, at: int) -> MergeResult:
        """Merge a transcript at a previously captured cursor position.

        A status message on display is replaced rather than extended.
        """
        with self._lock:
            if self._showing_message:
                result = insert_at_cursor("", 0, new_text)
            else:
                result = insert_at_cursor(self._text, at, new_text)
            self._text = result.text
            self._cursor = result.cursor
            self._showing_message = False
            state = self.snapshot()
        self._notify(state)
        return result

    def clear(self) -> None:
        self.set_text("")

    def _notify(self, state: BufferState) -> None:
        for listener in list(self._listeners):
            listener(state)
