"""Wiring shared by the GUI and CLI front-ends."""

from __future__ import annotations

import logging
from typing import Callable

import pyperclip

from voice_typing.audio import CaptureSession
from voice_typing.coordinator import TriggerCoordinator
from voice_typing.history import HistoryStore
from voice_typing.models import HistoryItem
from voice_typing.registry import ProviderRegistry
from voice_typing.settings_store import INPUT_DEVICE, SettingsStore
from voice_typing.text_merge import TextBuffer

logger = logging.getLogger(__name__)


class DictationApp:
    """One settings store, registry, buffer, history and coordinator.

    Front-ends hold a single instance; the hotkey and the UI both reach the
    coordinator through it.
    """

    def __init__(
        self,
        store: SettingsStore | None = None,
        registry: ProviderRegistry | None = None,
        history: HistoryStore | None = None,
        buffer: TextBuffer | None = None,
        coordinator_factory: Callable[..., TriggerCoordinator] = TriggerCoordinator,
    ):
        self.store = store or SettingsStore()
        self.registry = registry or ProviderRegistry(self.store)
        self.history = history or HistoryStore(self.store)
        self.buffer = buffer or TextBuffer()
        self.coordinator = coordinator_factory(
            self.registry, self.buffer, session_factory=self._new_session
        )

    @property
    def input_device(self) -> int | None:
        value = self.store.get(INPUT_DEVICE)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    def set_input_device(self, device: int | None) -> None:
        if device is None:
            self.store.remove(INPUT_DEVICE)
        else:
            self.store.set(INPUT_DEVICE, device)
        logger.info(f"Input device: {'default' if device is None else device}")

    def _new_session(self) -> CaptureSession:
        return CaptureSession(device=self.input_device)

    def copy_to_clipboard(self) -> bool:
        """Copy the buffer. Refused while a status message is displayed."""
        state = self.buffer.snapshot()
        if state.showing_message or not state.text.strip():
            return False
        try:
            pyperclip.copy(state.text)
        except pyperclip.PyperclipException as e:
            logger.error(f"Clipboard copy failed: {e}")
            return False
        return True

    def save_and_clear(self) -> HistoryItem | None:
        """Record the buffer in history and empty it."""
        state = self.buffer.snapshot()
        item = None
        if not state.showing_message:
            item = self.history.record(state.text)
        self.buffer.clear()
        return item

    def restore(self, item_id: str) -> bool:
        item = self.history.get(item_id)
        if item is None:
            return False
        self.buffer.set_text(item.text)
        return True

    def shutdown(self) -> None:
        self.registry.shutdown()
